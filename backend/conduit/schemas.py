from typing import List, Optional

from pydantic import BaseModel, ConfigDict, computed_field


class SignUpModel(BaseModel):
    username: str
    email: str
    password: str


class LoginModel(BaseModel):
    username: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    username: str


class UserResponse(BaseModel):
    username: str
    email: str
    bio: Optional[str] = None
    image: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class SettingsUpdate(BaseModel):
    image: str = ""
    bio: str = ""
    email: str
    password: str = ""
    confirm_password: str = ""


class PasswordResetRequest(BaseModel):
    email: str


class PasswordResetConfirm(BaseModel):
    token: str
    password: str
    confirm: str


class MessageResponse(BaseModel):
    message: str


class Profile(BaseModel):
    username: str
    bio: Optional[str] = None
    image: Optional[str] = None
    # None when nobody is signed in
    following: Optional[bool] = None


class Author(BaseModel):
    username: str
    image: Optional[str] = None
    following: bool = False


class ArticleSummary(BaseModel):
    slug: str
    title: str
    description: str
    created_at: str
    comments_count: int = 0
    favorites_count: int = 0
    fav: bool = False
    tag_list: List[str] = []
    author: Author

    def apply_favorite_result(self, favorited: bool) -> "ArticleSummary":
        """Reconcile a local copy with the authoritative toggle result."""
        if favorited == self.fav:
            return self
        count = self.favorites_count + (1 if favorited else -1)
        return self.model_copy(update={"fav": favorited, "favorites_count": max(count, 0)})


class ArticleDetail(ArticleSummary):
    body: str
    updated_at: str


class ArticleCreate(BaseModel):
    title: str
    description: str
    body: str
    # whitespace separated, as typed in the editor
    tag_list: str = ""
    # empty for a new article
    slug: str = ""


class SavedArticle(BaseModel):
    slug: str


class CommentCreate(BaseModel):
    body: str


class CommentResponse(BaseModel):
    id: int
    article: str
    username: str
    body: str
    created_at: str
    user_image: Optional[str] = None


class FavoriteToggle(BaseModel):
    slug: str
    fav: bool


class FollowToggle(BaseModel):
    username: str
    following: bool


class FeedPage(BaseModel):
    articles: List[ArticleSummary]
    params: str
    has_next: bool
    has_previous: bool
    next: Optional[str] = None
    previous: Optional[str] = None


class MatchedArticle(BaseModel):
    slug: str
    title: str
    description: str
    body: str


class SearchResult(BaseModel):
    total_count: int
    page: int
    amount: int
    matches: List[MatchedArticle]

    @computed_field
    @property
    def has_next(self) -> bool:
        return self.total_count > (self.page + 1) * self.amount

    @computed_field
    @property
    def has_previous(self) -> bool:
        return self.page > 0

    @computed_field
    @property
    def first_shown(self) -> int:
        if self.total_count == 0:
            return 0
        return self.page * self.amount + 1

    @computed_field
    @property
    def last_shown(self) -> int:
        return min((self.page + 1) * self.amount, self.total_count)
