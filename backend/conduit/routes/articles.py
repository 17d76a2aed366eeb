"""
API routes for feeds, search, articles, favorites and comments
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from .. import articles, feeds, pagination, relations
from ..config import Settings, get_settings
from ..db import get_db
from ..pagination import PageParams
from ..schemas import (
    ArticleCreate,
    ArticleDetail,
    ArticleSummary,
    CommentCreate,
    CommentResponse,
    FavoriteToggle,
    FeedPage,
    MessageResponse,
    SavedArticle,
    SearchResult,
)
from ..security import current_identity

router = APIRouter()


def feed_page(params: PageParams, page: List[ArticleSummary]) -> FeedPage:
    """Wrap a page of summaries with the links for its neighbours."""
    has_next = pagination.has_next_page(params, len(page))
    has_previous = pagination.has_previous_page(params)
    return FeedPage(
        articles=page,
        params=pagination.encode(params),
        has_next=has_next,
        has_previous=has_previous,
        next=pagination.encode(pagination.next_page(params)) if has_next else None,
        previous=pagination.encode(pagination.previous_page(params)) if has_previous else None,
    )


@router.get("/articles/home", response_model=FeedPage)
def home_articles(
    request: Request,
    db: Session = Depends(get_db),
    caller: Optional[str] = Depends(current_identity),
):
    """
    Home page feed: global, tag filtered, or the caller's follows (my_feed)

    Query string: page, amount, tag, my_feed
    """
    params = pagination.decode(request.url.query)
    target = feeds.home_target(params, caller)
    return feed_page(params, feeds.resolve(db, params, caller, target))


@router.get("/articles/search", response_model=SearchResult)
def search_articles(
    q: str = Query(""),
    page: int = Query(0, ge=0, le=pagination.MAX_PAGE),
    amount: int = Query(pagination.DEFAULT_AMOUNT, ge=1, le=pagination.MAX_AMOUNT),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return feeds.search(db, q, page, amount, feeds.Highlight.from_settings(settings))


@router.get("/tags", response_model=List[str])
def get_tags(db: Session = Depends(get_db)):
    return articles.popular_tags(db)


@router.post("/articles", response_model=SavedArticle)
def editor(
    article_data: ArticleCreate,
    db: Session = Depends(get_db),
    caller: Optional[str] = Depends(current_identity),
):
    """Create an article (empty slug) or update one of the caller's articles"""
    draft = articles.validate_article(
        article_data.title, article_data.description, article_data.body, article_data.tag_list
    )
    return SavedArticle(slug=articles.save_article(db, caller, article_data.slug, draft))


@router.get("/articles/{slug}", response_model=ArticleDetail)
def get_article(
    slug: str,
    db: Session = Depends(get_db),
    caller: Optional[str] = Depends(current_identity),
):
    return articles.get_article(db, slug, caller)


@router.delete("/articles/{slug}", response_model=MessageResponse)
def delete_article(
    slug: str,
    db: Session = Depends(get_db),
    caller: Optional[str] = Depends(current_identity),
):
    articles.delete_article(db, caller, slug)
    return MessageResponse(message="Article deleted successfully")


@router.post("/articles/{slug}/favorite", response_model=FavoriteToggle)
def favorite(
    slug: str,
    db: Session = Depends(get_db),
    caller: Optional[str] = Depends(current_identity),
):
    return FavoriteToggle(slug=slug, fav=relations.toggle_favorite(db, caller, slug))


@router.get("/articles/{slug}/comments", response_model=List[CommentResponse])
def get_comments(slug: str, db: Session = Depends(get_db)):
    return articles.list_comments(db, slug)


@router.post("/articles/{slug}/comments", response_model=CommentResponse)
def post_comment(
    slug: str,
    comment: CommentCreate,
    db: Session = Depends(get_db),
    caller: Optional[str] = Depends(current_identity),
):
    return articles.post_comment(db, caller, slug, comment.body)


@router.delete("/comments/{comment_id}", response_model=MessageResponse)
def delete_comment(
    comment_id: int,
    db: Session = Depends(get_db),
    caller: Optional[str] = Depends(current_identity),
):
    articles.delete_comment(db, caller, comment_id)
    return MessageResponse(message="Comment deleted")
