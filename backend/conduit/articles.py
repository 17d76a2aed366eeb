"""Article detail, the editor, tags and comments."""

import logging
import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from .errors import (
    AuthorizationFailure,
    NotFound,
    ValidationFailure,
    persistence_guard,
)
from .feeds import article_summary, format_date
from .models import Article, Comment, User, article_tags
from .schemas import ArticleDetail, CommentResponse

logger = logging.getLogger(__name__)

TITLE_MIN_LENGTH = 4
DESCRIPTION_MIN_LENGTH = 4
BODY_MIN_LENGTH = 10
POPULAR_TAGS_LIMIT = 10


@dataclass
class ArticleDraft:
    title: str
    description: str
    body: str
    tag_list: List[str] = field(default_factory=list)


def get_article(db: Session, slug: str, caller: Optional[str]) -> ArticleDetail:
    row, summary = article_summary(db, slug, caller)
    if row is None:
        logger.info("No article %r", slug)
        raise NotFound("Article not found")
    return ArticleDetail(
        **summary.model_dump(),
        body=row.body,
        updated_at=format_date(row.updated_at),
    )


def validate_article(title: str, description: str, body: str, tag_list: str) -> ArticleDraft:
    if len(title) < TITLE_MIN_LENGTH:
        raise ValidationFailure("You need to provide a title with at least 4 characters")
    if len(description) < DESCRIPTION_MIN_LENGTH:
        raise ValidationFailure("You need to provide a description with at least 4 characters")
    if len(body) < BODY_MIN_LENGTH:
        raise ValidationFailure("You need to provide a body with at least 10 characters")

    # dict keeps first-seen order while dropping repeats
    tags = list(dict.fromkeys(tag_list.split()))
    return ArticleDraft(title=title, description=description, body=body, tag_list=tags)


def _replace_tags(db: Session, slug: str, tags: List[str]) -> None:
    db.execute(article_tags.delete().where(article_tags.c.article == slug))
    if tags:
        db.execute(article_tags.insert(), [{"article": slug, "tag": tag} for tag in tags])


def save_article(db: Session, author: Optional[str], slug: str, draft: ArticleDraft) -> str:
    """Create (empty ``slug``) or update an article and replace its tags.

    Content and tags change in one transaction: a failure leaves both as
    they were.
    """
    if author is None:
        raise AuthorizationFailure("You should be authenticated")

    with persistence_guard(db, "save article", slug=slug, author=author):
        if slug:
            rows_affected = (
                db.query(Article)
                .filter(Article.slug == slug, Article.author == author)
                .update(
                    {
                        Article.title: draft.title,
                        Article.description: draft.description,
                        Article.body: draft.body,
                    },
                    synchronize_session=False,
                )
            )
        else:
            slug = str(uuid.uuid4())
            db.add(
                Article(
                    slug=slug,
                    title=draft.title,
                    description=draft.description,
                    body=draft.body,
                    author=author,
                )
            )
            db.flush()
            rows_affected = 1

        if rows_affected != 1:
            db.rollback()
            logger.info("Editor: no article %r by %s", slug, author)
            raise NotFound("Article not found")

        _replace_tags(db, slug, draft.tag_list)
        db.commit()

    logger.info("Article %s saved by %s", slug, author)
    return slug


def delete_article(db: Session, author: Optional[str], slug: str) -> None:
    if author is None:
        raise AuthorizationFailure("You should be authenticated")
    with persistence_guard(db, "delete article", slug=slug, author=author):
        deleted = (
            db.query(Article)
            .filter(Article.slug == slug, Article.author == author)
            .delete(synchronize_session=False)
        )
        if deleted != 1:
            db.rollback()
            logger.info("Delete: no article %r by %s", slug, author)
            raise NotFound("Article not found")
        db.commit()


def popular_tags(db: Session) -> List[str]:
    """The most used tags followed by the most recently used ones."""
    with persistence_guard(db, "popular tags"):
        base = db.query(
            article_tags.c.tag,
            func.count(article_tags.c.article).label("tag_count"),
            func.max(Article.created_at).label("max_created_at"),
        ).join(Article, Article.slug == article_tags.c.article).group_by(article_tags.c.tag)

        most_used = base.order_by(desc("tag_count"), article_tags.c.tag).limit(POPULAR_TAGS_LIMIT).all()
        most_recent = (
            base.order_by(desc("max_created_at"), article_tags.c.tag).limit(POPULAR_TAGS_LIMIT).all()
        )

    return list(dict.fromkeys(row.tag for row in most_used + most_recent))


def _to_comment(comment: Comment, image: Optional[str]) -> CommentResponse:
    return CommentResponse(
        id=comment.id,
        article=comment.article,
        username=comment.username,
        body=comment.body,
        created_at=format_date(comment.created_at),
        user_image=image,
    )


def list_comments(db: Session, slug: str) -> List[CommentResponse]:
    with persistence_guard(db, "list comments", slug=slug):
        rows = (
            db.query(Comment, User.image)
            .join(User, User.username == Comment.username)
            .filter(Comment.article == slug)
            .order_by(Comment.created_at, Comment.id)
            .all()
        )
    return [_to_comment(comment, image) for comment, image in rows]


def post_comment(db: Session, caller: Optional[str], slug: str, body: str) -> CommentResponse:
    if caller is None:
        raise AuthorizationFailure("you must be logged in")
    body = (body or "").strip()
    if not body:
        raise ValidationFailure("Comment cannot be empty")

    with persistence_guard(db, "post comment", slug=slug, username=caller):
        if db.query(Article.id).filter(Article.slug == slug).first() is None:
            raise NotFound("Article not found")
        comment = Comment(article=slug, username=caller, body=body)
        db.add(comment)
        db.commit()
        db.refresh(comment)
        image = db.query(User.image).filter(User.username == caller).scalar()
    return _to_comment(comment, image)


def delete_comment(db: Session, caller: Optional[str], comment_id: int) -> None:
    """Only the comment's author can delete it; anything else is NotFound."""
    if caller is None:
        raise AuthorizationFailure("you must be logged in")
    with persistence_guard(db, "delete comment", comment_id=comment_id, username=caller):
        deleted = (
            db.query(Comment)
            .filter(Comment.id == comment_id, Comment.username == caller)
            .delete(synchronize_session=False)
        )
        if deleted != 1:
            db.rollback()
            logger.info("Delete comment: no comment %d by %s", comment_id, caller)
            raise NotFound("Comment not found")
        db.commit()
