"""Follow and favorite edges.

A toggle is check-then-act: delete the edge if it exists, insert it
otherwise. Both edge tables have a composite primary key, so when two
requests for the same pair both see "absent", the second insert fails and
is reported as the insert that already happened.
"""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .errors import AuthorizationFailure, NotFound, ValidationFailure, persistence_guard
from .models import Article, User, fav_articles, follows

logger = logging.getLogger(__name__)


def _require_caller(caller: Optional[str]) -> str:
    if caller is None:
        raise AuthorizationFailure("You need to be authenticated")
    return caller


def _edge_exists(db: Session, table, **key) -> bool:
    query = db.query(table)
    for column, value in key.items():
        query = query.filter(table.c[column] == value)
    return query.first() is not None


def _toggle_edge(db: Session, table, operation: str, **key) -> bool:
    with persistence_guard(db, operation, **key):
        if _edge_exists(db, table, **key):
            statement = table.delete()
            for column, value in key.items():
                statement = statement.where(table.c[column] == value)
            db.execute(statement)
            db.commit()
            return False

        try:
            db.execute(table.insert().values(**key))
            db.commit()
        except IntegrityError:
            db.rollback()
            # a concurrent request inserted the same edge first
            if not _edge_exists(db, table, **key):
                raise
            logger.info("%s: edge %s already inserted concurrently", operation, key)
        return True


def toggle_favorite(db: Session, caller: Optional[str], slug: str) -> bool:
    """Flip the caller's favorite on ``slug``. Returns True if now favorited."""
    username = _require_caller(caller)
    with persistence_guard(db, "toggle favorite", slug=slug):
        found = db.query(Article.id).filter(Article.slug == slug).first()
    if found is None:
        logger.info("toggle favorite: no article %r", slug)
        raise NotFound("Article not found")
    return _toggle_edge(db, fav_articles, "toggle favorite", article=slug, username=username)


def toggle_follow(db: Session, caller: Optional[str], influencer: str) -> bool:
    """Flip whether the caller follows ``influencer``. Returns True if now following."""
    follower = _require_caller(caller)
    if follower == influencer:
        raise ValidationFailure("You cannot follow yourself")
    with persistence_guard(db, "toggle follow", influencer=influencer):
        found = db.query(User.id).filter(User.username == influencer).first()
    if found is None:
        logger.info("toggle follow: no user %r", influencer)
        raise NotFound("User not found")
    return _toggle_edge(db, follows, "toggle follow", follower=follower, influencer=influencer)


def is_following(db: Session, caller: Optional[str], username: str) -> Optional[bool]:
    """None for anonymous callers."""
    if caller is None:
        return None
    with persistence_guard(db, "is following", username=username):
        return _edge_exists(db, follows, follower=caller, influencer=username)

