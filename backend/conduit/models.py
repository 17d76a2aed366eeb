from datetime import datetime, timezone

from sqlalchemy import DDL, Column, DateTime, ForeignKey, Integer, String, Table, Text, event
from sqlalchemy.orm import relationship

from .db import Base


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Edge tables: the composite primary key is what makes concurrent toggles safe.
follows = Table(
    "follows",
    Base.metadata,
    Column("follower", String, ForeignKey("users.username", ondelete="CASCADE"), primary_key=True),
    Column("influencer", String, ForeignKey("users.username", ondelete="CASCADE"), primary_key=True),
)

fav_articles = Table(
    "fav_articles",
    Base.metadata,
    Column("article", String, ForeignKey("articles.slug", ondelete="CASCADE"), primary_key=True),
    Column("username", String, ForeignKey("users.username", ondelete="CASCADE"), primary_key=True),
)

article_tags = Table(
    "article_tags",
    Base.metadata,
    Column("article", String, ForeignKey("articles.slug", ondelete="CASCADE"), primary_key=True),
    Column("tag", String, primary_key=True, index=True),
)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    password = Column(String, nullable=False)
    bio = Column(Text)
    image = Column(String)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    articles = relationship("Article", back_populates="author_user", passive_deletes=True)


class Article(Base):
    __tablename__ = "articles"

    id = Column(Integer, primary_key=True, index=True)
    slug = Column(String, unique=True, index=True, nullable=False)
    title = Column(String, nullable=False)
    description = Column(String, nullable=False)
    body = Column(Text, nullable=False)
    author = Column(String, ForeignKey("users.username", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    author_user = relationship("User", back_populates="articles")


class Comment(Base):
    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, index=True)
    article = Column(String, ForeignKey("articles.slug", ondelete="CASCADE"), nullable=False, index=True)
    username = Column(String, ForeignKey("users.username", ondelete="CASCADE"), nullable=False)
    body = Column(Text, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)


# Full-text index over articles, kept in sync by triggers (SQLite FTS5).
_fts_statements = [
    "CREATE VIRTUAL TABLE IF NOT EXISTS articles_fts USING fts5("
    "title, description, body, content='articles', content_rowid='id')",
    "CREATE TRIGGER IF NOT EXISTS articles_fts_ai AFTER INSERT ON articles BEGIN "
    "INSERT INTO articles_fts(rowid, title, description, body) "
    "VALUES (new.id, new.title, new.description, new.body); END",
    "CREATE TRIGGER IF NOT EXISTS articles_fts_ad AFTER DELETE ON articles BEGIN "
    "INSERT INTO articles_fts(articles_fts, rowid, title, description, body) "
    "VALUES ('delete', old.id, old.title, old.description, old.body); END",
    "CREATE TRIGGER IF NOT EXISTS articles_fts_au AFTER UPDATE ON articles BEGIN "
    "INSERT INTO articles_fts(articles_fts, rowid, title, description, body) "
    "VALUES ('delete', old.id, old.title, old.description, old.body); "
    "INSERT INTO articles_fts(rowid, title, description, body) "
    "VALUES (new.id, new.title, new.description, new.body); END",
]

for _statement in _fts_statements:
    event.listen(Article.__table__, "after_create", DDL(_statement).execute_if(dialect="sqlite"))

event.listen(
    Article.__table__,
    "before_drop",
    DDL("DROP TABLE IF EXISTS articles_fts").execute_if(dialect="sqlite"),
)
