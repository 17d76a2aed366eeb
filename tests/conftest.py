"""
Shared pytest fixtures for the Conduit backend tests

Every test gets its own in-memory SQLite database with the full schema,
including the full-text index.
"""

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from conduit.config import Settings, get_settings
from conduit.db import create_schema, get_db, make_engine
from conduit.main import app
from conduit.models import Article, User, article_tags, fav_articles, follows
from conduit.security import create_access_token, hash_password

BASE_TIME = datetime(2024, 10, 23, 12, 0, 0)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        SECRET_KEY="test-secret",
        PUBLIC_URL="https://conduit.example.com",
        HIGHLIGHT_OPEN="<b>",
        HIGHLIGHT_CLOSE="</b>",
        HIGHLIGHT_ELLIPSIS="...",
    )


@pytest.fixture
def engine():
    engine = make_engine("sqlite://", poolclass=StaticPool)
    create_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory, settings):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(settings):
    def make(username: str) -> dict:
        return {"Authorization": f"Bearer {create_access_token(username, settings)}"}

    return make


@pytest.fixture
def make_user(db):
    def make(username: str, password: str = "password", image: str | None = None) -> User:
        user = User(
            username=username,
            email=f"{username}@example.com",
            password=hash_password(password),
            image=image,
        )
        db.add(user)
        db.commit()
        return user

    return make


@pytest.fixture
def make_article(db):
    counter = {"n": 0}

    def make(
        author: str,
        title: str | None = None,
        description: str = "A description",
        body: str = "A body long enough",
        tags: tuple = (),
        created_at: datetime | None = None,
    ) -> Article:
        counter["n"] += 1
        n = counter["n"]
        article = Article(
            slug=f"article-{n}",
            title=title or f"Article {n}",
            description=description,
            body=body,
            author=author,
            created_at=created_at or BASE_TIME + timedelta(minutes=n),
        )
        db.add(article)
        db.flush()
        if tags:
            db.execute(article_tags.insert(), [{"article": article.slug, "tag": t} for t in tags])
        db.commit()
        return article

    return make


@pytest.fixture
def follow(db):
    def make(follower: str, influencer: str) -> None:
        db.execute(follows.insert().values(follower=follower, influencer=influencer))
        db.commit()

    return make


@pytest.fixture
def favorite(db):
    def make(username: str, slug: str) -> None:
        db.execute(fav_articles.insert().values(username=username, article=slug))
        db.commit()

    return make
