"""Tests for articles.py: detail, editor, tags and comments."""

import pytest
from sqlalchemy.exc import OperationalError

from conduit import articles
from conduit.errors import AuthorizationFailure, NotFound, PersistenceFailure, ValidationFailure
from conduit.models import Article, article_tags


@pytest.fixture
def users(make_user):
    make_user("alice", image="https://img.example.com/alice.png")
    make_user("bobby")


def tags_of(db, slug):
    rows = db.query(article_tags.c.tag).filter(article_tags.c.article == slug).all()
    return sorted(tag for (tag,) in rows)


# --- validation ---


class TestValidateArticle:
    def test_valid(self):
        draft = articles.validate_article("Title", "Desc", "Body of ten", " rust go  rust\tweb ")
        assert draft.tag_list == ["rust", "go", "web"]

    @pytest.mark.parametrize(
        "title, description, body, message",
        [
            ("abc", "Desc", "Long enough body", "title"),
            ("Title", "abc", "Long enough body", "description"),
            ("Title", "Desc", "too short", "body"),
        ],
    )
    def test_too_short(self, title, description, body, message):
        with pytest.raises(ValidationFailure, match=message):
            articles.validate_article(title, description, body, "")


# --- editor ---


def draft(title="A title", tags=""):
    return articles.validate_article(title, "A description", "A body long enough", tags)


def test_create_article(db, users):
    slug = articles.save_article(db, "alice", "", draft(tags="rust go"))

    article = db.query(Article).filter(Article.slug == slug).one()
    assert article.author == "alice"
    assert tags_of(db, slug) == ["go", "rust"]


def test_update_replaces_tags(db, users):
    slug = articles.save_article(db, "alice", "", draft(tags="rust go"))

    assert articles.save_article(db, "alice", slug, draft(title="New title", tags="web")) == slug

    db.expire_all()
    assert db.query(Article).filter(Article.slug == slug).one().title == "New title"
    assert tags_of(db, slug) == ["web"]


def test_update_someone_elses_article(db, users):
    slug = articles.save_article(db, "alice", "", draft())
    with pytest.raises(NotFound):
        articles.save_article(db, "bobby", slug, draft(title="Hijacked"))
    db.expire_all()
    assert db.query(Article).filter(Article.slug == slug).one().title == "A title"


def test_save_requires_identity(db, users):
    with pytest.raises(AuthorizationFailure):
        articles.save_article(db, None, "", draft())


def test_failed_tag_replacement_rolls_back_content(db, users, monkeypatch):
    slug = articles.save_article(db, "alice", "", draft(title="Original", tags="old"))

    def broken_replace(session, slug, tags):
        session.execute(article_tags.delete().where(article_tags.c.article == slug))
        raise OperationalError("INSERT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(articles, "_replace_tags", broken_replace)
    with pytest.raises(PersistenceFailure):
        articles.save_article(db, "alice", slug, draft(title="Changed", tags="new"))

    db.expire_all()
    assert db.query(Article).filter(Article.slug == slug).one().title == "Original"
    assert tags_of(db, slug) == ["old"]


def test_get_article(db, users, make_article):
    created = make_article("alice", tags=("x",), body="Full body text")

    detail = articles.get_article(db, created.slug, None)

    assert detail.body == "Full body text"
    assert detail.tag_list == ["x"]
    assert detail.author.image == "https://img.example.com/alice.png"


def test_get_missing_article(db, users):
    with pytest.raises(NotFound):
        articles.get_article(db, "missing", None)


def test_delete_article(db, users, make_article, favorite):
    created = make_article("alice", tags=("x",))
    favorite("bobby", created.slug)

    with pytest.raises(NotFound):
        articles.delete_article(db, "bobby", created.slug)

    articles.delete_article(db, "alice", created.slug)

    assert db.query(Article).count() == 0
    assert tags_of(db, created.slug) == []


# --- tags ---


def test_popular_tags(db, users, make_article):
    for _ in range(3):
        make_article("alice", tags=("common",))
    make_article("alice", tags=("rare",))
    make_article("bobby", tags=("fresh",))

    tags = articles.popular_tags(db)

    assert tags[0] == "common"
    assert set(tags) == {"common", "rare", "fresh"}


# --- comments ---


def test_comment_lifecycle(db, users, make_article):
    created = make_article("bobby")

    comment = articles.post_comment(db, "alice", created.slug, "  First!  ")
    assert comment.body == "First!"
    assert comment.user_image == "https://img.example.com/alice.png"

    [listed] = articles.list_comments(db, created.slug)
    assert listed.id == comment.id

    with pytest.raises(NotFound):
        articles.delete_comment(db, "bobby", comment.id)

    articles.delete_comment(db, "alice", comment.id)
    assert articles.list_comments(db, created.slug) == []


def test_comment_validation(db, users, make_article):
    created = make_article("bobby")
    with pytest.raises(AuthorizationFailure):
        articles.post_comment(db, None, created.slug, "hi")
    with pytest.raises(ValidationFailure):
        articles.post_comment(db, "alice", created.slug, "   ")
    with pytest.raises(NotFound):
        articles.post_comment(db, "alice", "missing", "hi")
