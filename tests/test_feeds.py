"""Tests for feeds.py: feed targets and page resolution against SQLite."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from conduit import feeds
from conduit.errors import AuthorizationFailure, PersistenceFailure
from conduit.models import Comment
from conduit.pagination import PageParams, next_page


@pytest.fixture
def authors(make_user):
    for name in ("alice", "bobby", "carol"):
        make_user(name)


# --- targets ---


class TestHomeTarget:
    def test_default_is_global(self):
        assert feeds.home_target(PageParams(), None) == feeds.Global()

    def test_tag(self):
        assert feeds.home_target(PageParams(tag="rust"), None) == feeds.TagFiltered("rust")

    def test_tag_wins_over_my_feed(self):
        target = feeds.home_target(PageParams(tag="rust", my_feed=True), "alice")
        assert target == feeds.TagFiltered("rust")

    def test_my_feed(self):
        assert feeds.home_target(PageParams(my_feed=True), "alice") == feeds.Following("alice")

    def test_my_feed_needs_identity(self):
        with pytest.raises(AuthorizationFailure):
            feeds.home_target(PageParams(my_feed=True), None)


def test_profile_target():
    assert feeds.profile_target("bobby", False) == feeds.ProfileAuthored("bobby")
    assert feeds.profile_target("bobby", True) == feeds.ProfileFavorited("bobby")


# --- resolution ---


def test_global_feed_pages_newest_first(db, authors, make_article):
    for _ in range(25):
        make_article("alice")

    params = PageParams(page=0, amount=10)
    first = feeds.resolve(db, params, None, feeds.Global())
    second = feeds.resolve(db, next_page(params), None, feeds.Global())
    third = feeds.resolve(db, next_page(next_page(params)), None, feeds.Global())

    assert [a.title for a in first] == [f"Article {n}" for n in range(25, 15, -1)]
    assert [a.title for a in second] == [f"Article {n}" for n in range(15, 5, -1)]
    assert [a.title for a in third] == [f"Article {n}" for n in range(5, 0, -1)]


def test_tag_filtered(db, authors, make_article):
    make_article("alice", title="Rusty", tags=("rust", "systems"))
    make_article("bobby", title="Gopher", tags=("go",))
    make_article("carol", title="Oxide", tags=("rust",))

    result = feeds.resolve(db, PageParams(), None, feeds.TagFiltered("rust"))

    assert [a.title for a in result] == ["Oxide", "Rusty"]
    assert result[1].tag_list == ["rust", "systems"]


def test_following_feed(db, authors, make_article, follow):
    make_article("alice", title="By alice")
    make_article("bobby", title="By bobby")
    make_article("carol", title="By carol")
    follow("alice", "bobby")
    follow("alice", "carol")

    result = feeds.resolve(db, PageParams(my_feed=True), "alice", feeds.Following("alice"))

    assert [a.title for a in result] == ["By carol", "By bobby"]
    assert all(a.author.following for a in result)


def test_following_without_identity_is_refused(db):
    with pytest.raises(AuthorizationFailure):
        feeds.resolve(db, PageParams(), None, feeds.Following(None))


def test_profile_authored(db, authors, make_article):
    make_article("alice", title="Mine")
    make_article("bobby", title="Not mine")

    result = feeds.resolve(db, PageParams(), None, feeds.ProfileAuthored("alice"))

    assert [a.title for a in result] == ["Mine"]


def test_profile_favorited_is_public(db, authors, make_article, favorite):
    one = make_article("alice")
    two = make_article("carol")
    make_article("carol")
    favorite("bobby", one.slug)
    favorite("bobby", two.slug)

    anonymous = feeds.resolve(db, PageParams(), None, feeds.ProfileFavorited("bobby"))
    as_bobby = feeds.resolve(db, PageParams(), "bobby", feeds.ProfileFavorited("bobby"))

    assert [a.slug for a in anonymous] == [two.slug, one.slug]
    assert not any(a.fav for a in anonymous)
    assert all(a.fav for a in as_bobby)


def test_derived_fields(db, authors, make_article, favorite, follow):
    article = make_article("bobby", tags=("b", "a"))
    own = make_article("alice")
    favorite("alice", article.slug)
    favorite("carol", article.slug)
    follow("alice", "bobby")
    db.add(Comment(article=article.slug, username="carol", body="Nice one"))
    db.commit()

    by_slug = {a.slug: a for a in feeds.resolve(db, PageParams(), "alice", feeds.Global())}

    summary = by_slug[article.slug]
    assert summary.fav is True
    assert summary.favorites_count == 2
    assert summary.comments_count == 1
    assert summary.author.following is True
    assert summary.tag_list == ["a", "b"]
    assert summary.created_at == "23/10/2024 12:01"

    assert by_slug[own.slug].author.following is False
    assert by_slug[own.slug].fav is False


def test_anonymous_caller_sees_no_edges(db, authors, make_article, favorite, follow):
    article = make_article("bobby")
    favorite("alice", article.slug)
    follow("alice", "bobby")

    [summary] = feeds.resolve(db, PageParams(), None, feeds.Global())

    assert summary.fav is False
    assert summary.author.following is False
    assert summary.favorites_count == 1


def test_page_past_the_end_is_empty(db, authors, make_article):
    make_article("alice")
    assert feeds.resolve(db, PageParams(page=3), None, feeds.Global()) == []


def test_storage_failure_is_opaque():
    db = MagicMock()
    db.query.return_value.join.return_value.order_by.side_effect = OperationalError(
        "SELECT", {}, Exception("database is locked")
    )

    with pytest.raises(PersistenceFailure) as excinfo:
        feeds.resolve(db, PageParams(), None, feeds.Global())

    assert "locked" not in str(excinfo.value)
    db.rollback.assert_called_once()
