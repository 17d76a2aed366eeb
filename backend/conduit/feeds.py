"""Feed resolution and full-text search.

Every feed is one query: the base article set for the target, newest first,
``LIMIT amount OFFSET page * amount``, with ``fav`` and ``author.following``
computed for the caller. Feeds do not count their rows; search does.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy import and_, exists, false, func, select, text
from sqlalchemy.orm import Session

from .errors import AuthorizationFailure, ValidationFailure, persistence_guard
from .models import Article, Comment, User, article_tags, fav_articles, follows
from .pagination import PageParams
from .schemas import ArticleSummary, Author, MatchedArticle, SearchResult

logger = logging.getLogger(__name__)

DATE_FORMAT = "%d/%m/%Y %H:%M"

# context tokens kept around a hit, per field
TITLE_SNIPPET_TOKENS = 10
DESCRIPTION_SNIPPET_TOKENS = 20
BODY_SNIPPET_TOKENS = 20


@dataclass(frozen=True)
class Global:
    pass


@dataclass(frozen=True)
class TagFiltered:
    tag: str


@dataclass(frozen=True)
class Following:
    username: Optional[str]


@dataclass(frozen=True)
class ProfileAuthored:
    username: str


@dataclass(frozen=True)
class ProfileFavorited:
    username: str


FeedTarget = Union[Global, TagFiltered, Following, ProfileAuthored, ProfileFavorited]


@dataclass(frozen=True)
class Highlight:
    """Markup wrapped around search hits."""

    open: str = '<span class="bg-yellow-300">'
    close: str = "</span>"
    ellipsis: str = '<span class="bg-yellow-300">  ...  </span>'

    @classmethod
    def from_settings(cls, settings):
        return cls(
            open=settings.highlight_open,
            close=settings.highlight_close,
            ellipsis=settings.highlight_ellipsis,
        )


def home_target(params: PageParams, caller: Optional[str]) -> FeedTarget:
    """Pick the home page feed. A tag filter takes precedence over my_feed."""
    if params.tag:
        return TagFiltered(params.tag)
    if params.my_feed:
        if caller is None:
            raise AuthorizationFailure("You need to be authenticated to see your feed")
        return Following(caller)
    return Global()


def profile_target(username: str, favourites: bool) -> FeedTarget:
    if favourites:
        return ProfileFavorited(username)
    return ProfileAuthored(username)


def format_date(value) -> str:
    return value.strftime(DATE_FORMAT)


def _summary_query(db: Session, caller: Optional[str]):
    comment_count = (
        select(func.count(Comment.id))
        .where(Comment.article == Article.slug)
        .correlate(Article)
        .scalar_subquery()
    )

    counted_favs = fav_articles.alias("counted_favs")
    favorites_count = (
        select(func.count())
        .select_from(counted_favs)
        .where(counted_favs.c.article == Article.slug)
        .correlate(Article)
        .scalar_subquery()
    )

    if caller is None:
        fav = false()
        following = false()
    else:
        caller_favs = fav_articles.alias("caller_favs")
        caller_follows = follows.alias("caller_follows")
        fav = (
            exists()
            .where(caller_favs.c.article == Article.slug, caller_favs.c.username == caller)
            .correlate(Article)
        )
        following = and_(
            Article.author != caller,
            exists()
            .where(
                caller_follows.c.follower == caller,
                caller_follows.c.influencer == Article.author,
            )
            .correlate(Article),
        )

    return db.query(
        Article.slug,
        Article.title,
        Article.description,
        Article.created_at,
        Article.author,
        User.image.label("author_image"),
        comment_count.label("comments_count"),
        favorites_count.label("favorites_count"),
        fav.label("fav"),
        following.label("following"),
    ).join(User, User.username == Article.author)


def _filter_target(query, target: FeedTarget):
    if isinstance(target, Global):
        return query
    if isinstance(target, TagFiltered):
        return query.join(article_tags, article_tags.c.article == Article.slug).filter(
            article_tags.c.tag == target.tag
        )
    if isinstance(target, Following):
        if target.username is None:
            raise AuthorizationFailure("You need to be authenticated to see your feed")
        return query.join(follows, follows.c.influencer == Article.author).filter(
            follows.c.follower == target.username
        )
    if isinstance(target, ProfileAuthored):
        return query.filter(Article.author == target.username)
    if isinstance(target, ProfileFavorited):
        return query.join(fav_articles, fav_articles.c.article == Article.slug).filter(
            fav_articles.c.username == target.username
        )
    raise TypeError(f"unknown feed target: {target!r}")


def tags_for(db: Session, slugs) -> dict:
    """Map each slug to its sorted tag list."""
    tags = {slug: [] for slug in slugs}
    if not tags:
        return tags
    rows = (
        db.query(article_tags.c.article, article_tags.c.tag)
        .filter(article_tags.c.article.in_(list(tags)))
        .order_by(article_tags.c.article, article_tags.c.tag)
        .all()
    )
    for article, tag in rows:
        tags[article].append(tag)
    return tags


def _to_summary(row, tag_list) -> ArticleSummary:
    return ArticleSummary(
        slug=row.slug,
        title=row.title,
        description=row.description,
        created_at=format_date(row.created_at),
        comments_count=row.comments_count or 0,
        favorites_count=row.favorites_count or 0,
        fav=bool(row.fav),
        tag_list=tag_list,
        author=Author(
            username=row.author,
            image=row.author_image,
            following=bool(row.following),
        ),
    )


def resolve(
    db: Session, params: PageParams, caller: Optional[str], target: FeedTarget
) -> list[ArticleSummary]:
    """Return one page of article summaries for ``target``."""
    query = _filter_target(_summary_query(db, caller), target)

    with persistence_guard(db, "resolve feed", target=target, page=params.page, amount=params.amount):
        rows = (
            query.order_by(Article.created_at.desc(), Article.id.desc())
            .limit(params.amount)
            .offset(params.offset)
            .all()
        )
        tags = tags_for(db, [row.slug for row in rows])

    logger.debug("resolved %s page %d: %d articles", target, params.page, len(rows))
    return [_to_summary(row, tags[row.slug]) for row in rows]


def article_summary(db: Session, slug: str, caller: Optional[str]):
    """The summary row for one article, or None. Shared with article detail."""
    query = _summary_query(db, caller).add_columns(Article.body, Article.updated_at)
    with persistence_guard(db, "get article", slug=slug):
        row = query.filter(Article.slug == slug).first()
        if row is None:
            return None, None
        tags = tags_for(db, [slug])
    return row, _to_summary(row, tags[slug])


def match_expression(query: str) -> str:
    """Turn free text into an FTS5 query of quoted terms (implicit AND).

    Quoting keeps punctuation in user input from being read as FTS syntax.
    """
    terms = [term for term in query.split() if any(ch.isalnum() for ch in term)]
    return " ".join('"' + term.replace('"', '""') + '"' for term in terms)


_COUNT_SQL = text(
    """
    SELECT count(*)
    FROM articles_fts
    JOIN articles AS a ON a.id = articles_fts.rowid
    WHERE articles_fts MATCH :query
    """
)

_SEARCH_SQL = text(
    """
    SELECT
        a.slug AS slug,
        a.title AS raw_title,
        a.description AS raw_description,
        a.body AS raw_body,
        snippet(articles_fts, 0, :open, :close, :ellipsis, :title_tokens) AS title,
        snippet(articles_fts, 1, :open, :close, :ellipsis, :description_tokens) AS description,
        snippet(articles_fts, 2, :open, :close, :ellipsis, :body_tokens) AS body
    FROM articles_fts
    JOIN articles AS a ON a.id = articles_fts.rowid
    WHERE articles_fts MATCH :query
    ORDER BY rank
    LIMIT :limit OFFSET :offset
    """
)


def _highlighted(snippet: Optional[str], original: str, highlight: Highlight) -> str:
    # snippet() returns leading text even for a column without a hit, and
    # the ellipsis may itself carry the open marker
    if not snippet or not highlight.open:
        return original
    marked = snippet.replace(highlight.ellipsis, "") if highlight.ellipsis else snippet
    if highlight.open in marked:
        return snippet
    return original


def search(
    db: Session,
    query: str,
    page: int,
    amount: int,
    highlight: Highlight = Highlight(),
) -> SearchResult:
    """Full-text search over title, description and body.

    An empty query is rejected before any SQL runs. The count and the page
    share one MATCH expression so they cannot disagree.
    """
    if not query or not query.strip():
        raise ValidationFailure("Empty search string")
    expression = match_expression(query)
    if not expression:
        raise ValidationFailure("Nothing to search for")

    with persistence_guard(db, "search", query=query, page=page, amount=amount):
        total_count = db.execute(_COUNT_SQL, {"query": expression}).scalar() or 0
        rows = db.execute(
            _SEARCH_SQL,
            {
                "query": expression,
                "open": highlight.open,
                "close": highlight.close,
                "ellipsis": highlight.ellipsis,
                "title_tokens": TITLE_SNIPPET_TOKENS,
                "description_tokens": DESCRIPTION_SNIPPET_TOKENS,
                "body_tokens": BODY_SNIPPET_TOKENS,
                "limit": amount,
                "offset": page * amount,
            },
        ).all()

    matches = [
        MatchedArticle(
            slug=row.slug,
            title=_highlighted(row.title, row.raw_title, highlight),
            description=_highlighted(row.description, row.raw_description, highlight),
            body=_highlighted(row.body, row.raw_body, highlight),
        )
        for row in rows
    ]
    logger.info("search %r: %d of %d matches on page %d", query, len(matches), total_count, page)
    return SearchResult(total_count=total_count, page=page, amount=amount, matches=matches)
