"""Feed parameters and their query-string form.

``PageParams`` is rebuilt from the URL on every navigation, so everything
here is pure: no I/O, nothing cached. ``decode`` never fails; anything it
cannot read falls back to the field default.
"""

from urllib.parse import parse_qs, quote, urlencode

from pydantic import BaseModel, ConfigDict

DEFAULT_PAGE = 0
DEFAULT_AMOUNT = 10
# Offered by the items-per-page selector. Not enforced here.
ALLOWED_AMOUNTS = (1, 5, 10, 20, 100)
# page * amount must stay within a signed 64-bit INTEGER
MAX_PAGE = 2**31 - 1
MAX_AMOUNT = 2**31 - 1

_TRUE_VALUES = {"", "1", "true", "yes", "on"}


class PageParams(BaseModel):
    """Which slice of which feed to show.

    A tag filter and ``my_feed`` are never set together by the UI; when both
    are present the tag wins (see ``conduit.feeds.home_target``).
    """

    page: int = DEFAULT_PAGE
    amount: int = DEFAULT_AMOUNT
    tag: str = ""
    my_feed: bool = False
    favourites: bool = False

    model_config = ConfigDict(frozen=True)

    @property
    def offset(self) -> int:
        return self.page * self.amount

    def __str__(self) -> str:
        return encode(self)


def _first(values, key):
    found = values.get(key)
    return found[0] if found else None


def _parse_int(raw, default, minimum, maximum):
    if raw is None:
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        return default
    return value if minimum <= value <= maximum else default


def decode(query_string: str) -> PageParams:
    """Read ``PageParams`` from a query string, with or without leading ``?``."""
    values = parse_qs((query_string or "").lstrip("?"), keep_blank_values=True)

    my_feed = _first(values, "my_feed")
    return PageParams(
        page=_parse_int(_first(values, "page"), DEFAULT_PAGE, 0, MAX_PAGE),
        amount=_parse_int(_first(values, "amount"), DEFAULT_AMOUNT, 1, MAX_AMOUNT),
        tag=_first(values, "tag") or "",
        my_feed=my_feed is not None and my_feed.strip().lower() in _TRUE_VALUES,
        # presence-only flag
        favourites="favourites" in values,
    )


def encode(params: PageParams) -> str:
    """Canonical query string, without the leading ``?``.

    ``amount`` is always written so shared links do not depend on the
    server-side default.
    """
    pairs = []
    if params.page != DEFAULT_PAGE:
        pairs.append(("page", params.page))
    pairs.append(("amount", params.amount))
    if params.tag:
        pairs.append(("tag", params.tag))
    if params.my_feed:
        pairs.append(("my_feed", "true"))
    if params.favourites:
        pairs.append(("favourites", "true"))
    return urlencode(pairs, quote_via=quote)


def href(path: str, params: PageParams) -> str:
    return f"{path}?{encode(params)}"


def with_page(params: PageParams, page: int) -> PageParams:
    # No upper bound: only the result set knows how many pages there are.
    return params.model_copy(update={"page": page})


def next_page(params: PageParams) -> PageParams:
    return with_page(params, params.page + 1)


def previous_page(params: PageParams) -> PageParams:
    if params.page > 0:
        return with_page(params, params.page - 1)
    return params


def reset_page(params: PageParams) -> PageParams:
    return with_page(params, DEFAULT_PAGE)


def with_amount(params: PageParams, amount: int) -> PageParams:
    return params.model_copy(update={"amount": amount, "page": DEFAULT_PAGE})


def with_tag(params: PageParams, tag: str) -> PageParams:
    return params.model_copy(update={"tag": tag, "page": DEFAULT_PAGE})


def with_my_feed(params: PageParams, my_feed: bool) -> PageParams:
    return params.model_copy(update={"my_feed": my_feed, "page": DEFAULT_PAGE})


def has_previous_page(params: PageParams) -> bool:
    return params.page > 0


def has_next_page(params: PageParams, returned_count: int) -> bool:
    """Full page means there may be more.

    Feeds carry no total count, so on an exact multiple of ``amount`` the
    last "next" leads to an empty page.
    """
    return returned_count > 0 and returned_count >= params.amount
