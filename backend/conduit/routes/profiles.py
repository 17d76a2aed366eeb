"""
API routes for user profiles and follows
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from .. import accounts, feeds, pagination, relations
from ..db import get_db
from ..schemas import FeedPage, FollowToggle, Profile
from ..security import current_identity
from .articles import feed_page

router = APIRouter()


@router.get("/profiles/{username}", response_model=Profile)
def get_profile(
    username: str,
    db: Session = Depends(get_db),
    caller: Optional[str] = Depends(current_identity),
):
    return accounts.get_profile(db, username, caller)


@router.get("/profiles/{username}/articles", response_model=FeedPage)
def profile_articles(
    username: str,
    request: Request,
    db: Session = Depends(get_db),
    caller: Optional[str] = Depends(current_identity),
):
    """
    Articles written by ``username``, or favorited by them when the
    ``favourites`` flag is present. Public: no identity needed.
    """
    params = pagination.decode(request.url.query)
    target = feeds.profile_target(username, params.favourites)
    return feed_page(params, feeds.resolve(db, params, caller, target))


@router.post("/profiles/{username}/follow", response_model=FollowToggle)
def follow(
    username: str,
    db: Session = Depends(get_db),
    caller: Optional[str] = Depends(current_identity),
):
    return FollowToggle(username=username, following=relations.toggle_follow(db, caller, username))
