"""Error taxonomy shared by every Conduit operation.

Core functions raise these; ``conduit.main`` turns them into JSON responses.
Only ``PersistenceFailure`` is logged as a server fault, and its message to
the caller never carries the underlying database error.
"""

import logging
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ConduitError(Exception):
    """Base class for expected failures."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailure(ConduitError):
    """Input the caller could have prevented."""

    status_code = 422


class AuthorizationFailure(ConduitError):
    """No identity, or the identity may not perform the operation."""

    status_code = 401


class NotFound(ConduitError):
    status_code = 404


class PersistenceFailure(ConduitError):
    """A storage round trip failed."""

    status_code = 503

    def __init__(self, message: str = "Something went wrong, try again later"):
        super().__init__(message)


@contextmanager
def persistence_guard(db, operation: str, **context):
    """Roll back and re-raise storage errors as PersistenceFailure.

    ``context`` holds the identifiers logged next to the cause, e.g.
    ``slug=...`` or ``username=...``.
    """
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            "%s failed (%s): %s",
            operation,
            ", ".join(f"{key}={value!r}" for key, value in context.items()),
            e,
        )
        raise PersistenceFailure() from e
