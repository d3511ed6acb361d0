"""Translation of data store failures into draw engine errors."""

from __future__ import annotations

import contextlib
import logging
from typing import Iterator

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from .errors import ConcurrencyConflictError, UpstreamUnavailableError

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def store_errors(action: str) -> Iterator[None]:
    """Re-raise data store failures inside the block as engine errors.

    Stale row versions and unique-constraint races become
    :class:`ConcurrencyConflictError`; connectivity failures become
    :class:`UpstreamUnavailableError`. The session must be rolled back by the
    caller after either.
    """
    try:
        yield
    except StaleDataError as e:
        logger.info(f"{action}: record changed concurrently ({e})")
        raise ConcurrencyConflictError(
            f"{action} rejected: the record was modified by another action; reload and retry"
        ) from e
    except IntegrityError as e:
        logger.info(f"{action}: conflicting write ({e.orig})")
        raise ConcurrencyConflictError(
            f"{action} rejected: a conflicting record was written concurrently; reload and retry"
        ) from e
    except OperationalError as e:
        logger.error(f"{action}: data store unavailable: {e.orig}")
        raise UpstreamUnavailableError(f"{action} failed: data store unavailable") from e
    except DBAPIError as e:
        if not e.connection_invalidated:
            raise
        logger.error(f"{action}: data store connection lost: {e.orig}")
        raise UpstreamUnavailableError(f"{action} failed: data store connection lost") from e
