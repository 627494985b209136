from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from fastapi import HTTPException

from domain.watchlist.errors import (
    CatalogUnavailableError,
    DuplicateEntryError,
    InvalidDateError,
    MovieNotFoundError,
    NoUserSelectedError,
    PartialRemovalFailureError,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)


@contextmanager
def domain_errors() -> Iterator[None]:
    """Translate watchlist domain errors into HTTP responses."""
    try:
        yield
    except NoUserSelectedError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except DuplicateEntryError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except MovieNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except InvalidDateError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except PartialRemovalFailureError as e:
        raise HTTPException(
            status_code=500,
            detail={"message": str(e), "movie_id": e.movie_id, "failed_steps": e.failed_steps},
        ) from e
    except (StoreUnavailableError, CatalogUnavailableError) as e:
        logger.warning("Upstream unavailable: %s", e)
        raise HTTPException(status_code=503, detail=str(e)) from e
