import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import InterfaceError, OperationalError

from ..errors import StoreUnavailableError

logger = logging.getLogger("quicklink.store")


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Translate transient database failures into ``StoreUnavailableError``.

    Integrity and programming errors pass through unchanged.
    """
    try:
        yield
    except (OperationalError, InterfaceError, OSError) as exc:
        logger.warning("store_unavailable operation=%s error=%s", operation, exc)
        raise StoreUnavailableError(details={"operation": operation}) from exc
