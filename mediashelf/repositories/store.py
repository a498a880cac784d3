# mediashelf/repositories/store.py
import logging
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session

from mediashelf.core.errors import Conflict, StoreError

logger = logging.getLogger(__name__)


@contextmanager
def store_operation(session: Session, action: str):
    """
    Translate SQLAlchemy failures inside the block into account errors.

    - IntegrityError (e.g. two writers racing for one username) -> Conflict
    - any other SQLAlchemyError -> StoreError

    The session is rolled back first. Nothing is retried.
    """
    try:
        yield
    except IntegrityError as exc:
        session.rollback()
        logger.warning(f"Integrity violation during {action}: {exc.orig}")
        raise Conflict() from exc
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error(f"Account store failure during {action}: {exc}")
        raise StoreError() from exc
