from contextlib import contextmanager

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from aquahome.errors import AlreadyProcessed, StorageError
from aquahome.extensions import db


@contextmanager
def transaction(label="operation"):
    """
    Unit of work over the request session.

    Commits when the block exits cleanly and rolls back on every other exit,
    including domain errors raised halfway through. Storage failures are
    re-raised as StorageError so callers see one generic server error.
    """
    session = db.session
    try:
        yield session
        session.commit()
    except IntegrityError as exc:
        # A unique guard fired: someone else committed the same transition first.
        session.rollback()
        current_app.logger.warning("Conflicting write during %s: %s", label, exc.orig)
        raise AlreadyProcessed("Conflicting update from a concurrent request.") from exc
    except SQLAlchemyError as exc:
        session.rollback()
        current_app.logger.exception("Storage failure during %s", label)
        raise StorageError() from exc
    except Exception:
        session.rollback()
        raise
