"""Single-writer discipline for task and membership mutations."""

import logging
import sqlite3
import threading
from contextlib import contextmanager

from taskboard.core.errors import PersistenceError

logger = logging.getLogger(__name__)

# Re-entrant so that an engine holding the lock can call store helpers that take it too.
_mutation_lock = threading.RLock()
_state = threading.local()


@contextmanager
def mutation_lock():
    """Hold the process-wide write lock for one read-rank-write unit."""
    with _mutation_lock:
        yield


@contextmanager
def atomic(db: sqlite3.Connection):
    """Run a block of writes under the mutation lock as one transaction.

    Nested blocks join the outermost one; only the outermost commits. Any
    sqlite error rolls back everything written and is re-raised as
    PersistenceError.
    """
    with _mutation_lock:
        depth = getattr(_state, "depth", 0)
        _state.depth = depth + 1
        try:
            yield db
            if depth == 0:
                db.commit()
        except sqlite3.Error as e:
            if depth == 0:
                db.rollback()
                logger.error("Store write failed, rolled back: %s", e)
            raise PersistenceError(f"Store write failed: {e}") from e
        except BaseException:
            if depth == 0:
                db.rollback()
            raise
        finally:
            _state.depth = depth
