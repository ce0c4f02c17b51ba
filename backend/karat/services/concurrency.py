# Overview: Transaction boundary and row-locking helpers shared by every mutating service.

from __future__ import annotations

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Stock transitions also use a conditional UPDATE so the guard holds there.
    """
    return query.with_for_update()


def run_in_transaction(func):
    """
    Run func() as one unit of work: commit on success, roll back and
    re-raise on any exception.

    There is no retry. A conflicting writer surfaces as an error to the
    caller, who decides whether to try again.
    """
    try:
        result = func()
        db.session.commit()
        return result
    except Exception:
        db.session.rollback()
        raise
