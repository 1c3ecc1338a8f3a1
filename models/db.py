from contextlib import contextmanager

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


@contextmanager
def atomic():
    """
    Unit of work around the current session.
    Commits when the block finishes, rolls back everything written in the
    block if it raises.
    """
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
