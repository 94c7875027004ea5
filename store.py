"""Thin helpers over the SQLAlchemy session used as the record store."""
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from errors import NotFound, PersistenceError, ReferentialError
from models import db

log = logging.getLogger(__name__)

FOREIGN_KEY_VIOLATION = '23503'


def is_foreign_key_violation(exc):
    """True when the database refused a write because of a foreign key."""
    if not isinstance(exc, IntegrityError):
        return False
    orig = exc.orig
    sqlstate = getattr(orig, 'pgcode', None) or getattr(orig, 'sqlstate', None)
    if sqlstate == FOREIGN_KEY_VIOLATION:
        return True
    return 'foreign key constraint' in str(orig).lower()


def store_message(exc):
    orig = getattr(exc, 'orig', None)
    return str(orig if orig is not None else exc).strip()


def get_owned(model, record_id, user_id):
    record = model.query.filter_by(id=record_id, user_id=user_id).first()
    if record is None:
        raise NotFound(f'{model.__name__} {record_id} not found.')
    return record


def commit(action, referential_message=None):
    """Commit the session, translating store failures into typed errors."""
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        if is_foreign_key_violation(exc):
            log.warning('%s refused by foreign key: %s', action, store_message(exc))
            raise ReferentialError(
                referential_message or 'Dependent records exist for this item.'
            ) from exc
        log.error('%s failed: %s', action, store_message(exc))
        raise PersistenceError(f'Error {action}: {store_message(exc)}') from exc
