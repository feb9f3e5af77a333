from contextlib import contextmanager
from sqlalchemy import exc

from unityshop.extensions import db


class StoreUnavailable(Exception):
    """The database could not be reached or did not answer in time."""


class InvariantViolation(Exception):
    """A computed value contradicts a rule that must always hold."""


@contextmanager
def store_errors():
    try:
        yield
    except (exc.OperationalError, exc.InterfaceError, exc.TimeoutError) as e:
        db.session.rollback()
        raise StoreUnavailable(str(e)) from e


def rejection(reason, message, **extra):
    result = {'status': 'error', 'reason': reason, 'message': message}
    result.update(extra)
    return result


def is_rejection(result):
    return isinstance(result, dict) and result.get('status') == 'error'
