# storefront/utils/retry.py
from sqlalchemy.exc import OperationalError
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from storefront.utils.settings import DB_RETRY_ATTEMPTS


def db_retry():
    """
    Retry a whole unit of work when the database reports a transient
    failure (lock wait timeout, "database is locked", dropped connection).

    The wrapped callable must roll back its own session before re-raising,
    so each attempt starts from a clean transaction.
    """
    return retry(
        reraise=True,
        stop=stop_after_attempt(DB_RETRY_ATTEMPTS),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        retry=retry_if_exception_type(OperationalError),
    )
