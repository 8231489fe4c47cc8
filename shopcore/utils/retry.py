# shopcore/utils/retry.py
from sqlalchemy.exc import OperationalError
from tenacity import (
    Retrying,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
import requests

from shopcore.utils.settings import ORDER_NUMBER_MAX_ATTEMPTS


def http_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.3, min=0.3, max=3),
        retry=retry_if_exception_type(requests.RequestException),
    )


class OrderNumberCollision(Exception):
    """Candidate order number already taken."""


def order_number_retrying(max_attempts: int | None = None) -> Retrying:
    #collision or transient db error -> short pause, next candidate
    return Retrying(
        reraise=True,
        stop=stop_after_attempt(max_attempts or ORDER_NUMBER_MAX_ATTEMPTS),
        wait=wait_exponential(multiplier=0.05, min=0.05, max=0.5),
        retry=retry_if_exception_type((OrderNumberCollision, OperationalError)),
    )
