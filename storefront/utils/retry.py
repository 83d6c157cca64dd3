# storefront/utils/retry.py
from redis.exceptions import RedisError
from sqlalchemy.exc import IntegrityError
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type


def redis_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(RedisError),
    )


def integrity_retry():
    """
    Re-run a whole transactional operation after a unique-constraint collision
    (two requests creating the same cart, cart line or daily order counter).
    The failed attempt has already been rolled back by `atomic`.
    """
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.05, min=0.05, max=0.5),
        retry=retry_if_exception_type(IntegrityError),
    )
