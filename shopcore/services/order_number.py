# shopcore/services/order_number.py
from datetime import datetime, timedelta
from typing import Callable, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from shopcore.data.errors import DuplicateKeyViolation
from shopcore.domain.errors import OrderNumberGenerationFailed
from shopcore.repos.order_repo import OrderRepo
from shopcore.utils.retry import OrderNumberCollision, order_number_retrying
from shopcore.utils.settings import ORDER_NUMBER_MAX_ATTEMPTS
from shopcore.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

ORDER_NUMBER_PREFIX = "ORD"


def local_now() -> datetime:
    return datetime.now().astimezone()


def format_order_number(day: datetime, sequence: int) -> str:
    """ORD + YYYYMMDD + sequence padded to 4 digits (wider once a day passes 9999)."""
    return f"{ORDER_NUMBER_PREFIX}{day:%Y%m%d}{sequence:04d}"


def day_window(moment: datetime) -> tuple[datetime, datetime]:
    start = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


class OrderNumberGenerator:
    """
    Date-scoped sequential order numbers.

    The candidate sequence is today's order count + 1, shifted by the attempt
    index so a retry does not pick the number another checkout just took.
    Must run on the checkout transaction so the existence check and the
    insert see the same data.

    A candidate counts as taken when the existence check finds it, or when
    the unique index on orders.order_number rejects the insert (a concurrent
    checkout holding the same number uncommitted). Both move on to the next
    candidate until the attempts run out.
    """

    def __init__(self, max_attempts: int = ORDER_NUMBER_MAX_ATTEMPTS, clock: Callable[[], datetime] = local_now):
        self.max_attempts = max_attempts
        self.clock = clock

    def generate(self, tx: Session, now: datetime | None = None) -> str:
        """Pick a free number without inserting anything."""
        return self.allocate(tx, lambda candidate: candidate, now)

    def allocate(self, tx: Session, create: Callable[[str], T], now: datetime | None = None) -> T:
        """
        Pick a candidate and hand it to ``create``, which persists the row
        inside its own savepoint. A DuplicateKeyViolation from ``create`` is a
        collision like any other.
        """
        now = now or self.clock()
        start, end = day_window(now)
        repo = OrderRepo(tx)

        try:
            for attempt in order_number_retrying(self.max_attempts):
                with attempt:
                    index = attempt.retry_state.attempt_number - 1
                    #savepoint keeps a failed probe from poisoning the checkout transaction
                    with tx.begin_nested():
                        count = repo.count_orders_between(start, end)
                        candidate = format_order_number(now, count + 1 + index)
                        if repo.order_number_exists(candidate):
                            logger.warning(f"Order number {candidate} taken (attempt {index + 1})")
                            raise OrderNumberCollision(candidate)

                    try:
                        return create(candidate)
                    except DuplicateKeyViolation as e:
                        logger.warning(f"Order number {candidate} rejected on insert (attempt {index + 1})")
                        raise OrderNumberCollision(candidate) from e
        except (OrderNumberCollision, OperationalError) as e:
            raise OrderNumberGenerationFailed(
                f"Could not allocate an order number after {self.max_attempts} attempts"
            ) from e
