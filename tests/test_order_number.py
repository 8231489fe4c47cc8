from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from shopcore.data.database import run_in_transaction
from shopcore.data.models.order import OrderModel
from shopcore.domain.errors import OrderNumberGenerationFailed
from shopcore.repos.order_repo import OrderRepo
from shopcore.services.order_number import OrderNumberGenerator, day_window, format_order_number

NOW = datetime(2024, 3, 5, 14, 30).astimezone()


def new_order(order_number, order_date=NOW):
    return OrderModel(
        order_number=order_number,
        user_id=1,
        subtotal=Decimal("100.00"),
        total_amount=Decimal("110.00"),
        order_date=order_date,
    )


def insert_order(db, order_number, order_date=NOW):
    def _insert(tx):
        tx.add(new_order(order_number, order_date))
        tx.flush()

    run_in_transaction(db, _insert)


def generate(db, **kwargs):
    generator = OrderNumberGenerator(clock=lambda: NOW, **kwargs)
    return run_in_transaction(db, lambda tx: generator.generate(tx))


class TestFormat:
    def test_pads_sequence(self):
        assert format_order_number(datetime(2024, 3, 5), 7) == "ORD202403050007"

    def test_wider_sequences_are_kept(self):
        assert format_order_number(datetime(2024, 3, 5), 12345) == "ORD2024030512345"

    def test_day_window(self):
        start, end = day_window(NOW)
        assert start.hour == 0 and start.minute == 0
        assert end - start == timedelta(days=1)
        assert start <= NOW < end


class TestGenerator:
    def test_first_order_of_the_day(self, db):
        assert generate(db) == "ORD202403050001"

    def test_follows_todays_count(self, db):
        insert_order(db, "ORD202403050001")
        insert_order(db, "ORD202403050002")
        assert generate(db) == "ORD202403050003"

    def test_other_days_do_not_count(self, db):
        insert_order(db, "ORD202403040001", order_date=NOW - timedelta(days=1))
        insert_order(db, "ORD202403060001", order_date=NOW + timedelta(days=1))
        assert generate(db) == "ORD202403050001"

    def test_collision_moves_to_next_candidate(self, db):
        # number taken by an order dated yesterday, so today's count misses it
        insert_order(db, "ORD202403050001", order_date=NOW - timedelta(days=1))
        assert generate(db) == "ORD202403050002"

    def test_gives_up_after_max_attempts(self, db):
        insert_order(db, "ORD202403050001", order_date=NOW - timedelta(days=1))
        insert_order(db, "ORD202403050002", order_date=NOW - timedelta(days=1))
        with pytest.raises(OrderNumberGenerationFailed):
            generate(db, max_attempts=2)


class TestAllocate:
    @pytest.fixture
    def blind_existence_check(self, monkeypatch):
        # a number held by an uncommitted checkout is invisible to the lookup
        monkeypatch.setattr(OrderRepo, "order_number_exists", lambda self, order_number: False)

    def allocate(self, db, **kwargs):
        generator = OrderNumberGenerator(clock=lambda: NOW, **kwargs)
        return run_in_transaction(
            db, lambda tx: generator.allocate(tx, lambda number: OrderRepo(tx).insert_order(new_order(number)))
        )

    def test_inserts_first_free_number(self, db):
        assert self.allocate(db).order_number == "ORD202403050001"

    def test_insert_rejection_moves_to_next_candidate(self, db, blind_existence_check):
        insert_order(db, "ORD202403050001", order_date=NOW - timedelta(days=2))

        order = self.allocate(db)

        assert order.order_number == "ORD202403050002"
        assert order.id is not None

    def test_insert_rejections_exhaust_attempts(self, db, blind_existence_check):
        insert_order(db, "ORD202403050001", order_date=NOW - timedelta(days=2))
        insert_order(db, "ORD202403050002", order_date=NOW - timedelta(days=2))

        with pytest.raises(OrderNumberGenerationFailed):
            self.allocate(db, max_attempts=2)
