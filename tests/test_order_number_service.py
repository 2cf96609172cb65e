"""
Order number generation and collision retry.
"""

import logging
from datetime import datetime, timezone

import pytest

from marketplace.config import settings
from marketplace.core.exceptions import OrderNumberConflictError
from marketplace.services.order_number_service import OrderNumberGenerator
from marketplace.services.order_service import OrderService

from helpers import order_request, stock_and_sales


class ScriptedGenerator(OrderNumberGenerator):
    """Hands out the given numbers in order, repeating the last one."""

    def __init__(self, *numbers):
        super().__init__()
        self.numbers = list(numbers)
        self.calls = 0

    def next_number(self) -> str:
        number = self.numbers[min(self.calls, len(self.numbers) - 1)]
        self.calls += 1
        return number


class TestOrderNumberGenerator:

    def test_format_is_timestamp_plus_random_digits(self):
        fixed = datetime(2026, 3, 7, 9, 5, 1, tzinfo=timezone.utc)
        generator = OrderNumberGenerator(random_digits=6, clock=lambda: fixed)

        number = generator.next_number()

        assert number.startswith("20260307090501")
        assert len(number) == 20
        assert number.isdigit()

    def test_default_digit_count_comes_from_settings(self):
        number = OrderNumberGenerator().next_number()
        assert len(number) == 14 + settings.ORDER_NUMBER_RANDOM_DIGITS

    def test_candidates_vary(self):
        generator = OrderNumberGenerator()
        assert len({generator.next_number() for _ in range(20)}) > 1


class TestOrderNumberCollision:

    async def test_collision_retries_with_new_candidate(self, db, seed, caplog):
        first = await OrderService(db, ScriptedGenerator("20260101000000000001")).create_order(
            order_request(seed, (seed.cups, 1)), buyer_id=seed.buyer.id
        )

        generator = ScriptedGenerator("20260101000000000001", "20260101000000000002")
        with caplog.at_level(logging.WARNING, logger="marketplace.services.order_service"):
            second = await OrderService(db, generator).create_order(
                order_request(seed, (seed.cups, 2)), buyer_id=seed.buyer.id
            )

        assert first.order_number == "20260101000000000001"
        assert second.order_number == "20260101000000000002"
        assert generator.calls == 2
        assert any("already taken" in r.message for r in caplog.records)
        # Reservations made before the retry are kept exactly once
        assert await stock_and_sales(db, seed.cups.id) == (7, 3)

    async def test_exhausted_retries_raise_and_release_stock(self, db, seed):
        await OrderService(db, ScriptedGenerator("20260101000000000001")).create_order(
            order_request(seed, (seed.cups, 1)), buyer_id=seed.buyer.id
        )

        generator = ScriptedGenerator("20260101000000000001")
        with pytest.raises(OrderNumberConflictError):
            await OrderService(db, generator).create_order(
                order_request(seed, (seed.cups, 4), (seed.teapot, 1)), buyer_id=seed.buyer.id
            )

        assert generator.calls == settings.ORDER_NUMBER_MAX_ATTEMPTS
        assert await stock_and_sales(db, seed.cups.id) == (9, 1)
        assert await stock_and_sales(db, seed.teapot.id) == (5, 0)
