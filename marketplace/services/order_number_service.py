"""
Order number candidates.

Format: UTC timestamp yyyyMMddHHmmss followed by random digits, e.g.
20261019143005482913. Nothing here checks uniqueness; the orders table's
unique constraint does, and OrderService retries with a new candidate.
"""
from datetime import datetime, timezone
from typing import Callable, Optional
import secrets

from marketplace.config import settings


class OrderNumberGenerator:
    """Produces order number candidates."""

    def __init__(
        self,
        random_digits: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.random_digits = random_digits if random_digits is not None else settings.ORDER_NUMBER_RANDOM_DIGITS
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def next_number(self) -> str:
        timestamp = self.clock().strftime("%Y%m%d%H%M%S")
        suffix = "".join(secrets.choice("0123456789") for _ in range(self.random_digits))
        return f"{timestamp}{suffix}"
