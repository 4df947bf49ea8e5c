"""Request-scoped deadlines."""

import time
from dataclasses import dataclass
from typing import Self

from events.domain.errors import StoreTimeoutError


@dataclass(frozen=True)
class Deadline:
    """Absolute point on the monotonic clock after which work is abandoned."""

    expires_at: float

    @classmethod
    def after(cls, seconds: float) -> Self:
        return cls(expires_at=time.monotonic() + seconds)

    def remaining(self) -> float:
        return max(0.0, self.expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self.expires_at

    def check(self) -> None:
        """Raises StoreTimeoutError once the deadline has passed."""
        if self.expired:
            raise StoreTimeoutError()
