"""
Caller-supplied deadlines on the monotonic clock.

A Deadline is absolute: build it once per request and pass the same object to every
store call made on behalf of that request.
"""
from __future__ import annotations

import time

from services.errors import DeadlineExceeded


class Deadline:
    __slots__ = ("expires_at",)

    def __init__(self, expires_at: float):
        self.expires_at = expires_at

    @classmethod
    def after(cls, seconds: float) -> "Deadline":
        return cls(time.monotonic() + seconds)

    def remaining(self) -> float:
        return max(0.0, self.expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self.expires_at

    def check(self, what: str = "operation") -> None:
        if self.expired:
            raise DeadlineExceeded(f"Deadline exceeded during {what}")

    def __repr__(self):
        return f"<Deadline remaining={self.remaining():.3f}s>"
