import time
from typing import Optional

from app.core.errors import Cancelled


class Deadline:
    """Per-request deadline checked by services before each blocking step."""

    def __init__(self, expires_at: float):
        self.expires_at = expires_at

    @classmethod
    def after(cls, seconds: float) -> "Deadline":
        return cls(time.monotonic() + seconds)

    def remaining(self) -> float:
        return self.expires_at - time.monotonic()

    def expired(self) -> bool:
        return self.remaining() <= 0

    def check(self, step: Optional[str] = None) -> None:
        if self.expired():
            raise Cancelled(f"Request deadline exceeded ({step})" if step else None)


def check_deadline(deadline: Optional[Deadline], step: Optional[str] = None) -> None:
    if deadline is not None:
        deadline.check(step)
