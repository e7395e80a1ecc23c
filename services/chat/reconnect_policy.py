"""Delay schedule for automatic reconnection after an abnormal closure."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

DEFAULT_RECONNECT_DELAY = 3.0


@dataclass(frozen=True)
class ReconnectPolicy:
	"""Fixed or exponential retry schedule with an optional attempt cap.

	The defaults retry every three seconds forever.
	"""

	delay: float = DEFAULT_RECONNECT_DELAY
	backoff_factor: float = 1.0
	max_delay: Optional[float] = None
	max_attempts: Optional[int] = None

	def __post_init__(self) -> None:
		if self.delay < 0:
			raise ValueError("delay must be non-negative")
		if self.backoff_factor < 1.0:
			raise ValueError("backoff_factor must be >= 1.0")
		if self.max_attempts is not None and self.max_attempts < 0:
			raise ValueError("max_attempts must be non-negative")

	@classmethod
	def exponential(
		cls,
		delay: float = 0.5,
		factor: float = 2.0,
		max_delay: float = 30.0,
		max_attempts: Optional[int] = 10,
	) -> "ReconnectPolicy":
		return cls(delay=delay, backoff_factor=factor, max_delay=max_delay, max_attempts=max_attempts)

	def next_delay(self, attempt: int) -> Optional[float]:
		"""Return the wait before the given 1-based attempt, or None to give up."""
		if attempt < 1:
			raise ValueError("attempt numbers start at 1")
		if self.max_attempts is not None and attempt > self.max_attempts:
			return None
		wait = self.delay * (self.backoff_factor ** (attempt - 1))
		if self.max_delay is not None:
			wait = min(wait, self.max_delay)
		return wait
