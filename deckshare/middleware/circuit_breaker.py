# deckshare/middleware/circuit_breaker.py
# Circuit breaker for render backends
# A backend that keeps failing is skipped until its recovery timeout passes

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from enum import Enum
from typing import AsyncIterator, Optional

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"        # calls pass, failures are counted
    OPEN = "open"            # calls rejected until the recovery timeout passes
    HALF_OPEN = "half_open"  # one probe call at a time decides whether to close again


class CircuitBreakerError(Exception):
    """The backend is disabled; the call was not attempted."""

    def __init__(self, backend: str, recovery_time: float):
        self.backend = backend
        self.recovery_time = recovery_time
        super().__init__(f"Render backend '{backend}' is disabled for another {recovery_time:.1f}s")


class CircuitBreaker:
    """
    Per-backend breaker around ``guard()``.

    ``failure_threshold`` consecutive failures open the circuit. After
    ``recovery_timeout`` seconds the next call is let through as a probe.
    Only one probe runs at a time; other callers are rejected until it
    finishes. ``success_threshold`` probe successes close the circuit and a
    probe failure opens it again. A cancelled call counts as neither and
    frees the probe slot.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        success_threshold: int = 1,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.success_threshold = success_threshold

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at: Optional[float] = None
        self._probe_in_flight = False
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    def retry_after(self) -> float:
        """Seconds until an open circuit admits a probe."""
        if self._opened_at is None:
            return 0.0
        return max(0.0, self._opened_at + self.recovery_timeout - time.monotonic())

    def _set_state(self, state: CircuitState) -> None:
        if state is self._state:
            return
        logger.info(f"Render backend '{self.name}' breaker {self._state.value} -> {state.value}")
        self._state = state
        self._success_count = 0
        if state is CircuitState.OPEN:
            self._opened_at = time.monotonic()

    async def _admit(self) -> bool:
        """Returns True when the call is admitted as the half-open probe."""
        async with self._lock:
            if self._state is CircuitState.CLOSED:
                return False
            if self._state is CircuitState.OPEN:
                wait = self.retry_after()
                if wait > 0:
                    raise CircuitBreakerError(self.name, wait)
                self._set_state(CircuitState.HALF_OPEN)
            if self._probe_in_flight:
                raise CircuitBreakerError(self.name, 0.0)
            self._probe_in_flight = True
            return True

    async def _release_probe(self) -> None:
        async with self._lock:
            self._probe_in_flight = False

    async def _record(self, ok: bool, probe: bool = False) -> None:
        async with self._lock:
            if probe:
                self._probe_in_flight = False
            if ok:
                self._failure_count = 0
                if self._state is CircuitState.HALF_OPEN:
                    self._success_count += 1
                    if self._success_count >= self.success_threshold:
                        self._set_state(CircuitState.CLOSED)
                return

            self._failure_count += 1
            if self._state is CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
                self._set_state(CircuitState.OPEN)

    @asynccontextmanager
    async def guard(self) -> AsyncIterator[None]:
        """Wrap one backend call. Raises CircuitBreakerError when open."""
        probe = await self._admit()
        try:
            yield
        except Exception:
            await self._record(False, probe)
            raise
        except BaseException:
            if probe:
                await self._release_probe()
            raise
        await self._record(True, probe)

    def reset(self) -> None:
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at = None
        self._probe_in_flight = False
        logger.info(f"Render backend '{self.name}' breaker reset")
