"""
Circuit Breaker
Per-service protection for outbound requests (site crawls, search scraping,
RDAP, Apollo, Places, Hunter).

  closed:    requests allowed, failures tracked (a success decays the count by one)
  open:      requests blocked until open_duration has elapsed
  half-open: a few probe requests allowed; enough successes close the circuit

Rate limiting is tracked separately: a rate-limit signature installs a backoff
window (30s base, doubling per consecutive hit, capped at x32) that blocks
requests regardless of circuit state. A success clears it.

State is held in a CircuitRegistry owned by the caller (the API keeps one on
app.state). Nothing is persisted; a restart resets every circuit.
"""
from __future__ import annotations

import enum
import logging
import re
import threading
import time
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

RATE_LIMIT_BASE_SECONDS = 30.0
RATE_LIMIT_MAX_MULTIPLIER = 32
HALF_OPEN_DELAY_SECONDS = 5.0
CLOSED_DELAY_SECONDS = 1.0

_RATE_LIMIT_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (r"429", r"too many requests", r"rate limit", r"quota exceeded", r"throttl", r"slow down")
]

_BLOCKED_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"captcha", r"blocked", r"forbidden", r"access denied",
        r"unusual traffic", r"bot detection", r"cloudflare", r"403",
    )
]


class CircuitState(str, enum.Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


class CircuitOpenError(RuntimeError):
    """Raised when a circuit denies admission and the caller gave no fallback."""

    def __init__(self, service: str, message: str | None = None):
        super().__init__(message or f"Circuit open for {service}")
        self.service = service


@dataclass(frozen=True)
class CircuitConfig:
    failure_threshold: int = 5
    success_threshold: int = 3
    open_duration: float = 60.0
    half_open_max_requests: int = 3


@dataclass
class CircuitStats:
    state: CircuitState = CircuitState.CLOSED
    failures: int = 0
    successes: int = 0
    consecutive_successes: int = 0
    total_requests: int = 0
    last_failure: Optional[float] = None
    last_success: Optional[float] = None
    opened_at: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "failures": self.failures,
            "successes": self.successes,
            "consecutive_successes": self.consecutive_successes,
            "total_requests": self.total_requests,
            "last_failure": self.last_failure,
            "last_success": self.last_success,
            "opened_at": self.opened_at,
        }


@dataclass
class RateLimitBackoff:
    until: float
    multiplier: int


def is_rate_limit_error(error: str) -> bool:
    return any(p.search(error) for p in _RATE_LIMIT_PATTERNS)


def is_blocked_error(error: str) -> bool:
    return any(p.search(error) for p in _BLOCKED_PATTERNS)


_MISSING: Any = object()


class CircuitRegistry:
    def __init__(
        self,
        default_config: CircuitConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_config = default_config or CircuitConfig()
        self._clock = clock
        self._circuits: dict[str, CircuitStats] = {}
        self._configs: dict[str, CircuitConfig] = {}
        self._backoff: dict[str, RateLimitBackoff] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Configuration / state access
    # ------------------------------------------------------------------

    def _circuit(self, service: str) -> CircuitStats:
        circuit = self._circuits.get(service)
        if circuit is None:
            circuit = CircuitStats()
            self._circuits[service] = circuit
        return circuit

    def config_for(self, service: str) -> CircuitConfig:
        return self._configs.get(service, self.default_config)

    def configure(self, service: str, **overrides: Any) -> CircuitConfig:
        """Override thresholds for one service; unspecified fields keep the defaults."""
        config = replace(self.default_config, **overrides)
        self._configs[service] = config
        return config

    def get_state(self, service: str) -> CircuitStats:
        with self._lock:
            return replace(self._circuit(service))

    def all_states(self) -> dict[str, CircuitStats]:
        with self._lock:
            return {name: replace(stats) for name, stats in self._circuits.items()}

    def reset(self, service: str) -> None:
        with self._lock:
            self._circuits.pop(service, None)
            self._backoff.pop(service, None)
        logger.info(f"[Circuit] {service}: reset")

    def reset_all(self) -> None:
        with self._lock:
            self._circuits.clear()
            self._backoff.clear()
        logger.info("[Circuit] All circuits reset")

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    def can_make_request(self, service: str) -> bool:
        with self._lock:
            now = self._clock()
            backoff = self._backoff.get(service)
            if backoff and backoff.until > now:
                logger.debug(f"[Circuit] {service}: blocked by rate-limit backoff ({backoff.until - now:.1f}s left)")
                return False

            circuit = self._circuit(service)
            config = self.config_for(service)

            if circuit.state == CircuitState.CLOSED:
                return True

            if circuit.state == CircuitState.OPEN:
                if circuit.opened_at is not None and now - circuit.opened_at >= config.open_duration:
                    circuit.state = CircuitState.HALF_OPEN
                    circuit.consecutive_successes = 0
                    logger.info(f"[Circuit] {service}: transitioning to half-open")
                    return True
                return False

            return circuit.consecutive_successes < config.half_open_max_requests

    # ------------------------------------------------------------------
    # Outcome recording
    # ------------------------------------------------------------------

    def record_success(self, service: str) -> None:
        with self._lock:
            circuit = self._circuit(service)
            config = self.config_for(service)

            circuit.successes += 1
            circuit.total_requests += 1
            circuit.last_success = self._clock()
            circuit.consecutive_successes += 1
            self._backoff.pop(service, None)

            if circuit.state == CircuitState.HALF_OPEN:
                if circuit.consecutive_successes >= config.success_threshold:
                    circuit.state = CircuitState.CLOSED
                    circuit.failures = 0
                    circuit.opened_at = None
                    logger.info(
                        f"[Circuit] {service}: closed after {circuit.consecutive_successes} successes"
                    )
            elif circuit.state == CircuitState.CLOSED:
                circuit.failures = max(0, circuit.failures - 1)

    def record_failure(
        self,
        service: str,
        error: BaseException | str,
        *,
        is_rate_limit: bool = False,
        is_blocked: bool = False,
    ) -> None:
        error_str = str(error)
        with self._lock:
            circuit = self._circuit(service)
            config = self.config_for(service)
            now = self._clock()

            circuit.failures += 1
            circuit.total_requests += 1
            circuit.last_failure = now
            circuit.consecutive_successes = 0

            if is_rate_limit or is_rate_limit_error(error_str):
                self._apply_rate_limit(service, now)

            if is_blocked or is_blocked_error(error_str):
                circuit.state = CircuitState.OPEN
                circuit.opened_at = now
                logger.warning(f"[Circuit] {service}: opened, blocking detected ({error_str[:120]})")
                return

            if circuit.state == CircuitState.HALF_OPEN:
                circuit.state = CircuitState.OPEN
                circuit.opened_at = now
                logger.warning(f"[Circuit] {service}: re-opened after failure in half-open state")
            elif circuit.state == CircuitState.CLOSED and circuit.failures >= config.failure_threshold:
                circuit.state = CircuitState.OPEN
                circuit.opened_at = now
                logger.warning(f"[Circuit] {service}: opened after {circuit.failures} failures")

    def _apply_rate_limit(self, service: str, now: float) -> None:
        current = self._backoff.get(service)
        multiplier = min(current.multiplier * 2, RATE_LIMIT_MAX_MULTIPLIER) if current else 1
        backoff_seconds = RATE_LIMIT_BASE_SECONDS * multiplier
        self._backoff[service] = RateLimitBackoff(until=now + backoff_seconds, multiplier=multiplier)
        logger.warning(f"[Circuit] {service}: rate-limit backoff {backoff_seconds:.0f}s (x{multiplier})")

    def rate_limit_backoff(self, service: str) -> RateLimitBackoff | None:
        with self._lock:
            backoff = self._backoff.get(service)
            return replace(backoff) if backoff else None

    # ------------------------------------------------------------------
    # Wrapper
    # ------------------------------------------------------------------

    async def execute(
        self,
        service: str,
        operation: Callable[[], Awaitable[T]],
        *,
        fallback: Any = _MISSING,
        throw_on_open: bool = False,
    ) -> T:
        """Run `operation` under the circuit for `service`.

        A denied request raises CircuitOpenError unless a fallback value is
        supplied (throw_on_open forces the raise even then). Failures are
        recorded and re-raised.
        """
        if not self.can_make_request(service):
            if throw_on_open:
                raise CircuitOpenError(service)
            if fallback is not _MISSING:
                return fallback
            raise CircuitOpenError(service, f"Circuit open for {service} and no fallback provided")

        try:
            result = await operation()
        except Exception as e:
            self.record_failure(service, e)
            raise
        self.record_success(service)
        return result

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def recommended_delay(self, service: str) -> float:
        """Seconds a caller should wait before the next request to `service`."""
        with self._lock:
            now = self._clock()
            backoff = self._backoff.get(service)
            if backoff and backoff.until > now:
                return backoff.until - now

            circuit = self._circuit(service)
            if circuit.state == CircuitState.OPEN:
                elapsed = now - circuit.opened_at if circuit.opened_at is not None else 0.0
                return max(0.0, self.config_for(service).open_duration - elapsed)
            if circuit.state == CircuitState.HALF_OPEN:
                return HALF_OPEN_DELAY_SECONDS
            return CLOSED_DELAY_SECONDS

    def health_status(self) -> dict[str, list[str]]:
        healthy: list[str] = []
        degraded: list[str] = []
        unhealthy: list[str] = []
        with self._lock:
            for service, stats in self._circuits.items():
                if stats.state == CircuitState.CLOSED:
                    (healthy if stats.failures == 0 else degraded).append(service)
                elif stats.state == CircuitState.HALF_OPEN:
                    degraded.append(service)
                else:
                    unhealthy.append(service)
        return {"healthy": healthy, "degraded": degraded, "unhealthy": unhealthy}
