"""
Convergence Wait Module

Architectural Intent:
- The one polling protocol every lifecycle operation uses to wait for the
  cloud API, the instance metadata and the kernel to catch up with a
  mutation
- Predicates report a tri-state PollResult (converged, pending, failed)
  instead of signalling "not yet" through exceptions
- pending_on() adapts a plain boolean predicate: the exception types it is
  given mean "not yet converged", anything else propagates immediately

Timing:
- Poll at a fixed interval (default 0.3s) until converged or the timeout
  budget (default 120s) is spent, then raise ConvergenceTimeoutError
- clock and sleep are injectable so tests never sleep for real
"""

from __future__ import annotations
import logging
import time
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Callable, Optional, Union

from enisync.domain.errors import ConvergenceTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120.0
DEFAULT_INTERVAL = 0.3


class PollState(Enum):
    CONVERGED = auto()
    PENDING = auto()
    FAILED = auto()


@dataclass(frozen=True)
class PollResult:
    state: PollState
    value: Any = None
    error: Optional[BaseException] = None

    @classmethod
    def converged(cls, value: Any = True) -> "PollResult":
        return cls(PollState.CONVERGED, value=value)

    @classmethod
    def pending(cls) -> "PollResult":
        return cls(PollState.PENDING)

    @classmethod
    def failed(cls, error: BaseException) -> "PollResult":
        return cls(PollState.FAILED, error=error)


Predicate = Callable[[], Union[PollResult, bool, Any]]


def pending_on(
    predicate: Callable[[], Any],
    *exception_types: type[BaseException],
) -> Callable[[], PollResult]:
    """Wrap a predicate so the given exception types count as 'not yet'.

    A truthy return value converges with that value; a falsy one is pending.
    """

    def poll() -> PollResult:
        try:
            value = predicate()
        except exception_types as e:
            logger.debug("Not converged yet: %s", e)
            return PollResult.pending()
        if isinstance(value, PollResult):
            return value
        return PollResult.converged(value) if value else PollResult.pending()

    return poll


@dataclass(frozen=True)
class WaitReport:
    condition: str
    converged: bool
    polls: int
    elapsed: float


class ConvergenceWaiter:
    """Polls predicates until they converge or a timeout budget is spent."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        interval: float = DEFAULT_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        observer: Optional[Callable[[WaitReport], None]] = None,
    ):
        self.timeout = timeout
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._observer = observer

    def wait_for(
        self,
        condition: str,
        predicate: Predicate,
        timeout: Optional[float] = None,
        interval: Optional[float] = None,
    ) -> Any:
        """Block until predicate converges; returns its converged value.

        Raises ConvergenceTimeoutError naming `condition` when the budget is
        spent, and re-raises the error of a FAILED result immediately.
        """
        timeout = self.timeout if timeout is None else timeout
        interval = self.interval if interval is None else interval
        started = self._clock()
        deadline = started + timeout
        polls = 0

        logger.debug("Waiting for %s (timeout %ss)", condition, timeout)
        while True:
            polls += 1
            result = predicate()
            if not isinstance(result, PollResult):
                result = PollResult.converged(result) if result else PollResult.pending()

            if result.state is PollState.CONVERGED:
                self._report(condition, True, polls, started)
                logger.debug("Converged: %s after %d polls", condition, polls)
                return result.value
            if result.state is PollState.FAILED:
                self._report(condition, False, polls, started)
                raise result.error

            if self._clock() + interval > deadline:
                self._report(condition, False, polls, started)
                logger.warning("Timed out waiting for %s after %d polls", condition, polls)
                raise ConvergenceTimeoutError(condition, timeout)
            self._sleep(interval)

    def _report(self, condition: str, converged: bool, polls: int, started: float) -> None:
        if self._observer:
            self._observer(
                WaitReport(condition, converged, polls, self._clock() - started)
            )
