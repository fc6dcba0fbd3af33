import contextlib
import dataclasses
import time
from collections.abc import AsyncIterator, Iterable, Iterator

from replicaop._cogs.aiokits import aiotime
from replicaop._cogs.helpers import typedefs


@dataclasses.dataclass
class Throttler:
    """ A state of throttling for one specific key (there can be many). """
    source_of_delays: Iterator[float] | None = None
    last_used_delay: float | None = None
    active_until: float | None = None  # internal clock

    @property
    def active(self) -> bool:
        return self.active_until is not None

    def reset(self) -> None:
        # Release the iterator to keep the memory free during normal run.
        self.source_of_delays = self.last_used_delay = self.active_until = None


@contextlib.asynccontextmanager
async def throttled(
        *,
        throttler: Throttler,
        delays: Iterable[float],
        logger: typedefs.Logger,
        errors: type[BaseException] | tuple[type[BaseException], ...] = Exception,
) -> AsyncIterator[None]:
    """
    A helper to throttle any arbitrary operation on its errors.

    The errors of interest are logged and suppressed, and then the throttling
    sleeps for the next delay in the sequence, before exiting the context.
    Every next error uses the next delay; when the delays are exhausted,
    the last one is repeated. A successful run resets the sequence.

    Other errors and all base exceptions (e.g. cancellations) are escalated.
    """
    try:
        yield

    except Exception as e:

        # If it is not an error-of-interest, escalate normally. BaseExceptions are escalated always.
        if not isinstance(e, errors):
            raise

        # Activate throttling if not yet active, or reuse the active sequence of delays.
        if throttler.source_of_delays is None:
            throttler.source_of_delays = iter(delays)

        # Choose a delay. If there are none, avoid throttling at all.
        delay = next(throttler.source_of_delays, throttler.last_used_delay)
        if delay is None:
            logger.exception(f"Retrying with no delay after an unexpected error: {e!r}")
        else:
            throttler.last_used_delay = delay
            throttler.active_until = time.monotonic() + delay
            logger.exception(f"Throttling for {delay} seconds due to an unexpected error: {e!r}")

    else:
        throttler.reset()

    # Sleep only after the fresh errors: the retries must not hammer the cluster.
    # The sleep is not interrupted by new triggers, but it can be cancelled.
    if throttler.active_until is not None:
        await aiotime.sleep(throttler.active_until - time.monotonic())
        throttler.active_until = None
        logger.info("Throttling is over. Switching back to normal operations.")
