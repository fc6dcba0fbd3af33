"""
Advanced modes of sleeping.
"""
import asyncio


async def sleep(
        delay: float | None,
        wakeup: asyncio.Event | None = None,
) -> float | None:
    """
    Measure the sleep time: either until the timeout, or until the event is set.

    Returns the number of seconds left to sleep, or ``None`` if the sleep was
    not interrupted and reached its specified delay (an equivalent of ``0``).
    In theory, the result can be ``0`` if the sleep was interrupted precisely
    the last moment before timing out; this is unlikely to happen though.

    Zero and negative delays return immediately, but still yield the control
    to other tasks in the event loop (as ``asyncio.sleep(0)`` does).
    """
    if delay is None or delay <= 0:
        await asyncio.sleep(0)
        return None
    if wakeup is None:
        await asyncio.sleep(delay)
        return None

    loop = asyncio.get_running_loop()
    try:
        start_time = loop.time()
        await asyncio.wait_for(wakeup.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return None  # interruptable sleep is over: uninterrupted.
    else:
        end_time = loop.time()
        duration = end_time - start_time
        return max(0, delay - duration)
