"""Run one remote action per app/subject with isolation between items."""

import asyncio
import logging

from foldhost.errors import FoldhostError, RecoverableStepError
from foldhost.reconcile.state import StepFailure

logger = logging.getLogger(__name__)


async def attempt(step, target, coro_fn, timeout):
    """Await coro_fn() under a timeout.

    Returns (value, None) on success or (None, StepFailure) on any transport
    error or timeout. Programming errors propagate.
    """
    try:
        return await asyncio.wait_for(coro_fn(), timeout=timeout), None
    except TimeoutError:
        message = f"timed out after {timeout}s"
    except RecoverableStepError as e:
        message = e.message
    except FoldhostError as e:
        message = str(e)
    logger.error(f"  {target}: {message}")
    return None, StepFailure(step=step, target=target, message=message)


async def for_each(step, items, action, target_of=str, concurrency=1, timeout=900):
    """Apply async action(item) to every item; one failure never blocks another.

    With concurrency 1 items run strictly in order. Otherwise up to
    ``concurrency`` run at once. Either way this returns only after every
    item has finished, as a list of (item, value, failure) in input order.
    """
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def _one(item):
        async with semaphore:
            value, failure = await attempt(step, target_of(item), lambda: action(item), timeout)
            return item, value, failure

    if concurrency <= 1:
        return [await _one(item) for item in items]
    return list(await asyncio.gather(*(_one(item) for item in items)))
