"""
Bounded-concurrency batch dispatch for one file.

Batches of a file partition its keys, so they may resolve in any order:
each output key is written by exactly one batch.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Mapping, MutableMapping, Optional

from lingobatch.ai.exceptions import FATAL_ERRORS, RunAbortError
from lingobatch.logger import get_logger
from lingobatch.translation.context import RunContext

logger = get_logger(__name__)

BatchWorker = Callable[[Dict[str, str]], Awaitable[Mapping[str, Any]]]
ResultHandler = Callable[[Dict[str, str], Mapping[str, Any]], None]


def merge_batch_result(
    batch: Mapping[str, str],
    result: Mapping[str, Any],
    output: MutableMapping[str, Any],
    missing: List[str],
) -> int:
    """
    Apply one resolved batch to the output mapping.

    Only non-empty string values are written. A key the backend omitted (or
    returned empty) is recorded as missing and its prior output value is
    left as it was; the source text is never written in its place.

    Returns:
        Number of keys written
    """
    written = 0
    for key in batch:
        value = result.get(key) if isinstance(result, Mapping) else None
        if isinstance(value, str) and value.strip():
            output[key] = value
            written += 1
        else:
            missing.append(key)
    return written


def _check_can_start(context: RunContext) -> None:
    if context.cancelled:
        raise RunAbortError("Translation cancelled", reason="cancelled")
    if context.error_budget_exhausted:
        raise RunAbortError(
            f"Too many errors ({context.error_count}/{context.max_errors})",
            reason="error_budget",
        )


async def _cancel_pending(tasks) -> None:
    for task in tasks:
        task.cancel()
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)


async def run_batches(
    batches: List[Dict[str, str]],
    worker: BatchWorker,
    *,
    max_concurrency: int,
    context: RunContext,
    on_result: ResultHandler,
) -> int:
    """
    Run ``worker`` over ``batches`` with at most ``max_concurrency`` in flight.

    Results are handed to ``on_result`` as each batch resolves. A batch that
    raises (authentication failure, exhausted retries, cancellation) cancels
    the batches still in flight and the error propagates; results that
    resolved before it have already been handed over.
    Cancellation and the error budget are checked before each new batch;
    when either stops the run, batches already in flight are awaited and
    applied before the RunAbortError propagates.

    Returns:
        Number of batches that resolved successfully
    """
    if max_concurrency < 1:
        raise ValueError(f"max_concurrency must be at least 1, got {max_concurrency}")

    queue = list(batches)
    in_flight: Dict[asyncio.Task, Dict[str, str]] = {}
    completed = 0
    stopped: Optional[RunAbortError] = None

    try:
        while queue or in_flight:
            while queue and len(in_flight) < max_concurrency:
                try:
                    _check_can_start(context)
                except RunAbortError as e:
                    stopped = e
                    queue.clear()
                    break
                batch = queue.pop(0)
                task = asyncio.create_task(worker(batch))
                in_flight[task] = batch
            if not in_flight:
                break

            done, _pending = await asyncio.wait(in_flight.keys(), return_when=asyncio.FIRST_COMPLETED)
            failure = None
            # Apply every successful result of this round before surfacing a failure
            for task in done:
                batch = in_flight.pop(task)
                exc = task.exception()
                if exc is None:
                    on_result(batch, task.result())
                    completed += 1
                elif failure is None or (isinstance(exc, FATAL_ERRORS) and not isinstance(failure, FATAL_ERRORS)):
                    logger.warning(f"Batch of {len(batch)} keys failed: {exc}")
                    failure = exc
            if failure is not None:
                raise failure
        if stopped is not None:
            raise stopped
    except BaseException:
        await _cancel_pending(list(in_flight.keys()))
        raise

    return completed
