"""Concurrent execution of many independent trend queries.

Each query runs in its own task and writes its outcome into a pre-sized,
index-addressed slot, so slot ``i`` always answers request ``i`` whatever
the completion order. A failing query only fails its own slot. When the
deadline elapses or the caller sets the cancellation event, unfinished
tasks are cancelled and their slots report ``cancelled``.
"""

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from ..config import settings
from ..observability import get_trace_id
from ..repository import ResultRepository
from ..types import BatchEntry, BatchTrendResponse, EntryStatus
from .errors import Cancelled, EngineError
from .normalizer import check_batch, normalize_trend_query
from .trends import extract_trend

logger = logging.getLogger(__name__)


def _echo_query(raw: Any) -> dict[str, Any]:
    if isinstance(raw, Mapping):
        return {str(k): v for k, v in raw.items()}
    return {"raw": raw}


async def _wait_until_done(
    tasks: Sequence[asyncio.Task[None]],
    deadline: float | None,
    cancel_event: asyncio.Event | None,
) -> str | None:
    """Wait for all tasks. Returns the reason they were cut short, or None."""
    loop = asyncio.get_running_loop()
    end = None if deadline is None else loop.time() + deadline
    pending: set[asyncio.Future[Any]] = set(tasks)
    cancel_waiter = asyncio.ensure_future(cancel_event.wait()) if cancel_event else None
    try:
        while pending:
            timeout = None if end is None else max(0.0, end - loop.time())
            wait_set = pending | {cancel_waiter} if cancel_waiter else pending
            done, _ = await asyncio.wait(
                wait_set, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
            if cancel_waiter is not None and cancel_waiter in done:
                return "cancelled by caller"
            if not done:
                return f"deadline of {deadline}s exceeded"
            pending -= done
        return None
    finally:
        if cancel_waiter is not None and not cancel_waiter.done():
            cancel_waiter.cancel()


async def run_trend_batch(
    repository: ResultRepository,
    trend_queries: Any,
    *,
    max_queries: int = settings.BATCH_MAX_QUERIES,
    max_limit: int = settings.TREND_MAX_LIMIT,
    deadline: float | None = settings.REQUEST_TIMEOUT_SECONDS,
    cancel_event: asyncio.Event | None = None,
) -> BatchTrendResponse:
    """Run every trend query of a batch and collect per-entry outcomes.

    Only the batch envelope can fail the call: a non-list payload or more
    than ``max_queries`` entries raise InvalidParameter / BatchTooLarge
    before the repository is touched. Everything else, including an
    entry that fails validation, is reported in that entry's slot.

    Args:
        repository: Shared repository, normally a RepositoryPool.
        trend_queries: Raw list of trend query mappings.
        max_queries: Upper bound on batch size.
        max_limit: Clamp applied to every entry's limit.
        deadline: Seconds before unfinished entries are cancelled.
        cancel_event: Setting this event cancels unfinished entries.

    Returns:
        BatchTrendResponse with one entry per request entry, in request order.
    """
    raw_queries = check_batch(trend_queries, max_queries=max_queries)
    trace_id = get_trace_id()
    slots: list[BatchEntry | None] = [None] * len(raw_queries)

    async def _run_slot(index: int, raw: Any) -> None:
        echo = _echo_query(raw)
        try:
            query = normalize_trend_query(raw, max_limit=max_limit)
            echo = query.to_dict()
            points = await extract_trend(repository, query)
        except EngineError as exc:
            logger.info(
                "[%s] Batch entry %d failed: %s (%s)", trace_id, index, exc.message, exc.error_code
            )
            slots[index] = BatchEntry(
                index=index,
                query=echo,
                status=EntryStatus.ERROR,
                error=exc.message,
                error_code=exc.error_code,
            )
        except Exception as exc:
            logger.exception("[%s] Batch entry %d raised unexpectedly", trace_id, index)
            slots[index] = BatchEntry(
                index=index,
                query=echo,
                status=EntryStatus.ERROR,
                error=str(exc) or type(exc).__name__,
                error_code="INTERNAL_ERROR",
            )
        else:
            slots[index] = BatchEntry(index=index, query=echo, status=EntryStatus.OK, points=points)

    reason: str | None = None
    if cancel_event is not None and cancel_event.is_set():
        reason = "cancelled by caller"
        tasks: list[asyncio.Task[None]] = []
    else:
        tasks = [asyncio.create_task(_run_slot(i, raw)) for i, raw in enumerate(raw_queries)]

    try:
        if tasks:
            reason = await _wait_until_done(tasks, deadline, cancel_event)
    finally:
        unfinished = [t for t in tasks if not t.done()]
        for task in unfinished:
            task.cancel()
        if unfinished:
            await asyncio.gather(*unfinished, return_exceptions=True)

    results: list[BatchEntry] = []
    for index, slot in enumerate(slots):
        if slot is None:
            slot = BatchEntry(
                index=index,
                query=_echo_query(raw_queries[index]),
                status=EntryStatus.CANCELLED,
                error=f"Trend query not completed: {reason or 'cancelled'}",
                error_code=Cancelled.error_code,
            )
        results.append(slot)

    response = BatchTrendResponse(results=results)
    logger.info(
        "[%s] Trend batch finished: %d/%d ok%s",
        trace_id,
        response.ok_count,
        len(results),
        f" ({reason})" if reason else "",
    )
    return response
