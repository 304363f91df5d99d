"""Rate-limited, retrying, batching dispatcher for translation requests.

Callers submit ordered translation units; a single drain loop per scheduler
takes queue entries one at a time, plans their batches and dispatches them in
waves of at most ``max_concurrent`` concurrent calls. Every dispatch takes a
token from the bucket first, transient failures are retried with exponential
backoff (tenacity), and results are written back to units by the index
mapping recorded in each batch.

Everything runs on one event loop, so the queue, the bucket and the
cancellation flags need no locks; state is re-checked after every await.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any,
    Awaitable,
    Callable,
    Deque,
    Dict,
    Hashable,
    Iterable,
    Iterator,
    List,
    Optional,
    Union,
)

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from pagetranslate.config import BATCH_SEPARATOR, RequestContext, SchedulerOptions
from pagetranslate.config.constants import BACKOFF_FACTOR
from pagetranslate.errors import (
    FATAL_KINDS,
    Cancelled,
    MalformedResponse,
    MissingCredential,
    TranslationError,
    UnknownTranslationError,
    is_retryable,
)
from pagetranslate.gemini_client import TranslationClient
from pagetranslate.planner import Batch, plan_batches
from pagetranslate.rate_limit import TokenBucket
from pagetranslate.segmenter import join_segments

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class RequestState(Enum):
    """Lifecycle of a queue entry and of each of its batches."""

    QUEUED = "queued"
    DISPATCHING = "dispatching"
    RETRY_WAITING = "retry_waiting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(eq=False)
class TranslationUnit:
    """One piece of source text plus its translation slot.

    The scheduler only annotates units: on completion exactly one of
    ``translated`` and ``error`` is set.
    """

    id: Hashable
    text: str
    translated: Optional[str] = None
    error: Optional[TranslationError] = None

    def __post_init__(self) -> None:
        self.text = (self.text or "").strip()
        if not self.text:
            raise ValueError(f"Translation unit {self.id!r} has no text")

    @property
    def done(self) -> bool:
        return self.translated is not None or self.error is not None


@dataclass(frozen=True)
class UnitResult:
    """Tagged outcome for one unit: translated text or an error."""

    unit_id: Hashable
    text: Optional[str] = None
    error: Optional[TranslationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.text is not None


class SubmissionResult(Mapping):
    """Read-only mapping of unit id -> ``UnitResult`` in submission order."""

    def __init__(self, results: Dict[Hashable, UnitResult]):
        self._results = results

    def __getitem__(self, unit_id: Hashable) -> UnitResult:
        return self._results[unit_id]

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._results)

    def __len__(self) -> int:
        return len(self._results)

    @property
    def translations(self) -> Dict[Hashable, str]:
        """Translated text for every unit that succeeded."""
        return {key: value.text for key, value in self._results.items() if value.ok}

    @property
    def failures(self) -> Dict[Hashable, TranslationError]:
        return {key: value.error for key, value in self._results.items() if not value.ok}

    @property
    def complete(self) -> bool:
        return all(value.ok for value in self._results.values())

    @classmethod
    def from_units(cls, units: Iterable[TranslationUnit]) -> SubmissionResult:
        return cls({
            unit.id: UnitResult(unit_id=unit.id, text=unit.translated, error=unit.error)
            for unit in units
        })


@dataclass(eq=False)
class QueueEntry:
    """A submitted request waiting for (or undergoing) processing."""

    units: List[TranslationUnit]
    future: asyncio.Future
    progress: Optional[ProgressCallback] = None
    state: RequestState = RequestState.QUEUED
    cancelled: bool = False
    batch_states: Dict[int, RequestState] = field(default_factory=dict)


def _as_unit(item: Union[TranslationUnit, Mapping]) -> TranslationUnit:
    if isinstance(item, TranslationUnit):
        return item
    if isinstance(item, Mapping):
        return TranslationUnit(id=item['id'], text=item['text'])
    raise TypeError(f"Expected a TranslationUnit or an {{id, text}} mapping, got {type(item).__name__}")


class RequestScheduler:
    """Queue, pace and retry translation requests against one client.

    One instance is meant to live as long as the page runtime that owns it;
    concurrent ``submit`` calls are processed one entry at a time in
    submission order.
    """

    def __init__(
        self,
        client: TranslationClient,
        context: RequestContext,
        options: Optional[SchedulerOptions] = None,
        *,
        bucket: Optional[TokenBucket] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.context = context
        self.options = options or SchedulerOptions()
        self.bucket = bucket or TokenBucket(
            self.options.capacity,
            self.options.refill_per_second,
            clock=clock,
            sleep=sleep,
        )
        self._clock = clock
        self._sleep = sleep
        self._queue: Deque[QueueEntry] = deque()
        self._active: Optional[QueueEntry] = None
        self._drain_task: Optional[asyncio.Task] = None
        self._last_dispatch: Optional[float] = None

    @property
    def idle(self) -> bool:
        """True when no drain loop is running."""
        return self._drain_task is None or self._drain_task.done()

    @property
    def pending(self) -> int:
        """Number of queue entries not yet resolved."""
        return len(self._queue)

    async def submit(
        self,
        units: Iterable[Union[TranslationUnit, Mapping]],
        progress: Optional[ProgressCallback] = None,
    ) -> SubmissionResult:
        """Translate ``units`` and return a result per unit id.

        The result may be a partial success; units are annotated in place.

        Args:
            units: ``TranslationUnit`` objects or ``{id, text}`` mappings
            progress: Called as ``progress(done_units, total_units)`` after
                every wave of batches

        Raises:
            MissingCredential: No API key in the request context
            AuthenticationFailed: Every batch was rejected for credentials
            ValueError: Duplicate unit ids or empty unit text
        """
        batch_units = [_as_unit(item) for item in units]
        ids = [unit.id for unit in batch_units]
        if len(set(ids)) != len(ids):
            raise ValueError("Translation unit ids must be unique within a submission")
        if not batch_units:
            return SubmissionResult({})
        for unit in batch_units:
            unit.translated = None
            unit.error = None

        if not self.context.has_credential:
            error = MissingCredential("API key is not configured. Set it in the options first.")
            for unit in batch_units:
                unit.error = error
            logger.error("Rejecting %d units: no API key configured", len(batch_units))
            raise error

        loop = asyncio.get_running_loop()
        entry = QueueEntry(units=batch_units, future=loop.create_future(), progress=progress)
        self._queue.append(entry)
        logger.info("Queued %d units (%d entries pending)", len(batch_units), len(self._queue))

        if self.idle:
            self._drain_task = loop.create_task(self._drain())
        return await entry.future

    def stop(self) -> int:
        """Cancel every queued or in-progress submission.

        In-flight calls are not aborted, but their results are discarded and
        no further batches are dispatched for the cancelled entries. Units
        that were not translated yet are reported as ``Cancelled``.

        Returns:
            Number of entries cancelled
        """
        cancelled = 0
        for entry in list(self._queue):
            if entry.cancelled:
                continue
            entry.cancelled = True
            cancelled += 1
            if entry is self._active:
                continue
            self._queue.remove(entry)
            self._resolve(entry, self._finalize(entry, {}, {}))

        if cancelled:
            logger.info("Translation stopped: %d queued requests cancelled", cancelled)
        return cancelled

    async def _drain(self) -> None:
        """Process queue entries in order until the queue is empty."""
        try:
            while self._queue:
                entry = self._queue[0]
                self._active = entry
                try:
                    await self._wait_min_interval()
                    result = await self._process(entry)
                except TranslationError as exc:
                    entry.state = RequestState.FAILED
                    logger.error("Translation request failed: %s", exc)
                    if not entry.future.done():
                        entry.future.set_exception(exc)
                except Exception as exc:
                    entry.state = RequestState.FAILED
                    logger.error("Unexpected scheduler failure: %s", exc, exc_info=exc)
                    if not entry.future.done():
                        entry.future.set_exception(exc)
                else:
                    self._resolve(entry, result)
                finally:
                    self._active = None
                    # stop() may have changed the queue while we were waiting
                    if entry in self._queue:
                        self._queue.remove(entry)
        finally:
            self._drain_task = None

    async def _wait_min_interval(self) -> None:
        if self._last_dispatch is None:
            return
        remaining = self.options.min_interval - (self._clock() - self._last_dispatch)
        if remaining > 0:
            await self._sleep(remaining)

    def _resolve(self, entry: QueueEntry, result: SubmissionResult) -> None:
        entry.state = RequestState.SUCCEEDED if result.complete else RequestState.FAILED
        if not entry.future.done():
            entry.future.set_result(result)

    async def _process(self, entry: QueueEntry) -> SubmissionResult:
        """Translate all batches of one queue entry, wave by wave."""
        if entry.cancelled:
            return self._finalize(entry, {}, {})

        entry.state = RequestState.DISPATCHING
        options = self.options
        batches = plan_batches(
            entry.units,
            options.max_batch_chars,
            max_segment_length=options.max_segment_length,
            min_segment_length=options.min_segment_length,
            separator=BATCH_SEPARATOR,
        )
        parts: Dict[int, List[Optional[str]]] = {}
        for batch in batches:
            for item in batch.items:
                parts.setdefault(item.unit_index, [None] * item.parts)
        errors: Dict[int, TranslationError] = {}
        succeeded = 0
        total = len(entry.units)

        logger.info(
            "Translating %d units in %d batches (max %d concurrent)",
            total,
            len(batches),
            options.max_concurrent,
        )

        for start in range(0, len(batches), options.max_concurrent):
            if entry.cancelled:
                break
            if start:
                await self._sleep(options.wave_pacing)
                if entry.cancelled:
                    break

            wave = batches[start:start + options.max_concurrent]
            outcomes = await asyncio.gather(*(self._dispatch(entry, batch) for batch in wave))
            if entry.cancelled:
                logger.info("Discarding %d in-flight batch results after stop", len(wave))
                break

            for batch, outcome in zip(wave, outcomes):
                if isinstance(outcome, TranslationError):
                    for item in batch.items:
                        errors.setdefault(item.unit_index, outcome)
                    continue
                try:
                    self._demux(batch, outcome, parts)
                except MalformedResponse as exc:
                    for item in batch.items:
                        errors.setdefault(item.unit_index, exc)
                    continue
                succeeded += 1

            fatal = [
                outcome for outcome in outcomes
                if isinstance(outcome, TranslationError) and outcome.kind in FATAL_KINDS
            ]
            if not succeeded and len(fatal) == len(outcomes):
                # Credentials are rejected: no remaining batch can succeed.
                self._finalize(entry, parts, errors, default_error=fatal[0])
                raise fatal[0]

            self._report_progress(entry, parts, errors)

        return self._finalize(entry, parts, errors)

    async def _dispatch(self, entry: QueueEntry, batch: Batch) -> Union[str, TranslationError]:
        """Send one batch, retrying transient failures.

        Returns the translated text, or the final error for this batch.
        Errors never propagate so sibling batches are unaffected.
        """
        options = self.options
        text = batch.text(BATCH_SEPARATOR)
        log_retry = before_sleep_log(logger, logging.WARNING)

        def before_sleep(retry_state) -> None:
            entry.batch_states[batch.batch_id] = RequestState.RETRY_WAITING
            log_retry(retry_state)

        retrying = AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(options.max_retries + 1),
            wait=wait_exponential(
                multiplier=options.base_backoff,
                exp_base=BACKOFF_FACTOR,
                max=options.max_backoff,
            ),
            retry=retry_if_exception(is_retryable),
            before_sleep=before_sleep,
            sleep=self._sleep,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    if entry.cancelled:
                        raise Cancelled("Translation stopped before dispatch")
                    await self.bucket.acquire()
                    if entry.cancelled:
                        raise Cancelled("Translation stopped before dispatch")

                    entry.batch_states[batch.batch_id] = RequestState.DISPATCHING
                    self._last_dispatch = self._clock()
                    logger.debug(
                        "Dispatching batch %d (%d items, %d chars, attempt %d)",
                        batch.batch_id,
                        len(batch),
                        len(text),
                        attempt.retry_state.attempt_number,
                    )
                    translated = await self._call_client(text)
        except TranslationError as exc:
            entry.batch_states[batch.batch_id] = RequestState.FAILED
            if not isinstance(exc, Cancelled):
                logger.warning(
                    "Batch %d failed (%s): %s",
                    batch.batch_id,
                    exc.kind.value,
                    exc,
                )
            return exc

        entry.batch_states[batch.batch_id] = RequestState.SUCCEEDED
        return translated

    async def _call_client(self, text: str) -> str:
        try:
            return await self.client.translate(text, self.context)
        except TranslationError:
            raise
        except Exception as exc:
            logger.error("Unexpected translation client failure: %s", exc, exc_info=exc)
            raise UnknownTranslationError(str(exc)) from exc

    def _demux(self, batch: Batch, translated: str, parts: Dict[int, List[Optional[str]]]) -> None:
        """Distribute a batch response to unit slots by item index.

        Raises:
            MalformedResponse: The line count does not match the batch, so
                no line can be attributed to a unit safely
        """
        pieces = translated.split(BATCH_SEPARATOR)
        expected = len(batch.items)
        if len(pieces) != expected:
            # Models sometimes add blank lines between translated lines
            pieces = [piece for piece in pieces if piece.strip()]
            if len(pieces) != expected:
                logger.warning(
                    "Translation count mismatch in batch %d: expected %d, got %d",
                    batch.batch_id,
                    expected,
                    len(pieces),
                )
                raise MalformedResponse(
                    f"Expected {expected} translated lines, got {len(pieces)}"
                )

        for item, piece in zip(batch.items, pieces):
            piece = piece.strip()
            if piece:
                parts[item.unit_index][item.part] = piece

    def _report_progress(
        self,
        entry: QueueEntry,
        parts: Dict[int, List[Optional[str]]],
        errors: Dict[int, TranslationError],
    ) -> None:
        if entry.progress is None:
            return
        done = sum(
            1 for index in range(len(entry.units))
            if index in errors or all(value is not None for value in parts.get(index, [None]))
        )
        try:
            entry.progress(done, len(entry.units))
        except Exception as exc:
            logger.warning("Progress callback failed: %s", exc)

    def _finalize(
        self,
        entry: QueueEntry,
        parts: Dict[int, List[Optional[str]]],
        errors: Dict[int, TranslationError],
        default_error: Optional[TranslationError] = None,
    ) -> SubmissionResult:
        """Annotate every unit of ``entry`` and build its result mapping."""
        for index, unit in enumerate(entry.units):
            if unit.done:
                continue
            unit_parts = parts.get(index)
            if index in errors:
                unit.error = errors[index]
            elif unit_parts and all(value is not None for value in unit_parts):
                unit.translated = join_segments(unit_parts)
            elif default_error is not None:
                unit.error = default_error
            elif entry.cancelled:
                unit.error = Cancelled("Translation stopped")
            else:
                unit.error = MalformedResponse("No translation returned for this unit")

        result = SubmissionResult.from_units(entry.units)
        logger.info(
            "Translation finished: %d/%d units translated",
            len(result.translations),
            len(result),
        )
        return result

    async def __aenter__(self) -> RequestScheduler:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.stop()
        # In-flight calls must finish before the client goes away
        if self._drain_task is not None:
            await self._drain_task
        await self.client.aclose()
