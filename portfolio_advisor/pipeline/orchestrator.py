"""
Batch orchestration of per-company analysis.

``BatchOrchestrator.run(records)`` drives the recommendation engine (and the
research augmenter, when a research key is present) across a portfolio in a
deterministic, testable sequence.

States
------
Batch:   idle -> running -> completed | aborted | cancelled
Record:  pending -> analyzing -> done | failed

Sequencing
----------
Strictly one record at a time, in input order. Research for a record runs
inline right before that record's analysis call. An optional delay
(``[analysis] inter_record_delay_seconds``) separates consecutive records to
bound rate-limit exposure.

Progress contract
-----------------
The sink ``(fraction, status_text)`` is called synchronously:
  - once at 0.0 when the batch starts;
  - once per completed record (success or failure) with completed / total;
    the emission for the last record is ``(1.0, "Completed")``;
  - an empty batch emits 0.0 then ``(1.0, "Completed")``.
Sink exceptions are logged and ignored; a slow sink delays the next dispatch
but never changes its outcome.

Failure isolation
-----------------
- Reasoning service unreachable on the FIRST record: the batch is aborted
  and ``FatalBatchError`` (naming the unattempted count) is raised. This is
  the only error that escapes ``run()``.
- Any other per-record failure: the record gets the insufficient-data
  fallback analysis, state ``failed``, and the batch continues.
- No automatic retry within a run.

Merge policy
------------
Output is the full input collection in input order with analysis overlaid;
``len(output) == len(input)`` and ids map one-to-one. A processed record's
previous analysis is replaced wholesale. Records left undispatched by a
cancellation keep whatever analysis they came in with.

Cancellation
------------
Pass a ``threading.Event`` as ``abort_signal``. Setting it stops future
dispatch and abandons the in-flight call; completed results are kept and the
batch ends ``cancelled``.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence, Union

from portfolio_advisor.config import AppConfig
from portfolio_advisor.credentials import ANALYSIS_API_KEY, CredentialProvider, require
from portfolio_advisor.models.analysis import EnrichedRecord
from portfolio_advisor.models.record import PortfolioRecord
from portfolio_advisor.models.result import AnalysisError, AnalysisOutcome, Err, Ok
from portfolio_advisor.pipeline.normalize import RecordValidationError, normalize_rows
from portfolio_advisor.recommendations.engine import (
    RecommendationEngine,
    analysis_failed_result,
)
from portfolio_advisor.research.augmenter import ResearchAugmenter
from portfolio_advisor.taxonomy.recommendation_taxonomy import BatchState, RecordState

logger = logging.getLogger(__name__)

ProgressSink = Callable[[float, str], None]

COMPLETED_STATUS = "Completed"

# How often a cancellable dispatch re-checks the abort signal (seconds).
_ABORT_POLL_SECONDS = 0.05


class FatalBatchError(RuntimeError):
    """The reasoning service was unreachable on the first record attempt.

    Attributes:
        unattempted: Number of records that were never attempted.
        reason:      Failure summary from the first attempt.
    """

    def __init__(self, unattempted: int, reason: str) -> None:
        self.unattempted = unattempted
        self.reason = reason
        super().__init__(
            f"Analysis service unreachable; batch aborted with "
            f"{unattempted} record(s) unattempted. ({reason})"
        )


class _Cancelled(Exception):
    """Internal: the abort signal fired while a call was in flight."""


# ── Result types ──────────────────────────────────────────────────────────────


@dataclass
class RecordOutcome:
    """Lifecycle of one record within a batch.

    Attributes:
        record_id: Record that was processed.
        state:     Final ``RecordState``.
        error:     Failure summary when state is ``failed``.
        warnings:  Parse warnings from a successful analysis.
    """

    record_id: str
    state: RecordState = RecordState.PENDING
    error: Optional[str] = None
    warnings: tuple[str, ...] = ()


@dataclass
class BatchResult:
    """Complete result of one batch run.

    Attributes:
        state:       Terminal ``BatchState``.
        records:     Enriched records, same length and order as the input.
        outcomes:    Per-record outcome keyed by record id.
        rejected:    Rows excluded by normalization (``run_rows`` only).
        started_at:  UTC datetime when the run started.
        finished_at: UTC datetime when the run finished.
    """

    state: BatchState = BatchState.IDLE
    records: list[EnrichedRecord] = field(default_factory=list)
    outcomes: dict[str, RecordOutcome] = field(default_factory=dict)
    rejected: list[RecordValidationError] = field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def completed_count(self) -> int:
        return sum(
            1 for o in self.outcomes.values()
            if o.state in (RecordState.DONE, RecordState.FAILED)
        )

    @property
    def failed_ids(self) -> list[str]:
        return [rid for rid, o in self.outcomes.items() if o.state is RecordState.FAILED]

    @property
    def errors(self) -> list[str]:
        return [f"{rid}: {o.error}" for rid, o in self.outcomes.items() if o.error]


# ── Orchestrator ──────────────────────────────────────────────────────────────


class BatchOrchestrator:
    """Runs the recommendation engine across a portfolio, one record at a time.

    Args:
        config:      AppConfig for this run.
        credentials: Provider for API keys. Used to build the default engine
                     (``analysis_api_key``) and research augmenter
                     (``research_api_key``).
        engine:      Pre-built engine; when omitted one is built from
                     ``credentials`` at the start of each run.
        augmenter:   Pre-built research augmenter; defaults to one backed by
                     ``credentials`` (inactive without a research key).
        progress:    Progress sink ``(fraction, status_text) -> None``.
        sleep:       Delay function between records (tests pass a no-op).
    """

    def __init__(
        self,
        config: AppConfig,
        credentials: CredentialProvider,
        engine: Optional[RecommendationEngine] = None,
        augmenter: Optional[ResearchAugmenter] = None,
        progress: Optional[ProgressSink] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.credentials = credentials
        self.engine = engine
        self.augmenter = augmenter or ResearchAugmenter(credentials, config.research)
        self.progress = progress
        self._sleep = sleep
        self.state = BatchState.IDLE

    # ── Public API ────────────────────────────────────────────────────────────

    def run_rows(
        self,
        rows: Iterable[Mapping[str, Any]],
        abort_signal: Optional[threading.Event] = None,
    ) -> BatchResult:
        """Normalize raw rows, then ``run()`` the valid records.

        Rows failing validation are excluded and listed in ``result.rejected``.
        """
        normalized = normalize_rows(rows)
        result = self.run(normalized.records, abort_signal=abort_signal)
        result.rejected = normalized.rejected
        return result

    def run(
        self,
        records: Sequence[Union[PortfolioRecord, EnrichedRecord]],
        abort_signal: Optional[threading.Event] = None,
    ) -> BatchResult:
        """Analyze every record and return the merged collection.

        Args:
            records:      Records to analyze; previously enriched records are
                          accepted and their analysis is replaced.
            abort_signal: Optional event; when set, dispatch stops.

        Returns:
            ``BatchResult`` in state ``completed`` or ``cancelled``.

        Raises:
            FatalBatchError:        Service unreachable on the first record.
            MissingCredentialError: No engine given and no analysis key configured.
            ValueError:             Duplicate record ids in the input.
        """
        items = [EnrichedRecord.from_record(r) for r in records]
        _check_unique_ids(items)

        engine, owned_client = self._resolve_engine()
        result = BatchResult(
            records=list(items),
            outcomes={item.id: RecordOutcome(record_id=item.id) for item in items},
            started_at=datetime.now(tz=timezone.utc),
        )
        executor = (
            ThreadPoolExecutor(max_workers=1, thread_name_prefix="portfolio-analysis")
            if abort_signal is not None else None
        )

        try:
            self._execute(engine, items, result, abort_signal, executor)
        finally:
            if executor is not None:
                executor.shutdown(wait=False, cancel_futures=True)
            if owned_client is not None:
                owned_client.close()
            result.finished_at = datetime.now(tz=timezone.utc)

        return result

    # ── Private helpers ───────────────────────────────────────────────────────

    def _execute(
        self,
        engine: RecommendationEngine,
        items: list[EnrichedRecord],
        result: BatchResult,
        abort_signal: Optional[threading.Event],
        executor: Optional[ThreadPoolExecutor],
    ) -> None:
        total = len(items)
        research_on = self.augmenter.enabled
        self._set_state(result, BatchState.RUNNING)
        logger.info(
            "Batch starting | records=%d | research=%s", total, research_on,
            extra={"batch_state": self.state.value},
        )
        self._emit(0.0, f"Starting analysis of {total} companies")

        if total == 0:
            self._set_state(result, BatchState.COMPLETED)
            self._emit(1.0, COMPLETED_STATUS)
            return

        completed = 0
        delay = self.config.analysis.inter_record_delay_seconds

        for index, item in enumerate(items):
            if abort_signal is not None and abort_signal.is_set():
                self._cancel(result, completed, total)
                return
            if index > 0 and delay > 0 and self._wait(delay, abort_signal):
                self._cancel(result, completed, total)
                return

            outcome = result.outcomes[item.id]
            outcome.state = RecordState.ANALYZING
            logger.info(
                "Analyzing %d/%d: %s", index + 1, total, item.company_name,
                extra={"record_id": item.id},
            )

            try:
                analysis = self._dispatch(
                    lambda: self._analyze_one(engine, item.record, research_on, abort_signal),
                    abort_signal,
                    executor,
                )
            except _Cancelled:
                outcome.state = RecordState.PENDING
                self._cancel(result, completed, total)
                return

            match analysis:
                case Ok(value):
                    result.records[index] = item.with_analysis(value)
                    outcome.state = RecordState.DONE
                    outcome.warnings = value.warnings
                    status = f"Analyzed {item.company_name}"
                case Err(error) if error.unreachable and index == 0:
                    outcome.state = RecordState.FAILED
                    outcome.error = error.reason
                    self._set_state(result, BatchState.ABORTED)
                    logger.error(
                        "Batch aborted: service unreachable on first record | unattempted=%d",
                        total - 1,
                    )
                    raise FatalBatchError(unattempted=total - 1, reason=error.reason)
                case Err(error):
                    result.records[index] = item.with_analysis(error.fallback)
                    outcome.state = RecordState.FAILED
                    outcome.error = error.reason
                    status = f"Analysis failed for {item.company_name}"

            completed += 1
            if completed == total:
                self._set_state(result, BatchState.COMPLETED)
                self._emit(1.0, COMPLETED_STATUS)
            else:
                self._emit(completed / total, f"{status} ({completed}/{total})")

        logger.info(
            "Batch finished | state=%s | completed=%d/%d | failed=%d",
            self.state.value, completed, total, len(result.failed_ids),
        )

    def _analyze_one(
        self,
        engine: RecommendationEngine,
        record: PortfolioRecord,
        research_on: bool,
        abort_signal: Optional[threading.Event] = None,
    ) -> AnalysisOutcome:
        """Research (if enabled) then analyze.

        Raises ``_Cancelled`` if the abort signal is set by the time research
        returns, so an abandoned worker never reaches the reasoning service.
        Every other failure becomes an ``Err``.
        """
        try:
            findings = (
                self.augmenter.research(record.company_name, abort_signal=abort_signal)
                if research_on else None
            )
        except Exception:
            logger.exception("Unexpected research failure for %s", record.company_name)
            findings = None

        if abort_signal is not None and abort_signal.is_set():
            logger.info("Skipping analysis of %s: batch cancelled", record.company_name)
            raise _Cancelled()

        try:
            return engine.analyze(record, findings)
        except Exception as exc:
            logger.exception("Unexpected failure analyzing %s", record.company_name)
            reason = f"unexpected error: {exc}"
            return Err(AnalysisError(
                reason=reason, unreachable=False, fallback=analysis_failed_result(reason),
            ))

    def _dispatch(
        self,
        call: Callable[[], AnalysisOutcome],
        abort_signal: Optional[threading.Event],
        executor: Optional[ThreadPoolExecutor],
    ) -> AnalysisOutcome:
        """Run ``call``; with an abort signal, run it cancellably on the worker."""
        if executor is None or abort_signal is None:
            return call()
        future = executor.submit(call)
        while True:
            try:
                return future.result(timeout=_ABORT_POLL_SECONDS)
            except FuturesTimeout:
                if abort_signal.is_set():
                    future.cancel()
                    raise _Cancelled()

    def _wait(self, seconds: float, abort_signal: Optional[threading.Event]) -> bool:
        """Sleep between records. Returns True if the abort signal fired."""
        if abort_signal is not None:
            return abort_signal.wait(seconds)
        self._sleep(seconds)
        return False

    def _cancel(self, result: BatchResult, completed: int, total: int) -> None:
        self._set_state(result, BatchState.CANCELLED)
        logger.warning(
            "Batch cancelled | completed=%d/%d", completed, total,
            extra={"batch_state": self.state.value},
        )
        self._emit(completed / total if total else 0.0, "Cancelled")

    def _resolve_engine(self) -> tuple[RecommendationEngine, Any]:
        """Return the engine for this run and the client to close afterwards."""
        if self.engine is not None:
            return self.engine, None
        from portfolio_advisor.clients.analysis_client import AnalysisClient

        api_key = require(self.credentials, ANALYSIS_API_KEY)
        client = AnalysisClient(api_key, self.config.analysis)
        return RecommendationEngine(client, self.config.pipeline), client

    def _set_state(self, result: BatchResult, state: BatchState) -> None:
        self.state = state
        result.state = state

    def _emit(self, fraction: float, status: str) -> None:
        if self.progress is None:
            return
        try:
            self.progress(fraction, status)
        except Exception as exc:
            logger.warning("Progress sink raised; ignoring: %s", exc)


def _check_unique_ids(items: list[EnrichedRecord]) -> None:
    seen: set[str] = set()
    for item in items:
        if item.id in seen:
            raise ValueError(f"Duplicate record id '{item.id}' in batch input.")
        seen.add(item.id)
