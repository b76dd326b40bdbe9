"""
Recognition pipeline.

Orchestrates one detection cycle:
- Detection (external detector supplies embeddings)
- Classification against the registry
- Cooldown gating
- Ledger persistence

and the periodic loop that drives it. Cycles never overlap: a tick that
fires while the previous cycle is still running is dropped.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

import numpy as np

from .config import Config
from .errors import DimensionMismatch, NotReady, StorageFailure
from .ledger import AttendanceLedger
from .logging_config import get_logger
from .models import UNKNOWN_LABEL, AttendanceRecord, DetectionEvent, MatchResult
from .recognition.cooldown import CooldownGate
from .recognition.matching import Matcher
from .recognition.registry import IdentityRegistry

logger = get_logger(__name__)

DetectFn = Callable[[], List[DetectionEvent]]


class PipelineState(Enum):
    IDLE = 'idle'
    RUNNING = 'running'
    STOPPED = 'stopped'


class OutcomeStatus(Enum):
    UNKNOWN = 'unknown'
    SUPPRESSED = 'suppressed'
    RECORDED = 'recorded'
    FAILED = 'failed'


@dataclass(frozen=True)
class Outcome:
    """Result of handling one detected face."""

    match: MatchResult
    status: OutcomeStatus
    record: Optional[AttendanceRecord] = None
    error: Optional[str] = None


class RecognitionPipeline:
    """
    Detection → Matcher → CooldownGate → AttendanceLedger.

    All collaborators are injected; the pipeline holds no global state.
    Call init() before use and shutdown() when done.
    """

    def __init__(
        self,
        registry: IdentityRegistry,
        gate: CooldownGate,
        ledger: AttendanceLedger,
        config: Config,
    ):
        self.registry = registry
        self.gate = gate
        self.ledger = ledger
        self.config = config

        self.state = PipelineState.IDLE
        self.skipped_ticks = 0
        self.completed_cycles = 0

        self._executor: Optional[ThreadPoolExecutor] = None
        self._matcher: Optional[Matcher] = None
        self._matcher_version = -1
        self._matcher_lock = threading.Lock()
        self._cycle_lock = threading.Lock()

    # Lifecycle

    def init(self) -> None:
        """Start worker pool and build the first matcher."""
        if self.state == PipelineState.RUNNING:
            return

        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_face_workers,
            thread_name_prefix='face-worker',
        )
        self._current_matcher()
        self.state = PipelineState.RUNNING
        logger.info(
            f'Pipeline ready ({len(self.registry)} identities, '
            f'threshold={self.config.match_threshold}, '
            f'cooldown={self.config.cooldown_seconds:.0f}s)'
        )

    def shutdown(self) -> None:
        """Stop accepting work and wait for in-flight faces."""
        if self.state != PipelineState.RUNNING:
            return

        self.state = PipelineState.STOPPED
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        logger.info('Pipeline stopped')

    @property
    def is_ready(self) -> bool:
        return self.state == PipelineState.RUNNING

    # Classification

    def _current_matcher(self) -> Matcher:
        """Matcher for the latest registry snapshot, rebuilt on change."""
        with self._matcher_lock:
            if self._matcher is None or self._matcher_version != self.registry.version:
                version, identities = self.registry.versioned_snapshot()
                self._matcher = Matcher(identities, self.config.match_threshold)
                self._matcher_version = version
                logger.debug(f'Matcher rebuilt for {len(identities)} identities (v{version})')
            return self._matcher

    def classify(self, embedding: np.ndarray) -> MatchResult:
        """
        Classify one embedding.

        Never raises for a bad embedding or an uninitialized pipeline;
        both resolve to "Unknown".
        """
        try:
            if not self.is_ready:
                raise NotReady('Pipeline is not initialized')
            return self._current_matcher().classify(embedding)
        except NotReady as e:
            logger.debug(f'Classification skipped: {e}')
        except DimensionMismatch as e:
            logger.warning(f'Dimension mismatch, treating face as Unknown: {e}')
        except (TypeError, ValueError) as e:
            logger.warning(f'Unreadable embedding, treating face as Unknown: {e}')
        return MatchResult(label=UNKNOWN_LABEL, distance=float('inf'))

    # Per-face handling

    def handle(self, event: DetectionEvent) -> Outcome:
        """
        Classify, gate and persist one detected face.

        A failed write is reported, not retried. The gate has already
        been updated at that point, so the name stays suppressed for the
        rest of its cooldown window. Any other error is reported as a
        failed outcome so the other faces of the frame still complete.
        """
        try:
            return self._handle(event)
        except Exception as e:
            logger.error(f'Face handling failed: {e}', exc_info=True)
            return Outcome(
                match=MatchResult(label=UNKNOWN_LABEL, distance=float('inf')),
                status=OutcomeStatus.FAILED,
                error=str(e),
            )

    def _handle(self, event: DetectionEvent) -> Outcome:
        match = self.classify(event.embedding)

        if not match.is_known:
            return Outcome(match=match, status=OutcomeStatus.UNKNOWN)

        if not self.gate.try_accept(match.label, event.observed_at.timestamp()):
            return Outcome(match=match, status=OutcomeStatus.SUPPRESSED)

        try:
            record = self.ledger.append(match.label, event.observed_at)
        except StorageFailure as e:
            logger.error(f'❌ Attendance for {match.label} not recorded: {e}')
            return Outcome(match=match, status=OutcomeStatus.FAILED, error=str(e))

        logger.info(
            f'✅ {match.label} marked present '
            f'(distance={match.distance:.3f}, confidence={match.confidence:.0%})'
        )
        return Outcome(match=match, status=OutcomeStatus.RECORDED, record=record)

    def process(self, events: List[DetectionEvent]) -> List[Outcome]:
        """
        Handle all faces of one frame in parallel.

        Returns:
            One outcome per event, in event order
        """
        if not events:
            return []

        if not self.is_ready or self._executor is None:
            return [
                Outcome(
                    match=MatchResult(label=UNKNOWN_LABEL, distance=float('inf')),
                    status=OutcomeStatus.UNKNOWN,
                )
                for _ in events
            ]

        return list(self._executor.map(self.handle, events))

    # Loop

    def tick(self, detect: DetectFn) -> Optional[List[Outcome]]:
        """
        Run one cycle now, unless a cycle is already in flight.

        Returns:
            Outcomes of the cycle, or None if the tick was dropped
        """
        if not self._cycle_lock.acquire(blocking=False):
            self._note_skipped()
            return None

        try:
            return self._cycle(detect)
        finally:
            self._cycle_lock.release()

    def run(self, detect: DetectFn, stop_flag: threading.Event) -> None:
        """
        Periodic loop until stop_flag is set.

        Every interval a cycle is started in the background if the
        previous one has finished; otherwise the tick is dropped.

        Args:
            detect: Returns the detections of the current frame
            stop_flag: Event signalling shutdown
        """
        interval = self.config.detection_interval_ms / 1000.0
        logger.info(f'🎬 Starting detection loop (every {interval * 1000:.0f} ms)...')

        while not stop_flag.is_set():
            if self._cycle_lock.acquire(blocking=False):
                worker = threading.Thread(
                    target=self._background_cycle,
                    args=(detect,),
                    daemon=True,
                    name='detection-cycle',
                )
                worker.start()
            else:
                self._note_skipped()

            stop_flag.wait(interval)

        # Let the in-flight cycle finish before returning
        with self._cycle_lock:
            pass
        logger.info('Detection loop stopped')

    def _background_cycle(self, detect: DetectFn) -> None:
        try:
            self._cycle(detect)
        except Exception as e:
            logger.error(f'Detection cycle failed: {e}', exc_info=True)
        finally:
            self._cycle_lock.release()

    def _cycle(self, detect: DetectFn) -> List[Outcome]:
        events = detect()
        outcomes = self.process(events)
        self.completed_cycles += 1
        return outcomes

    def _note_skipped(self) -> None:
        self.skipped_ticks += 1
        logger.debug(f'Previous cycle still running, tick dropped ({self.skipped_ticks} total)')
