import threading
import time
from datetime import datetime, timedelta, timezone

import numpy as np

from attendance_service.errors import StorageFailure
from attendance_service.ledger import MemoryLedger
from attendance_service.models import UNKNOWN_LABEL, DetectionEvent
from attendance_service.pipeline import OutcomeStatus, PipelineState, RecognitionPipeline
from attendance_service.recognition.cooldown import CooldownGate

from conftest import vec

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def event(embedding, seconds=0.0):
    return DetectionEvent(embedding=embedding, observed_at=T0 + timedelta(seconds=seconds))


class FailingLedger(MemoryLedger):
    def _store(self, record):
        raise StorageFailure('disk full')


def test_end_to_end_attendance(pipeline, registry, memory_ledger):
    registry.register('Alice', vec(1.0))

    first = pipeline.handle(event(vec(1.0), 0))
    assert first.status == OutcomeStatus.RECORDED
    assert first.match.label == 'Alice'
    assert first.match.distance == 0.0
    assert [r.name for r in memory_ledger.list()] == ['Alice']

    second = pipeline.handle(event(vec(1.0), 10))
    assert second.status == OutcomeStatus.SUPPRESSED
    assert len(memory_ledger.list()) == 1

    stranger = pipeline.handle(event(vec(0.0, 0.0, 5.0), 20))
    assert stranger.status == OutcomeStatus.UNKNOWN
    assert stranger.match.label == UNKNOWN_LABEL
    assert len(memory_ledger.list()) == 1


def test_accepts_again_after_cooldown(pipeline, registry, memory_ledger):
    registry.register('Alice', vec(1.0))

    assert pipeline.handle(event(vec(1.0), 0)).status == OutcomeStatus.RECORDED
    assert pipeline.handle(event(vec(1.0), 100)).status == OutcomeStatus.SUPPRESSED
    assert pipeline.handle(event(vec(1.0), 300.001)).status == OutcomeStatus.RECORDED
    assert len(memory_ledger.list()) == 2


def test_matcher_rebuilt_after_registration(pipeline, registry):
    assert pipeline.classify(vec(1.0)).label == UNKNOWN_LABEL
    registry.register('Alice', vec(1.0))
    assert pipeline.classify(vec(1.0)).label == 'Alice'


def test_dimension_mismatch_is_unknown(pipeline, registry, memory_ledger):
    registry.register('Alice', vec(1.0))

    outcome = pipeline.handle(event(np.ones(3, dtype=np.float32)))
    assert outcome.status == OutcomeStatus.UNKNOWN
    assert memory_ledger.list() == []


def test_not_ready_classifies_unknown(registry, memory_ledger, config):
    registry.register('Alice', vec(1.0))
    pipe = RecognitionPipeline(registry, CooldownGate(300), memory_ledger, config)

    assert pipe.state == PipelineState.IDLE
    assert pipe.classify(vec(1.0)).label == UNKNOWN_LABEL
    outcomes = pipe.process([event(vec(1.0))])
    assert [o.status for o in outcomes] == [OutcomeStatus.UNKNOWN]
    assert memory_ledger.list() == []


def test_storage_failure_reported_and_gate_still_consumed(registry, config):
    registry.register('Alice', vec(1.0))
    pipe = RecognitionPipeline(registry, CooldownGate(300), FailingLedger(), config)
    pipe.init()
    try:
        failed = pipe.handle(event(vec(1.0), 0))
        assert failed.status == OutcomeStatus.FAILED
        assert 'disk full' in failed.error

        again = pipe.handle(event(vec(1.0), 1))
        assert again.status == OutcomeStatus.SUPPRESSED
    finally:
        pipe.shutdown()


def test_process_handles_faces_in_order(pipeline, registry, memory_ledger):
    registry.register('Alice', vec(1.0))
    registry.register('Bob', vec(0.0, 1.0))

    outcomes = pipeline.process([
        event(vec(1.0)),
        event(vec(0.0, 1.0)),
        event(vec(0.0, 0.0, 9.0)),
    ])

    assert [o.match.label for o in outcomes] == ['Alice', 'Bob', UNKNOWN_LABEL]
    assert sorted(r.name for r in memory_ledger.list()) == ['Alice', 'Bob']


def test_same_face_twice_in_one_frame_records_once(pipeline, registry, memory_ledger):
    registry.register('Alice', vec(1.0))

    outcomes = pipeline.process([event(vec(1.0)), event(vec(1.0))])

    statuses = sorted(o.status.value for o in outcomes)
    assert statuses == ['recorded', 'suppressed']
    assert len(memory_ledger.list()) == 1


def test_tick_dropped_while_cycle_in_flight(pipeline, registry):
    registry.register('Alice', vec(1.0))
    started = threading.Event()
    release = threading.Event()

    def slow_detect():
        started.set()
        release.wait(5)
        return [event(vec(1.0))]

    results = []
    worker = threading.Thread(target=lambda: results.append(pipeline.tick(slow_detect)))
    worker.start()
    assert started.wait(5)

    assert pipeline.tick(lambda: [event(vec(1.0))]) is None
    assert pipeline.skipped_ticks == 1

    release.set()
    worker.join(5)
    assert [o.status for o in results[0]] == [OutcomeStatus.RECORDED]
    assert pipeline.completed_cycles == 1


def test_run_drops_ticks_instead_of_queueing(pipeline, registry):
    calls = []

    def slow_detect():
        calls.append(time.monotonic())
        time.sleep(0.1)
        return []

    stop_flag = threading.Event()
    runner = threading.Thread(target=pipeline.run, args=(slow_detect, stop_flag))
    runner.start()
    time.sleep(0.35)
    stop_flag.set()
    runner.join(5)

    assert not runner.is_alive()
    assert pipeline.skipped_ticks >= 1
    assert len(calls) >= 1
    assert pipeline.completed_cycles == len(calls)


def test_run_survives_detector_errors(pipeline):
    def broken_detect():
        raise RuntimeError('model crashed')

    stop_flag = threading.Event()
    runner = threading.Thread(target=pipeline.run, args=(broken_detect, stop_flag))
    runner.start()
    time.sleep(0.1)
    stop_flag.set()
    runner.join(5)

    assert not runner.is_alive()


def test_shutdown_is_idempotent(pipeline):
    pipeline.shutdown()
    pipeline.shutdown()
    assert pipeline.state == PipelineState.STOPPED


def test_unreadable_embedding_does_not_break_frame(pipeline, registry, memory_ledger):
    registry.register('Alice', vec(1.0))

    outcomes = pipeline.process([
        event(vec(1.0)),
        event(np.array(['x'] * 8)),
    ])

    assert [o.status for o in outcomes] == [OutcomeStatus.RECORDED, OutcomeStatus.UNKNOWN]
    assert outcomes[1].match.label == UNKNOWN_LABEL
    assert len(memory_ledger.list()) == 1


def test_unexpected_error_is_failed_outcome(pipeline, registry, memory_ledger):
    registry.register('Alice', vec(1.0))
    registry.register('Bob', vec(0.0, 1.0))

    def broken_accept(name, now):
        if name == 'Bob':
            raise RuntimeError('gate exploded')
        return True

    pipeline.gate.try_accept = broken_accept

    outcomes = pipeline.process([event(vec(1.0)), event(vec(0.0, 1.0))])

    assert outcomes[0].status == OutcomeStatus.RECORDED
    assert outcomes[1].status == OutcomeStatus.FAILED
    assert 'gate exploded' in outcomes[1].error
    assert [r.name for r in memory_ledger.list()] == ['Alice']


def test_non_finite_embedding_is_unknown(pipeline, registry, memory_ledger):
    registry.register('Alice', vec(1.0))
    query = vec(1.0)
    query[1] = np.nan

    outcome = pipeline.handle(event(query))

    assert outcome.status == OutcomeStatus.UNKNOWN
    assert outcome.match.distance == float('inf')
    assert memory_ledger.list() == []
