"""Shared pytest fixtures."""

import numpy as np
import pytest

from attendance_service.app import create_app
from attendance_service.config import DESKTOP_PROFILE, Config
from attendance_service.ledger import JsonFileLedger, MemoryLedger
from attendance_service.pipeline import RecognitionPipeline
from attendance_service.recognition.cooldown import CooldownGate
from attendance_service.recognition.registry import IdentityRegistry

DIM = 8


def vec(*values: float) -> np.ndarray:
    """Embedding of length DIM, zero-padded."""
    out = np.zeros(DIM, dtype=np.float32)
    out[:len(values)] = values
    return out


@pytest.fixture
def config(tmp_path):
    return Config(
        embedding_model='face-api',
        match_threshold=0.5,
        embedding_dim=DIM,
        cooldown_seconds=300.0,
        detection_interval_ms=20,
        max_face_workers=4,
        ledger_file=str(tmp_path / 'attendance.json'),
        backend_url=None,
        registry_file=str(tmp_path / 'registry.pkl'),
        api_host='127.0.0.1',
        api_port=5000,
        camera_source='0',
        device_profile='desktop',
        capture=DESKTOP_PROFILE,
        max_read_failures=3,
        session_id='test',
        debug_mode=True,
    )


@pytest.fixture
def registry():
    return IdentityRegistry(DIM)


@pytest.fixture
def memory_ledger():
    return MemoryLedger()


@pytest.fixture
def file_ledger(config):
    return JsonFileLedger(config.ledger_file)


@pytest.fixture
def pipeline(registry, memory_ledger, config):
    pipe = RecognitionPipeline(
        registry=registry,
        gate=CooldownGate(config.cooldown_seconds),
        ledger=memory_ledger,
        config=config,
    )
    pipe.init()
    yield pipe
    pipe.shutdown()


@pytest.fixture
def client(config, file_ledger, registry):
    app = create_app(config, file_ledger, registry)
    app.testing = True
    return app.test_client()
