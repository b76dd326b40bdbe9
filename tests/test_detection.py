from datetime import datetime, timezone
from types import SimpleNamespace

import numpy as np

from attendance_service.detection import EmbeddingDetector

NOW = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


class FakeFaceApp:
    def __init__(self, faces):
        self.faces = faces
        self.frames = []

    def get(self, frame):
        self.frames.append(frame)
        return self.faces


def test_detect_uses_normed_embedding_then_embedding():
    faces = [
        SimpleNamespace(normed_embedding=np.ones(4), embedding=np.zeros(4)),
        SimpleNamespace(embedding=np.full(4, 2.0)),
        SimpleNamespace(bbox=[0, 0, 1, 1]),
    ]
    detector = EmbeddingDetector(FakeFaceApp(faces), clock=lambda: NOW)

    events = detector.detect(np.zeros((2, 2, 3)))

    assert len(events) == 2
    assert np.array_equal(events[0].embedding, np.ones(4))
    assert np.array_equal(events[1].embedding, np.full(4, 2.0))
    assert all(event.observed_at == NOW for event in events)


def test_detect_without_frame_skips_model():
    face_app = FakeFaceApp([SimpleNamespace(embedding=np.ones(4))])
    assert EmbeddingDetector(face_app).detect(None) == []
    assert face_app.frames == []
