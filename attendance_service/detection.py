"""
Detector adapter.

Turns face analysis results into DetectionEvents. Only the embedding of
each face is consumed; boxes, landmarks and scores are ignored.
"""

from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

import numpy as np

from .logging_config import get_logger
from .models import DetectionEvent

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EmbeddingDetector:
    """
    Wraps an InsightFace-style analyser (anything with `.get(frame)`
    returning faces that carry `normed_embedding` or `embedding`).
    """
    
    def __init__(self, face_app: Any, clock: Callable[[], datetime] = _utcnow):
        self.face_app = face_app
        self.clock = clock
    
    def detect(self, frame: Optional[np.ndarray]) -> List[DetectionEvent]:
        """
        Detect faces in frame.
        
        Args:
            frame: BGR image, or None if no frame was read
        
        Returns:
            One DetectionEvent per face with an embedding
        """
        if frame is None:
            return []
        
        observed_at = self.clock()
        faces = self.face_app.get(frame)
        
        events = []
        for face in faces:
            embedding = getattr(face, 'normed_embedding', None)
            if embedding is None:
                embedding = getattr(face, 'embedding', None)
            if embedding is None:
                logger.debug('Face without embedding skipped')
                continue
            events.append(DetectionEvent(
                embedding=np.asarray(embedding, dtype=np.float32),
                observed_at=observed_at,
            ))
        
        return events
