"""
Recognition session.

One session owns a capture source, a detector and the periodic
detection loop running in its own thread.
"""

import threading
from typing import Any, Callable, ContextManager, List, Optional

from .camera import CameraLost, Capture, open_capture
from .config import Config
from .detection import EmbeddingDetector
from .logging_config import get_logger
from .models import DetectionEvent
from .pipeline import RecognitionPipeline

logger = get_logger(__name__)

CaptureFactory = Callable[[Config], ContextManager[Capture]]


def _default_capture(config: Config) -> ContextManager[Capture]:
    return open_capture(config.camera_source, config.capture, config.max_read_failures)


class RecognitionSession:
    """Runs the detection loop for one camera in a background thread."""
    
    def __init__(
        self,
        pipeline: RecognitionPipeline,
        detector: EmbeddingDetector,
        config: Config,
        capture_factory: CaptureFactory = _default_capture,
    ):
        self.pipeline = pipeline
        self.detector = detector
        self.config = config
        self.capture_factory = capture_factory
        self.thread: Optional[threading.Thread] = None
        self.stop_flag = threading.Event()
        self.error: Optional[str] = None
    
    def start(self) -> None:
        """Start the session thread."""
        if self.thread and self.thread.is_alive():
            logger.debug(f'Session {self.config.session_id} already running')
            return
        
        logger.info(f'Starting session {self.config.session_id}')
        self.stop_flag.clear()
        self.error = None
        self.pipeline.init()
        
        self.thread = threading.Thread(
            target=self._run,
            daemon=True,
            name=f'Session-{self.config.session_id}',
        )
        self.thread.start()
    
    def _run(self) -> None:
        try:
            with self.capture_factory(self.config) as capture:
                self.pipeline.run(lambda: self._detect(capture), self.stop_flag)
        except Exception as e:
            # Camera problems need a manual restart
            self.error = str(e)
            logger.error(f'Session {self.config.session_id} stopped: {e}', exc_info=True)
    
    def _detect(self, capture: Capture) -> List[DetectionEvent]:
        try:
            frame = capture.read_frame()
        except CameraLost as e:
            # Ends the loop; the camera is released on the way out
            self.error = str(e)
            logger.error(f'Session {self.config.session_id}: {e}')
            self.stop_flag.set()
            return []
        return self.detector.detect(frame)
    
    def stop(self, timeout: float = 5.0) -> None:
        """Stop the loop, release the camera and shut the pipeline down."""
        logger.info(f'Stopping session {self.config.session_id}')
        self.stop_flag.set()
        
        if self.thread and self.thread.is_alive():
            self.thread.join(timeout=timeout)
        
        self.pipeline.shutdown()
    
    def is_alive(self) -> bool:
        """Check if the session thread is alive."""
        return self.thread is not None and self.thread.is_alive()
    
    def __enter__(self) -> 'RecognitionSession':
        self.start()
        return self
    
    def __exit__(self, *exc_info: Any) -> None:
        self.stop()
