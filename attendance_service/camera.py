"""
Camera connection module.

Handles connection to local webcams (index 0, 1, 2) and stream URLs
(RTSP/HTTP). The capture is scoped: it is released on every exit path.
"""

from contextlib import contextmanager
from typing import Iterator, Optional, Union

import cv2
import numpy as np

from .config import CaptureProfile
from .logging_config import get_logger

logger = get_logger(__name__)


def parse_source(camera_source: str) -> Union[int, str]:
    """
    Turn a configured camera source into a VideoCapture argument.
    
    Args:
        camera_source: Camera index ("0") or stream URL
    
    Returns:
        Integer index for local cameras, the URL otherwise
    """
    source = camera_source.strip()
    if source.isdigit():
        return int(source)
    return source


def _sanitize_url(url: str) -> str:
    """Hide credentials in stream URLs for logging."""
    if '@' in url and '://' in url:
        scheme, rest = url.split('://', 1)
        return f"{scheme}://***@{rest.split('@', 1)[1]}"
    return url


DEFAULT_MAX_READ_FAILURES = 10


class CameraLost(RuntimeError):
    """The camera stopped delivering frames."""


class Capture:
    """Thin wrapper around an opened VideoCapture."""
    
    def __init__(
        self,
        video_capture: cv2.VideoCapture,
        max_failures: int = DEFAULT_MAX_READ_FAILURES,
    ):
        self._video_capture = video_capture
        self.max_failures = max_failures
        self.consecutive_failures = 0
    
    def read_frame(self) -> Optional[np.ndarray]:
        """
        Read one frame, or None if the camera returned nothing.
        
        Raises:
            CameraLost: After max_failures consecutive failed reads
        """
        ret, frame = self._video_capture.read()
        if not ret or frame is None:
            self.consecutive_failures += 1
            logger.warning(
                f'Failed to read frame ({self.consecutive_failures}/{self.max_failures})'
            )
            if self.consecutive_failures >= self.max_failures:
                raise CameraLost(
                    f'Camera stopped delivering frames after '
                    f'{self.consecutive_failures} failed reads'
                )
            return None
        
        self.consecutive_failures = 0
        return frame
    
    def release(self) -> None:
        self._video_capture.release()


@contextmanager
def open_capture(
    camera_source: str,
    profile: CaptureProfile,
    max_failures: int = DEFAULT_MAX_READ_FAILURES,
) -> Iterator[Capture]:
    """
    Open camera and apply capture profile.
    
    Args:
        camera_source: Camera index or stream URL
        profile: Resolution and frame rate to request
        max_failures: Consecutive failed reads before CameraLost
    
    Yields:
        Opened Capture, released when the block exits
    
    Raises:
        RuntimeError: If the camera cannot be opened
    """
    source = parse_source(camera_source)
    
    if isinstance(source, int):
        logger.info(f'Opening local camera (index {source})...')
    else:
        logger.info(f'Opening stream {_sanitize_url(source)}...')
    
    video_capture = cv2.VideoCapture(source)
    
    if video_capture is None or not video_capture.isOpened():
        if video_capture is not None:
            video_capture.release()
        raise RuntimeError(f'Cannot open camera {camera_source}')
    
    width, height = profile.resolution
    video_capture.set(cv2.CAP_PROP_FRAME_WIDTH, width)
    video_capture.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
    video_capture.set(cv2.CAP_PROP_FPS, profile.frame_rate)
    
    logger.info(f'✅ Camera opened ({width}x{height} @ {profile.frame_rate} fps)')
    
    capture = Capture(video_capture, max_failures)
    try:
        yield capture
    finally:
        capture.release()
        logger.info('Camera released')
