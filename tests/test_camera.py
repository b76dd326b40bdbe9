import pytest

from attendance_service import camera
from attendance_service.camera import CameraLost, Capture, open_capture, parse_source
from attendance_service.config import MOBILE_PROFILE


class FakeVideoCapture:
    instances = []

    def __init__(self, source, opened=True, frames=None):
        self.source = source
        self.opened = opened
        self.frames = list(frames or [])
        self.props = {}
        self.released = False
        FakeVideoCapture.instances.append(self)

    def isOpened(self):
        return self.opened

    def set(self, prop, value):
        self.props[prop] = value
        return True

    def read(self):
        if self.frames:
            return True, self.frames.pop(0)
        return False, None

    def release(self):
        self.released = True


@pytest.fixture(autouse=True)
def reset_instances():
    FakeVideoCapture.instances = []


def test_parse_source():
    assert parse_source('0') == 0
    assert parse_source(' 2 ') == 2
    assert parse_source('rtsp://cam/1') == 'rtsp://cam/1'


def test_open_capture_applies_profile_and_releases(monkeypatch):
    monkeypatch.setattr(camera.cv2, 'VideoCapture', lambda source: FakeVideoCapture(source, frames=['f1']))

    with open_capture('1', MOBILE_PROFILE) as capture:
        assert capture.read_frame() == 'f1'
        assert capture.read_frame() is None

    fake = FakeVideoCapture.instances[0]
    assert fake.source == 1
    assert fake.props[camera.cv2.CAP_PROP_FRAME_WIDTH] == 640
    assert fake.props[camera.cv2.CAP_PROP_FRAME_HEIGHT] == 480
    assert fake.props[camera.cv2.CAP_PROP_FPS] == 15
    assert fake.released


def test_open_capture_releases_on_error(monkeypatch):
    monkeypatch.setattr(camera.cv2, 'VideoCapture', lambda source: FakeVideoCapture(source))

    with pytest.raises(RuntimeError):
        with open_capture('0', MOBILE_PROFILE):
            raise RuntimeError('boom')

    assert FakeVideoCapture.instances[0].released


def test_open_capture_fails_when_not_opened(monkeypatch):
    monkeypatch.setattr(camera.cv2, 'VideoCapture', lambda source: FakeVideoCapture(source, opened=False))

    with pytest.raises(RuntimeError, match='Cannot open camera'):
        with open_capture('rtsp://user:pw@cam/1', MOBILE_PROFILE):
            pass

    assert FakeVideoCapture.instances[0].released


def test_sanitize_url_hides_credentials():
    assert camera._sanitize_url('rtsp://user:pw@cam/1') == 'rtsp://***@cam/1'


def test_read_frame_gives_up_after_consecutive_failures():
    capture = Capture(FakeVideoCapture(0), max_failures=3)

    assert capture.read_frame() is None
    assert capture.read_frame() is None
    with pytest.raises(CameraLost):
        capture.read_frame()


def test_good_frame_resets_failure_count():
    fake = FakeVideoCapture(0)
    capture = Capture(fake, max_failures=2)

    assert capture.read_frame() is None
    fake.frames.append('f1')
    assert capture.read_frame() == 'f1'
    assert capture.consecutive_failures == 0
    assert capture.read_frame() is None


def test_open_capture_passes_failure_limit(monkeypatch):
    monkeypatch.setattr(camera.cv2, 'VideoCapture', lambda source: FakeVideoCapture(source))

    with pytest.raises(CameraLost):
        with open_capture('0', MOBILE_PROFILE, max_failures=1) as capture:
            capture.read_frame()

    assert FakeVideoCapture.instances[0].released
