import base64
import io
import json

import numpy as np
import pytest
from PIL import Image

from errors import CaptureError, ValidationError
from face_utils import (
    CameraCapture,
    capture_descriptor,
    compare_descriptors,
    decode_descriptor,
    encode_descriptor,
    encode_png_data_url,
    is_face_match,
    sample_descriptor,
)


def png_data_url(frame_rgb):
    buffer = io.BytesIO()
    Image.fromarray(frame_rgb).save(buffer, format="PNG")
    return encode_png_data_url(buffer.getvalue())


def test_descriptor_has_fixed_length_and_range(gradient_frame):
    descriptor = sample_descriptor(gradient_frame)
    assert len(descriptor) == 256
    assert all(0.0 <= v <= 1.0 for v in descriptor)


def test_descriptor_is_deterministic(gradient_frame):
    assert sample_descriptor(gradient_frame) == sample_descriptor(gradient_frame.copy())


def test_uniform_frame_samples_mean_brightness():
    frame = np.zeros((10, 10, 3), dtype=np.uint8)
    frame[..., 0] = 30
    frame[..., 1] = 60
    frame[..., 2] = 90
    assert sample_descriptor(frame) == pytest.approx([60 / 255] * 256)


def test_samples_whole_pixels_and_ignores_alpha(gradient_frame):
    with_alpha = np.dstack([gradient_frame, np.full(gradient_frame.shape[:2], 255, dtype=np.uint8)])
    assert sample_descriptor(with_alpha) == sample_descriptor(gradient_frame)

    # pixel i * 3072 // 256 = 12 * i lies in column (12 * i) % 64
    expected = [float(np.linspace(0, 255, 64, dtype=np.uint8)[(12 * i) % 64]) / 255 for i in range(256)]
    assert sample_descriptor(gradient_frame) == pytest.approx(expected)


def test_empty_frame_is_not_ready():
    with pytest.raises(CaptureError) as excinfo:
        sample_descriptor(np.zeros((0, 0, 3), dtype=np.uint8))
    assert excinfo.value.kind == CaptureError.NOT_READY


def test_capture_from_data_url_matches_frame(gradient_frame):
    data_url = png_data_url(gradient_frame[..., ::-1].copy())
    descriptor, preview = capture_descriptor(data_url)

    assert descriptor == pytest.approx(sample_descriptor(gradient_frame))
    assert preview.startswith(b"\x89PNG")


def test_capture_rejects_garbage_image():
    with pytest.raises(CaptureError) as excinfo:
        capture_descriptor("data:image/png;base64," + base64.b64encode(b"nope").decode())
    assert excinfo.value.kind == CaptureError.INVALID_FRAME

    with pytest.raises(CaptureError):
        capture_descriptor("not a data url")


def test_descriptor_text_round_trip(descriptor):
    text = encode_descriptor(descriptor)
    assert json.loads(text) == descriptor
    assert decode_descriptor(text) == descriptor
    assert decode_descriptor(descriptor) == descriptor


@pytest.mark.parametrize("value", ["[1, 2, 3]", "{oops", "[\"a\"]", 42, [float("nan")] * 256])
def test_malformed_descriptor_rejected(value):
    with pytest.raises(ValidationError):
        decode_descriptor(value)


def test_compare_and_match(descriptor):
    assert compare_descriptors(descriptor, descriptor) == 0.0
    shifted = [v + 0.1 for v in descriptor]
    distance = compare_descriptors(descriptor, shifted)
    assert distance == pytest.approx(1.6)
    assert not is_face_match(distance)
    assert is_face_match(0.2)


class ClosedCapture:
    released = []

    def __init__(self, device):
        self.device = device

    def isOpened(self):
        return False

    def release(self):
        ClosedCapture.released.append(self.device)


@pytest.fixture
def closed_camera(monkeypatch):
    ClosedCapture.released = []
    monkeypatch.setattr("face_utils.cv2.VideoCapture", ClosedCapture)
    return ClosedCapture


def test_camera_without_device_raises_and_releases(closed_camera, tmp_path):
    missing = str(tmp_path / "video3")
    with pytest.raises(CaptureError) as excinfo:
        with CameraCapture(device=missing):
            pass
    assert excinfo.value.kind == CaptureError.NO_DEVICE
    assert closed_camera.released == [missing]


def test_camera_index_maps_to_device_node():
    assert CameraCapture(device=2).device_path == "/dev/video2"
    assert CameraCapture(device="/dev/cam").device_path == "/dev/cam"


def test_camera_denied_access_is_permission_error(closed_camera, tmp_path, monkeypatch):
    node = tmp_path / "video0"
    node.touch()
    monkeypatch.setattr("face_utils.os.access", lambda path, mode: False)
    with pytest.raises(CaptureError) as excinfo:
        CameraCapture(device=str(node)).open()
    assert excinfo.value.kind == CaptureError.PERMISSION_DENIED
    assert excinfo.value.message == "Camera access denied. Please allow camera access."


def test_camera_present_but_unopenable_is_busy(closed_camera, tmp_path, monkeypatch):
    node = tmp_path / "video0"
    node.touch()
    monkeypatch.setattr("face_utils.os.access", lambda path, mode: True)
    with pytest.raises(CaptureError) as excinfo:
        CameraCapture(device=str(node)).open()
    assert excinfo.value.kind == CaptureError.DEVICE_BUSY
    assert closed_camera.released == [str(node)]


def test_camera_times_out_waiting_for_frame(monkeypatch):
    class SilentCapture:
        released = False

        def __init__(self, device):
            pass

        def isOpened(self):
            return True

        def read(self):
            return False, None

        def release(self):
            SilentCapture.released = True

    monkeypatch.setattr("face_utils.cv2.VideoCapture", SilentCapture)
    with pytest.raises(CaptureError) as excinfo:
        with CameraCapture(timeout=0.1) as camera:
            camera.read_frame()
    assert excinfo.value.kind == CaptureError.NOT_READY
    assert SilentCapture.released


def test_camera_frame_feeds_descriptor(monkeypatch, gradient_frame):
    class LiveCapture:
        def __init__(self, device):
            pass

        def isOpened(self):
            return True

        def read(self):
            return True, gradient_frame

        def release(self):
            pass

    monkeypatch.setattr("face_utils.cv2.VideoCapture", LiveCapture)
    with CameraCapture() as camera:
        descriptor, _ = capture_descriptor(camera.read_frame())
    assert descriptor == sample_descriptor(gradient_frame)
