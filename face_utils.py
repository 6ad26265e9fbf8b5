"""
Face capture helpers.

The "descriptor" is a fingerprint of one camera frame: DESCRIPTOR_LENGTH
evenly spaced pixels, each reduced to its mean R/G/B brightness in [0, 1].
It is deterministic for a given frame but it is not a facial embedding.
"""

import base64
import io
import json
import logging
import math
import os
import time
from typing import List, Sequence, Tuple, Union

import cv2
import numpy as np
from PIL import Image
from scipy.spatial.distance import euclidean

from config import CAMERA_TIMEOUT, DESCRIPTOR_LENGTH, FACE_MATCH_THRESHOLD
from errors import CaptureError, ValidationError

logger = logging.getLogger(__name__)


def decode_base64_image(data_url: str) -> np.ndarray:
    """
    Decode a 'data:image/png;base64,...' URL into a BGR OpenCV image.
    """
    try:
        _, encoded = data_url.split(",", 1)
        img_bytes = base64.b64decode(encoded, validate=True)
        image = Image.open(io.BytesIO(img_bytes)).convert("RGB")
    except (ValueError, OSError) as exc:
        raise CaptureError(CaptureError.INVALID_FRAME, "Face image could not be decoded") from exc
    return cv2.cvtColor(np.array(image), cv2.COLOR_RGB2BGR)


def encode_png_data_url(png_bytes: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(png_bytes).decode("ascii")


def sample_descriptor(frame_bgr: np.ndarray, length: int = DESCRIPTOR_LENGTH) -> List[float]:
    """
    Sample `length` evenly spaced pixels of the frame and average each
    pixel's colour channels into one value in [0, 1].
    """
    if frame_bgr is None or frame_bgr.size == 0 or frame_bgr.shape[0] == 0 or frame_bgr.shape[1] == 0:
        raise CaptureError(CaptureError.NOT_READY, "Video stream not ready. Please wait a moment and try again.")

    if frame_bgr.ndim == 2:
        pixels = frame_bgr.reshape(-1, 1)
    else:
        pixels = frame_bgr[..., :3].reshape(-1, min(frame_bgr.shape[2], 3))

    count = pixels.shape[0]
    indices = (np.arange(length, dtype=np.int64) * count) // length
    values = pixels[indices].astype("float64").mean(axis=1) / 255.0
    return [float(v) for v in values]


def capture_descriptor(source: Union[np.ndarray, str]) -> Tuple[List[float], bytes]:
    """
    Turn one frame into (descriptor, PNG preview bytes).

    `source` is either a BGR frame (e.g. from CameraCapture) or a data URL
    posted by the browser capture widget.
    """
    frame = decode_base64_image(source) if isinstance(source, str) else source
    descriptor = sample_descriptor(frame)

    ok, buf = cv2.imencode(".png", frame)
    if not ok:
        raise CaptureError(CaptureError.INVALID_FRAME, "Could not encode preview image")
    return descriptor, buf.tobytes()


class CameraCapture:
    """
    Local camera acquisition for kiosk use.

    with CameraCapture() as camera:
        descriptor, preview = capture_descriptor(camera.read_frame())

    The device is released on exit, whether or not the capture succeeded.
    """

    def __init__(self, device: Union[int, str] = 0, timeout: float = CAMERA_TIMEOUT):
        self.device = device
        self.timeout = timeout
        self._capture = None

    @property
    def device_path(self) -> str:
        """Device node for an index (V4L2 naming), or the path as given."""
        if isinstance(self.device, str):
            return self.device
        return f"/dev/video{self.device}"

    def _open_failure(self) -> CaptureError:
        # OpenCV only reports "not opened"; the device node tells us why
        path = self.device_path
        if not os.path.exists(path):
            return CaptureError(CaptureError.NO_DEVICE, f"No camera found at {path}")
        if not os.access(path, os.R_OK | os.W_OK):
            return CaptureError(
                CaptureError.PERMISSION_DENIED,
                "Camera access denied. Please allow camera access.",
            )
        return CaptureError(CaptureError.DEVICE_BUSY, f"Camera {path} is already in use")

    def open(self) -> "CameraCapture":
        capture = cv2.VideoCapture(self.device)
        if not capture.isOpened():
            capture.release()
            error = self._open_failure()
            logger.warning("Camera %s unavailable: %s", self.device, error.kind)
            raise error
        self._capture = capture
        logger.info("Camera %s opened", self.device)
        return self

    def read_frame(self) -> np.ndarray:
        if self._capture is None:
            raise CaptureError(CaptureError.NOT_READY, "Camera is not open")
        deadline = time.monotonic() + self.timeout
        while time.monotonic() < deadline:
            ok, frame = self._capture.read()
            if ok and frame is not None and frame.size:
                return frame
            time.sleep(0.05)
        raise CaptureError(CaptureError.NOT_READY, "Camera timeout")

    def close(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.info("Camera %s released", self.device)

    def __enter__(self) -> "CameraCapture":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def encode_descriptor(descriptor: Sequence[float]) -> str:
    """Store a descriptor as JSON text."""
    return json.dumps([float(v) for v in descriptor])


def decode_descriptor(value: Union[str, Sequence[float]]) -> List[float]:
    """
    Accept a descriptor as JSON text or a list of numbers and return it as
    a list of DESCRIPTOR_LENGTH finite floats.
    """
    try:
        raw = json.loads(value) if isinstance(value, str) else value
        descriptor = [float(v) for v in raw]
    except (TypeError, ValueError) as exc:
        raise ValidationError("Face descriptor is malformed", field="faceDescriptor") from exc

    if len(descriptor) != DESCRIPTOR_LENGTH or not all(math.isfinite(v) for v in descriptor):
        raise ValidationError(
            f"Face descriptor must be {DESCRIPTOR_LENGTH} finite numbers", field="faceDescriptor"
        )
    return descriptor


def compare_descriptors(first: Sequence[float], second: Sequence[float]) -> float:
    """Euclidean distance over the shared length. Lower means closer."""
    shared = min(len(first), len(second))
    if shared == 0:
        return 0.0
    return float(euclidean(first[:shared], second[:shared]))


def is_face_match(distance: float, threshold: float = FACE_MATCH_THRESHOLD) -> bool:
    return distance < threshold
