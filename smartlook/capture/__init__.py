"""Image acquisition from files, drag-drop uploads and the camera."""

from .adapter import (
    CAMERA_DENIED_NOTICE,
    CameraSession,
    CaptureAdapter,
    CapturedImage,
    CaptureError,
    OpenCVVideoSource,
    VideoSource,
    encode_jpeg,
    sniff_mime_type,
)

__all__ = [
    "CAMERA_DENIED_NOTICE",
    "CameraSession",
    "CaptureAdapter",
    "CapturedImage",
    "CaptureError",
    "OpenCVVideoSource",
    "VideoSource",
    "encode_jpeg",
    "sniff_mime_type",
]
