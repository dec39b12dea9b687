"""Normalises file picks, drag-drop uploads and camera snapshots into image payloads."""

from __future__ import annotations

import asyncio
import base64
import logging
import mimetypes
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Protocol, Sequence

import cv2
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

JPEG_QUALITY = 95
CAMERA_DENIED_NOTICE = "無法存取相機，請檢查權限設定。"


class CaptureError(RuntimeError):
    """Raised when an image cannot be acquired from any source."""

    def __init__(self, notice: str) -> None:
        self.notice = notice
        super().__init__(notice)


@dataclass(slots=True, frozen=True)
class CapturedImage:
    """Raw image bytes plus their MIME type."""

    data: bytes
    mime_type: str = "image/jpeg"

    @property
    def base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64}"


def sniff_mime_type(data: bytes, filename: str | None = None) -> str:
    """Return the MIME type of ``data`` from its header, falling back to the filename."""

    try:
        with Image.open(BytesIO(data)) as img:
            mime = Image.MIME.get(img.format or "")
    except UnidentifiedImageError as exc:
        raise CaptureError("無法辨識的圖片格式，請選擇其他照片。") from exc
    if mime:
        return mime
    guessed, _ = mimetypes.guess_type(filename or "")
    return guessed or "image/jpeg"


def encode_jpeg(frame: Image.Image, quality: int = JPEG_QUALITY) -> bytes:
    """Encode a still frame as JPEG."""

    buffer = BytesIO()
    frame.convert("RGB").save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


class VideoSource(Protocol):
    """Exclusive handle on a video device."""

    def open(self) -> None: ...

    def read(self) -> Image.Image: ...

    def stop(self) -> None: ...


class OpenCVVideoSource:
    """Video device backed by ``cv2.VideoCapture``."""

    def __init__(self, device_index: int = 0, width: int = 1280, height: int = 720) -> None:
        self._device_index = device_index
        self._width = width
        self._height = height
        self._cap: cv2.VideoCapture | None = None

    def open(self) -> None:
        cap = cv2.VideoCapture(self._device_index)
        if not cap.isOpened():
            cap.release()
            raise CaptureError(CAMERA_DENIED_NOTICE)
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self._width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self._height)
        cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        self._cap = cap

    def read(self) -> Image.Image:
        if self._cap is None:
            raise CaptureError(CAMERA_DENIED_NOTICE)
        ok, frame = self._cap.read()
        if not ok:
            raise CaptureError("無法擷取畫面，請再試一次。")
        return Image.fromarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))

    def stop(self) -> None:
        if self._cap is not None:
            self._cap.release()
        self._cap = None


class CameraSession:
    """Scoped camera acquisition; the device is stopped on every exit path."""

    def __init__(self, source: VideoSource, *, quality: int = JPEG_QUALITY) -> None:
        self._source = source
        self._quality = quality
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    async def open(self) -> None:
        """Acquire the device; on denial the device is stopped before re-raising."""

        self._active = True
        try:
            await asyncio.to_thread(self._source.open)
        except CaptureError:
            logger.warning("Camera access denied or unavailable.")
            await self.release()
            raise

    async def __aenter__(self) -> "CameraSession":
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.release()

    async def capture(self) -> CapturedImage:
        """Grab one frame, release the device and return the JPEG snapshot."""

        if not self._active:
            raise CaptureError(CAMERA_DENIED_NOTICE)
        try:
            frame = await asyncio.to_thread(self._source.read)
            data = encode_jpeg(frame, self._quality)
        finally:
            await self.release()
        return CapturedImage(data=data, mime_type="image/jpeg")

    async def release(self) -> None:
        if not self._active:
            return
        self._active = False
        await asyncio.to_thread(self._source.stop)


class CaptureAdapter:
    """Single entry point producing ``CapturedImage`` from any source."""

    def from_file(self, path: Path | str) -> CapturedImage:
        """Read an image chosen with the file picker."""

        source = Path(path)
        try:
            data = source.read_bytes()
        except OSError as exc:
            raise CaptureError("無法讀取檔案，請重新選擇。") from exc
        return CapturedImage(data=data, mime_type=sniff_mime_type(data, source.name))

    def from_upload(self, data: bytes, filename: str | None = None) -> CapturedImage:
        """Wrap bytes received from a drag-drop or multipart upload."""

        if not data:
            raise CaptureError("檔案是空的，請重新選擇。")
        return CapturedImage(data=data, mime_type=sniff_mime_type(data, filename))

    def from_drop(self, files: Sequence[tuple[bytes, str | None]]) -> CapturedImage:
        """Use the first of several dropped files."""

        if not files:
            raise CaptureError("沒有收到任何檔案。")
        data, filename = files[0]
        return self.from_upload(data, filename)

    async def from_camera(self, source: VideoSource) -> CapturedImage:
        """Open the camera, take one snapshot and release the device."""

        async with CameraSession(source) as session:
            return await session.capture()
