"""Top-level session controller: the single owner of session state."""

from __future__ import annotations

import logging
from pathlib import Path

from smartlook.capture import CameraSession, CaptureAdapter, CapturedImage, CaptureError, VideoSource
from smartlook.catalog import Brand
from smartlook.config.settings import ConfigurationError
from smartlook.gateway import AIGateway, AnalysisResult, GatewayError, TryOnResult
from smartlook.monitoring.metrics import wardrobe_items
from smartlook.services import FittingOrchestrator, ShoppingOrchestrator, ShoppingResult
from smartlook.session import AppTab, SessionContext
from smartlook.state_machine import InvalidTransitionError, ProcessState
from smartlook.storage import GarmentEntry, new_entry_id

logger = logging.getLogger(__name__)

ANALYSIS_NOTICE = "分析失敗，請重試"


class SessionController:
    """Sequences capture → analysis → confirmation and delegates try-on and shopping."""

    def __init__(
        self,
        session: SessionContext | None = None,
        gateway: AIGateway | None = None,
        capture: CaptureAdapter | None = None,
    ) -> None:
        self.session = session or SessionContext()
        self.gateway = gateway or AIGateway()
        self.capture = capture or CaptureAdapter()
        self.fitting = FittingOrchestrator(self.session, self.gateway)
        self.shopping = ShoppingOrchestrator(self.session, self.gateway)
        self._camera: CameraSession | None = None
        self._camera_for_user_photo = False

    @property
    def state(self) -> ProcessState:
        return self.session.machine.state

    async def close(self) -> None:
        if self._camera is not None:
            await self._camera.release()
        await self.gateway.close()

    def switch_tab(self, tab: AppTab | str) -> AppTab:
        self.session.active_tab = AppTab(tab)
        return self.session.active_tab

    def _ensure_no_shopping(self, event: str) -> None:
        if self.shopping.running:
            raise InvalidTransitionError(self.state, event)

    # Upload flow

    async def submit_garment(self, image: CapturedImage) -> AnalysisResult | None:
        """Analyse a garment image; on success the machine waits in ``AnalysisReady``."""

        self._ensure_no_shopping("analyze")
        machine = self.session.machine
        machine.begin_analysis(image)
        camera, self._camera = self._camera, None
        if camera is not None:
            await camera.release()
        try:
            result = await self.gateway.analyze_garment(image)
        except ConfigurationError as exc:
            machine.analysis_failed()
            self.session.notify(str(exc), source="upload")
            return None
        except GatewayError as exc:
            logger.error("Garment analysis failed (%s): %s", exc.kind.value, exc)
            machine.analysis_failed()
            self.session.notify(ANALYSIS_NOTICE, source="upload")
            return None
        except BaseException:
            machine.reset()
            raise
        machine.analysis_succeeded(result)
        return result

    async def submit_garment_file(self, path: Path | str) -> AnalysisResult | None:
        try:
            image = self.capture.from_file(path)
        except CaptureError as exc:
            self.session.notify(exc.notice, source="upload")
            return None
        return await self.submit_garment(image)

    async def submit_garment_upload(self, data: bytes, filename: str | None = None) -> AnalysisResult | None:
        try:
            image = self.capture.from_upload(data, filename)
        except CaptureError as exc:
            self.session.notify(exc.notice, source="upload")
            return None
        return await self.submit_garment(image)

    def confirm_garment(self) -> GarmentEntry:
        """Commit the pending analysis to the wardrobe and switch to the wardrobe view."""

        pending = self.session.machine.confirm()
        entry = GarmentEntry(
            id=new_entry_id(),
            image=pending.image.data,
            mime_type=pending.image.mime_type,
            category=pending.result.category,
            description=pending.result.description,
        )
        self.session.wardrobe.append(entry)
        wardrobe_items.set(len(self.session.wardrobe))
        self.session.active_tab = AppTab.WARDROBE
        logger.info("Garment %s added to wardrobe as %s", entry.id, entry.category.value)
        return entry

    def retake(self) -> None:
        self.session.machine.retake()

    # Camera modal

    async def open_camera(self, source: VideoSource, *, for_user_photo: bool = False) -> bool:
        """Enter the camera modal; ``False`` (with a notice) when the device cannot be opened."""

        self._ensure_no_shopping("open_camera")
        self.session.machine.open_camera()
        camera = CameraSession(source)
        try:
            await camera.open()
        except CaptureError as exc:
            self.session.machine.close_camera()
            self.session.notify(exc.notice, source="camera")
            return False
        self._camera = camera
        self._camera_for_user_photo = for_user_photo
        return True

    async def close_camera(self) -> None:
        """User closed the modal without taking a picture."""

        camera, self._camera = self._camera, None
        if camera is not None:
            await camera.release()
        if self.session.machine.state is ProcessState.CAPTURING_VIA_CAMERA:
            self.session.machine.close_camera()

    async def take_snapshot(self) -> AnalysisResult | CapturedImage | None:
        """
        Capture one frame and leave the modal.

        Garment snapshots go straight to analysis; user-photo snapshots become
        the session's user photo without any oracle call.
        """

        camera, self._camera = self._camera, None
        if camera is None:
            raise InvalidTransitionError(self.state, "capture")
        try:
            image = await camera.capture()
        except CaptureError as exc:
            self.session.machine.close_camera()
            self.session.notify(exc.notice, source="camera")
            return None
        except BaseException:
            self.session.machine.reset()
            raise

        if self._camera_for_user_photo:
            self.session.machine.close_camera()
            self.session.set_user_photo(image)
            return image
        return await self.submit_garment(image)

    async def capture_garment_with_camera(self, source: VideoSource) -> AnalysisResult | None:
        if not await self.open_camera(source):
            return None
        result = await self.take_snapshot()
        return result if isinstance(result, AnalysisResult) else None

    async def capture_user_photo_with_camera(self, source: VideoSource) -> CapturedImage | None:
        if not await self.open_camera(source, for_user_photo=True):
            return None
        result = await self.take_snapshot()
        return result if isinstance(result, CapturedImage) else None

    # User photo

    def set_user_photo(self, image: CapturedImage) -> None:
        if self.session.machine.busy:
            raise InvalidTransitionError(self.state, "user_photo")
        self.session.set_user_photo(image)

    def set_user_photo_upload(self, data: bytes, filename: str | None = None) -> CapturedImage | None:
        try:
            image = self.capture.from_upload(data, filename)
        except CaptureError as exc:
            self.session.notify(exc.notice, source="photo")
            return None
        self.set_user_photo(image)
        return image

    # Fitting room

    def toggle_selection(self, entry_id: str) -> bool:
        return self.session.selection.toggle(entry_id)

    async def generate_tryon(self) -> TryOnResult | None:
        self._ensure_no_shopping("generate_tryon")
        return await self.fitting.generate(self.session.selection.ordered())

    def dismiss_tryon_result(self) -> None:
        self.session.machine.dismiss_result()

    # Shopping

    def toggle_brand(self, brand: Brand | str) -> bool:
        return self.session.toggle_brand(brand)

    async def recommend_shop(self) -> ShoppingResult | None:
        return await self.shopping.run(self.session.user_photo, self.session.brands)
