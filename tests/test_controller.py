"""End-to-end flows through the session controller."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import pytest
from PIL import Image

from smartlook.api import MixedResponse, OracleRequestError
from smartlook.capture import CAMERA_DENIED_NOTICE, CapturedImage, CaptureError
from smartlook.catalog import Brand
from smartlook.config.settings import SmartLookSettings
from smartlook.controller import ANALYSIS_NOTICE, SessionController
from smartlook.gateway import AIGateway
from smartlook.session import AppTab
from smartlook.state_machine import InvalidTransitionError, ProcessState
from smartlook.storage import Category

from conftest import ScriptedOracle


class StubCamera:
    def __init__(self, *, deny: bool = False) -> None:
        self.deny = deny
        self.stopped = 0

    def open(self) -> None:
        if self.deny:
            raise CaptureError(CAMERA_DENIED_NOTICE)

    def read(self) -> Image.Image:
        return Image.new("RGB", (8, 8), (255, 255, 255))

    def stop(self) -> None:
        self.stopped += 1


@pytest.mark.asyncio
async def test_analyse_then_confirm_adds_garment(
    controller: SessionController,
    oracle: ScriptedOracle,
    shirt_analysis: dict[str, Any],
    make_jpeg: Callable[..., bytes],
) -> None:
    data = make_jpeg()
    oracle.structured.append(shirt_analysis)

    result = await controller.submit_garment_upload(data, "shirt.jpg")

    assert result is not None
    assert controller.state is ProcessState.ANALYSIS_READY
    assert len(controller.session.wardrobe) == 0

    entry = controller.confirm_garment()

    head = controller.session.wardrobe.head()
    assert head is entry
    assert head.category is Category.TOP
    assert head.image == data
    assert head.mime_type == "image/jpeg"
    assert controller.session.active_tab is AppTab.WARDROBE
    assert controller.state is ProcessState.IDLE


@pytest.mark.asyncio
async def test_retake_discards_analysis(
    controller: SessionController, oracle: ScriptedOracle, shirt_analysis: dict[str, Any]
) -> None:
    oracle.structured.append(shirt_analysis)
    await controller.submit_garment(CapturedImage(data=b"shirt"))

    controller.retake()

    assert controller.state is ProcessState.IDLE
    assert len(controller.session.wardrobe) == 0
    with pytest.raises(InvalidTransitionError):
        controller.confirm_garment()


@pytest.mark.asyncio
async def test_analysis_failure_returns_to_idle_with_notice(
    controller: SessionController, oracle: ScriptedOracle
) -> None:
    oracle.structured.append(OracleRequestError("down", status_code=500))

    result = await controller.submit_garment(CapturedImage(data=b"shirt"))

    assert result is None
    assert controller.state is ProcessState.IDLE
    assert [notice.message for notice in controller.session.drain_notices()] == [ANALYSIS_NOTICE]


@pytest.mark.asyncio
async def test_missing_api_key_notice_comes_from_configuration() -> None:
    controller = SessionController(gateway=AIGateway(SmartLookSettings(api_key="")))

    result = await controller.submit_garment(CapturedImage(data=b"shirt"))

    assert result is None
    assert "API Key" in controller.session.drain_notices()[0].message
    assert controller.state is ProcessState.IDLE


@pytest.mark.asyncio
async def test_unreadable_file_posts_notice(controller: SessionController, tmp_path: Path) -> None:
    result = await controller.submit_garment_file(tmp_path / "nope.jpg")

    assert result is None
    assert controller.session.drain_notices()
    assert controller.state is ProcessState.IDLE


@pytest.mark.asyncio
async def test_text_only_tryon_scenario(
    controller: SessionController, oracle: ScriptedOracle, shirt_analysis: dict[str, Any]
) -> None:
    for label in (b"first", b"second"):
        oracle.structured.append(shirt_analysis)
        await controller.submit_garment(CapturedImage(data=label))
        controller.confirm_garment()
    for entry_id in controller.session.wardrobe.ids():
        controller.toggle_selection(entry_id)
    controller.set_user_photo(CapturedImage(data=b"me"))
    oracle.mixed.append(MixedResponse(text="試穿建議文字"))

    result = await controller.generate_tryon()

    assert result is not None
    assert result.image is None
    assert result.advice == "試穿建議文字"
    assert controller.session.drain_notices() == []


@pytest.mark.asyncio
async def test_shop_total_is_exact_sum(controller: SessionController, oracle: ScriptedOracle) -> None:
    controller.set_user_photo(CapturedImage(data=b"me"))
    controller.toggle_brand("GU")
    oracle.structured.append(
        {
            "styleAnalysis": "休閒",
            "items": [
                {"brand": "Uniqlo", "name": "襯衫", "price": 0.1, "category": "上衣", "reason": "r", "purchaseUrl": ""},
                {"brand": "GU", "name": "長褲", "price": 0.2, "category": "下著", "reason": "r", "purchaseUrl": ""},
            ],
        }
    )
    oracle.mixed.append(MixedResponse(text=""))

    result = await controller.recommend_shop()

    assert result is not None
    assert controller.session.brands == [Brand.UNIQLO, Brand.GU]
    assert result.total_price == 0.1 + 0.2


@pytest.mark.asyncio
async def test_camera_garment_snapshot_goes_to_analysis(
    controller: SessionController, oracle: ScriptedOracle, shirt_analysis: dict[str, Any]
) -> None:
    camera = StubCamera()
    oracle.structured.append(shirt_analysis)

    result = await controller.capture_garment_with_camera(camera)

    assert result is not None
    assert controller.state is ProcessState.ANALYSIS_READY
    assert camera.stopped == 1
    pending = controller.session.machine.pending
    assert pending is not None
    assert pending.image.mime_type == "image/jpeg"


@pytest.mark.asyncio
async def test_camera_user_photo_skips_oracle(controller: SessionController, oracle: ScriptedOracle) -> None:
    camera = StubCamera()

    photo = await controller.capture_user_photo_with_camera(camera)

    assert photo is not None
    assert controller.session.user_photo == photo
    assert controller.state is ProcessState.IDLE
    assert oracle.calls == []
    assert camera.stopped == 1


@pytest.mark.asyncio
async def test_camera_denied_returns_to_idle(controller: SessionController) -> None:
    camera = StubCamera(deny=True)

    assert await controller.open_camera(camera) is False

    assert controller.state is ProcessState.IDLE
    assert camera.stopped == 1
    assert controller.session.drain_notices()[0].message == CAMERA_DENIED_NOTICE


@pytest.mark.asyncio
async def test_closing_camera_modal_releases_device(controller: SessionController) -> None:
    camera = StubCamera()
    await controller.open_camera(camera)
    assert controller.state is ProcessState.CAPTURING_VIA_CAMERA

    await controller.close_camera()

    assert controller.state is ProcessState.IDLE
    assert camera.stopped == 1


@pytest.mark.asyncio
async def test_user_photo_cannot_change_during_a_flow(
    controller: SessionController, oracle: ScriptedOracle, shirt_analysis: dict[str, Any]
) -> None:
    oracle.structured.append(shirt_analysis)
    await controller.submit_garment(CapturedImage(data=b"shirt"))

    with pytest.raises(InvalidTransitionError):
        controller.set_user_photo(CapturedImage(data=b"me"))


def test_switch_tab(controller: SessionController) -> None:
    assert controller.switch_tab("shopping") is AppTab.SHOPPING
    with pytest.raises(ValueError):
        controller.switch_tab("settings")


@pytest.mark.asyncio
async def test_upload_while_camera_is_open_releases_device(
    controller: SessionController, oracle: ScriptedOracle, shirt_analysis: dict[str, Any]
) -> None:
    camera = StubCamera()
    await controller.open_camera(camera)
    oracle.structured.append(shirt_analysis)

    result = await controller.submit_garment(CapturedImage(data=b"uploaded"))

    assert result is not None
    assert controller.state is ProcessState.ANALYSIS_READY
    assert camera.stopped == 1
    with pytest.raises(InvalidTransitionError):
        await controller.take_snapshot()
    assert camera.stopped == 1
