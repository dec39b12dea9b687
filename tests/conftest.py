"""Shared fixtures: settings, a scripted oracle and sample images."""

from __future__ import annotations

from io import BytesIO
from typing import Any, Callable, Mapping, Sequence

import pytest
from PIL import Image

from smartlook.api import MixedResponse
from smartlook.config.settings import SmartLookSettings, get_settings
from smartlook.controller import SessionController
from smartlook.gateway import AIGateway


class ScriptedOracle:
    """Stands in for ``OracleClient``; replays queued outcomes in order."""

    def __init__(self) -> None:
        self.structured: list[dict[str, Any] | Exception] = []
        self.mixed: list[MixedResponse | Exception] = []
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    async def structured_completion(
        self,
        parts: Sequence[Mapping[str, Any]],
        *,
        schema_name: str,
        schema: Mapping[str, Any],
        system_instruction: str | None = None,
    ) -> dict[str, Any]:
        self.calls.append({"kind": "structured", "schema_name": schema_name, "parts": list(parts)})
        outcome = self.structured.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def generate_content(self, parts: Sequence[Mapping[str, Any]]) -> MixedResponse:
        self.calls.append({"kind": "mixed", "parts": list(parts)})
        outcome = self.mixed.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def _setup_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SMARTLOOK_API_KEY", "test-key")
    monkeypatch.setenv("SMARTLOOK_BASE_URL", "https://oracle.test/v1")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def make_jpeg() -> Callable[..., bytes]:
    def _make(color: tuple[int, int, int] = (200, 30, 30), size: tuple[int, int] = (8, 8)) -> bytes:
        buffer = BytesIO()
        Image.new("RGB", size, color).save(buffer, format="JPEG")
        return buffer.getvalue()

    return _make


@pytest.fixture
def make_png() -> Callable[..., bytes]:
    def _make(color: tuple[int, int, int] = (10, 120, 240)) -> bytes:
        buffer = BytesIO()
        Image.new("RGB", (4, 4), color).save(buffer, format="PNG")
        return buffer.getvalue()

    return _make


@pytest.fixture
def oracle() -> ScriptedOracle:
    return ScriptedOracle()


@pytest.fixture
def gateway(oracle: ScriptedOracle) -> AIGateway:
    return AIGateway(SmartLookSettings(api_key="test-key"), client=oracle)  # type: ignore[arg-type]


@pytest.fixture
def controller(gateway: AIGateway) -> SessionController:
    return SessionController(gateway=gateway)


@pytest.fixture
def shirt_analysis() -> dict[str, Any]:
    return {"category": "上衣", "description": "白色棉質襯衫，簡約風格。", "stylingTips": "搭配牛仔褲適合休閒場合。"}


@pytest.fixture
def shop_payload() -> dict[str, Any]:
    return {
        "styleAnalysis": "簡約日系風格，適合中性色系。",
        "items": [
            {
                "brand": "Uniqlo",
                "name": "AIRism 棉質寬版T恤",
                "price": 390,
                "category": "上衣",
                "reason": "寬鬆版型修飾身形。",
                "purchaseUrl": "https://www.google.com/search?q=Uniqlo+AIRism",
            },
            {
                "brand": "GU",
                "name": "寬褲",
                "price": 590.5,
                "category": "下著",
                "reason": "延伸腿部線條。",
                "purchaseUrl": "not a url",
            },
        ],
    }
