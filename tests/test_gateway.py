"""Tests for the AI gateway's four oracle operations."""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest
from prometheus_client import REGISTRY

from smartlook.api import GeneratedImage, MixedResponse, OracleClient, OracleFailure, OracleRequestError
from smartlook.capture import CapturedImage
from smartlook.catalog import Brand
from smartlook.config.settings import ConfigurationError, SmartLookSettings
from smartlook.gateway import (
    AIGateway,
    AnalysisError,
    RecommendationError,
    TryOnGenerationError,
)
from smartlook.storage import Category

from conftest import ScriptedOracle

USER = CapturedImage(data=b"user-photo")


def _urls(parts: list[dict[str, Any]]) -> list[str]:
    return [part["image_url"]["url"] for part in parts if part["type"] == "image_url"]


@pytest.mark.asyncio
async def test_analyze_garment_parses_structured_answer(
    gateway: AIGateway, oracle: ScriptedOracle, shirt_analysis: dict[str, Any]
) -> None:
    oracle.structured.append(shirt_analysis)
    image = CapturedImage(data=b"shirt", mime_type="image/png")

    result = await gateway.analyze_garment(image)

    assert result.category is Category.TOP
    assert result.description == shirt_analysis["description"]
    assert result.styling_tips == shirt_analysis["stylingTips"]
    assert json.loads(result.raw) == shirt_analysis
    call = oracle.calls[0]
    assert call["schema_name"] == "garment_analysis"
    assert _urls(call["parts"]) == [image.data_url]


@pytest.mark.asyncio
async def test_analyze_garment_rejects_unknown_category(gateway: AIGateway, oracle: ScriptedOracle) -> None:
    oracle.structured.append({"category": "帽子", "description": "cap", "stylingTips": "tips"})

    with pytest.raises(AnalysisError) as excinfo:
        await gateway.analyze_garment(CapturedImage(data=b"cap"))

    assert excinfo.value.kind is OracleFailure.MALFORMED


@pytest.mark.asyncio
async def test_analyze_garment_translates_service_failure(gateway: AIGateway, oracle: ScriptedOracle) -> None:
    oracle.structured.append(OracleRequestError("boom", status_code=503))

    with pytest.raises(AnalysisError) as excinfo:
        await gateway.analyze_garment(CapturedImage(data=b"x"))

    assert excinfo.value.kind is OracleFailure.SERVICE


@pytest.mark.asyncio
async def test_wardrobe_tryon_sends_user_photo_then_garments_in_order(
    gateway: AIGateway, oracle: ScriptedOracle
) -> None:
    generated = GeneratedImage(data=b"png-bytes")
    oracle.mixed.append(MixedResponse(text="建議短髮。", image=generated))
    garments = [CapturedImage(data=b"first"), CapturedImage(data=b"second")]

    result = await gateway.generate_wardrobe_tryon(USER, garments)

    assert result.image == generated
    assert result.advice == "建議短髮。"
    parts = oracle.calls[0]["parts"]
    assert _urls(parts) == [USER.data_url, garments[0].data_url, garments[1].data_url]
    assert parts[-1]["type"] == "text"


@pytest.mark.asyncio
async def test_wardrobe_tryon_with_advice_only(gateway: AIGateway, oracle: ScriptedOracle) -> None:
    oracle.mixed.append(MixedResponse(text="無法生成圖片，但建議搭配白鞋。"))

    result = await gateway.generate_wardrobe_tryon(USER, [CapturedImage(data=b"g")])

    assert result.image is None
    assert not result.has_image
    assert result.advice.startswith("無法生成圖片")


@pytest.mark.asyncio
async def test_wardrobe_tryon_with_nothing_is_empty_failure(gateway: AIGateway, oracle: ScriptedOracle) -> None:
    oracle.mixed.append(MixedResponse(text="  "))

    with pytest.raises(TryOnGenerationError) as excinfo:
        await gateway.generate_wardrobe_tryon(USER, [CapturedImage(data=b"g")])

    assert excinfo.value.kind is OracleFailure.EMPTY


@pytest.mark.asyncio
async def test_wardrobe_tryon_service_failure(gateway: AIGateway, oracle: ScriptedOracle) -> None:
    oracle.mixed.append(OracleRequestError("unavailable", status_code=500))

    with pytest.raises(TryOnGenerationError):
        await gateway.generate_wardrobe_tryon(USER, [CapturedImage(data=b"g")])


@pytest.mark.asyncio
async def test_recommendation_normalises_purchase_urls(
    gateway: AIGateway, oracle: ScriptedOracle, shop_payload: dict[str, Any]
) -> None:
    oracle.structured.append(shop_payload)

    recommendation = await gateway.recommend_shop_outfit(USER, [Brand.UNIQLO, "GU", Brand.UNIQLO])

    assert [item.brand for item in recommendation.items] == [Brand.UNIQLO, Brand.GU]
    assert recommendation.items[0].purchase_url == "https://www.google.com/search?q=Uniqlo+AIRism"
    assert recommendation.items[1].purchase_url.startswith("https://www.google.com/search?q=GU+")
    assert recommendation.total_price == pytest.approx(980.5)
    prompt = oracle.calls[0]["parts"][-1]["text"]
    assert "Uniqlo、GU" in prompt


@pytest.mark.asyncio
async def test_recommendation_requires_brands(gateway: AIGateway, oracle: ScriptedOracle) -> None:
    with pytest.raises(ValueError):
        await gateway.recommend_shop_outfit(USER, [])

    assert oracle.calls == []


@pytest.mark.asyncio
async def test_recommendation_with_no_items_is_malformed(gateway: AIGateway, oracle: ScriptedOracle) -> None:
    oracle.structured.append({"styleAnalysis": "簡約", "items": []})

    with pytest.raises(RecommendationError) as excinfo:
        await gateway.recommend_shop_outfit(USER, [Brand.LATIV])

    assert excinfo.value.kind is OracleFailure.MALFORMED


@pytest.mark.asyncio
async def test_shop_tryon_failure_yields_none(gateway: AIGateway, oracle: ScriptedOracle) -> None:
    oracle.mixed.append(OracleRequestError("timeout"))

    assert await gateway.generate_shop_tryon(USER, "Uniqlo 的 T恤 (上衣)") is None


@pytest.mark.asyncio
async def test_shop_tryon_passes_description(gateway: AIGateway, oracle: ScriptedOracle) -> None:
    generated = GeneratedImage(data=b"img")
    oracle.mixed.append(MixedResponse(text="", image=generated))

    result = await gateway.generate_shop_tryon(USER, "GU 的 寬褲 (下著)")

    assert result == generated
    assert "GU 的 寬褲 (下著)" in oracle.calls[0]["parts"][-1]["text"]


@pytest.mark.asyncio
async def test_missing_api_key_surfaces_on_first_call() -> None:
    gateway = AIGateway(SmartLookSettings(api_key=""))

    with pytest.raises(ConfigurationError):
        await gateway.analyze_garment(CapturedImage(data=b"x"))
    assert await gateway.generate_shop_tryon(USER, "items") is None


@pytest.mark.asyncio
async def test_oracle_calls_are_counted(
    gateway: AIGateway, oracle: ScriptedOracle, shirt_analysis: dict[str, Any]
) -> None:
    labels = {"operation": "analysis", "outcome": "ok"}
    before = REGISTRY.get_sample_value("smartlook_oracle_requests_total", labels) or 0.0
    oracle.structured.append(shirt_analysis)

    await gateway.analyze_garment(CapturedImage(data=b"x"))

    assert REGISTRY.get_sample_value("smartlook_oracle_requests_total", labels) == before + 1


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [["not", "an", "object"], {"choices": ["oops"]}])
async def test_shop_tryon_with_malformed_image_body_yields_none(body: object) -> None:
    client = OracleClient(SmartLookSettings(api_key="test-key", base_url="https://oracle.test/v1"))
    client._client = httpx.AsyncClient(
        base_url="https://oracle.test/v1",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json=body)),
    )
    gateway = AIGateway(SmartLookSettings(api_key="test-key"), client=client)

    try:
        assert await gateway.generate_shop_tryon(USER, "Uniqlo 的 T恤 (上衣)") is None
    finally:
        await gateway.close()
