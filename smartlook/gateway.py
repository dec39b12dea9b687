"""The four oracle operations: analysis, wardrobe try-on, shop recommendation, shop try-on."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from smartlook.api import (
    GeneratedImage,
    OracleClient,
    OracleFailure,
    OracleRequestError,
    image_part,
    text_part,
)
from smartlook.capture import CapturedImage
from smartlook.catalog import Brand, is_search_url, search_url
from smartlook.config.settings import ConfigurationError, SmartLookSettings, get_settings
from smartlook.imggen import (
    ANALYSIS_REQUEST,
    ANALYSIS_SCHEMA,
    ANALYSIS_SYSTEM_INSTRUCTION,
    SHOP_RECOMMENDATION_SCHEMA,
    PromptBuilder,
)
from smartlook.monitoring.metrics import record_oracle_call
from smartlook.storage import Category

logger = logging.getLogger(__name__)

ANALYSIS_FAILED = "無法分析圖片，請稍後再試。"
TRYON_FAILED = "虛擬試穿生成失敗，請稍後再試。"
RECOMMENDATION_FAILED = "無法取得商品推薦，請稍後再試。"


class GatewayError(RuntimeError):
    """Base class for oracle failures translated at the gateway boundary."""

    def __init__(self, message: str, kind: OracleFailure = OracleFailure.SERVICE) -> None:
        self.kind = kind
        super().__init__(message)


class AnalysisError(GatewayError):
    """Raised when garment analysis fails."""


class TryOnGenerationError(GatewayError):
    """Raised when the wardrobe try-on generation fails."""


class RecommendationError(GatewayError):
    """Raised when the shop recommendation step fails."""


class AnalysisResult(BaseModel):
    """Oracle classification of a single garment photo."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    category: Category
    description: str
    styling_tips: str = Field(alias="stylingTips")
    raw: str = ""


class ShopItem(BaseModel):
    """A simulated catalog item recommended by the oracle."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    brand: Brand
    name: str
    category: str
    price: float
    reason: str
    purchase_url: str = Field(alias="purchaseUrl")


class ShopRecommendation(BaseModel):
    """Style analysis plus a non-empty list of items."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    style_analysis: str = Field(alias="styleAnalysis")
    items: list[ShopItem] = Field(min_length=1)

    @property
    def total_price(self) -> float:
        return sum(item.price for item in self.items)


@dataclass(slots=True)
class TryOnResult:
    """Generated try-on image (optional) and styling advice (possibly empty)."""

    image: GeneratedImage | None
    advice: str = ""

    @property
    def has_image(self) -> bool:
        return self.image is not None


class AIGateway:
    """Sole boundary to the oracle; owns prompts, schemas, parsing and error translation."""

    def __init__(
        self,
        settings: SmartLookSettings | None = None,
        client: OracleClient | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client
        self._prompt_builder = PromptBuilder()

    def _oracle(self) -> OracleClient:
        if self._client is None:
            self._client = OracleClient(self._settings)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()

    async def analyze_garment(self, image: CapturedImage) -> AnalysisResult:
        """Classify and describe one garment photo."""

        parts = [image_part(image.data, image.mime_type), text_part(ANALYSIS_REQUEST)]
        try:
            payload = await self._oracle().structured_completion(
                parts,
                schema_name="garment_analysis",
                schema=ANALYSIS_SCHEMA,
                system_instruction=ANALYSIS_SYSTEM_INSTRUCTION,
            )
        except OracleRequestError as exc:
            logger.error("Garment analysis failed: %s", exc)
            record_oracle_call("analysis", exc.kind.value)
            raise AnalysisError(ANALYSIS_FAILED, kind=exc.kind) from exc

        try:
            result = AnalysisResult.model_validate({**payload, "raw": json.dumps(payload, ensure_ascii=False)})
        except ValidationError as exc:
            logger.error("Garment analysis violated the response schema: %s", payload)
            record_oracle_call("analysis", OracleFailure.MALFORMED.value)
            raise AnalysisError(ANALYSIS_FAILED, kind=OracleFailure.MALFORMED) from exc
        record_oracle_call("analysis", "ok")
        return result

    async def generate_wardrobe_tryon(
        self,
        user_image: CapturedImage,
        garment_images: Sequence[CapturedImage],
    ) -> TryOnResult:
        """Dress the portrait in the garments, in the order given."""

        parts = [image_part(user_image.data, user_image.mime_type)]
        parts.extend(image_part(garment.data, garment.mime_type) for garment in garment_images)
        parts.append(text_part(self._prompt_builder.wardrobe_tryon(len(garment_images))))

        try:
            response = await self._oracle().generate_content(parts)
        except OracleRequestError as exc:
            logger.error("Wardrobe try-on generation failed: %s", exc)
            record_oracle_call("wardrobe_tryon", exc.kind.value)
            raise TryOnGenerationError(TRYON_FAILED, kind=exc.kind) from exc

        if response.image is None and not response.text.strip():
            logger.error("Wardrobe try-on returned neither image nor advice.")
            record_oracle_call("wardrobe_tryon", OracleFailure.EMPTY.value)
            raise TryOnGenerationError(TRYON_FAILED, kind=OracleFailure.EMPTY)
        record_oracle_call("wardrobe_tryon", "ok")
        return TryOnResult(image=response.image, advice=response.text)

    async def recommend_shop_outfit(
        self,
        user_image: CapturedImage,
        brands: Iterable[Brand | str],
    ) -> ShopRecommendation:
        """Recommend a 2-3 item outfit from the selected brands."""

        selected = list(dict.fromkeys(Brand(brand) for brand in brands))
        if not selected:
            raise ValueError("At least one brand must be selected.")

        parts = [
            image_part(user_image.data, user_image.mime_type),
            text_part(self._prompt_builder.shop_recommendation(selected)),
        ]
        try:
            payload = await self._oracle().structured_completion(
                parts,
                schema_name="shop_recommendation",
                schema=SHOP_RECOMMENDATION_SCHEMA,
            )
        except OracleRequestError as exc:
            logger.error("Shop recommendation failed: %s", exc)
            record_oracle_call("shop_recommendation", exc.kind.value)
            raise RecommendationError(RECOMMENDATION_FAILED, kind=exc.kind) from exc

        try:
            recommendation = ShopRecommendation.model_validate(payload)
        except ValidationError as exc:
            logger.error("Shop recommendation violated the response schema: %s", payload)
            record_oracle_call("shop_recommendation", OracleFailure.MALFORMED.value)
            raise RecommendationError(RECOMMENDATION_FAILED, kind=OracleFailure.MALFORMED) from exc
        record_oracle_call("shop_recommendation", "ok")

        return recommendation.model_copy(
            update={"items": [self._with_search_url(item) for item in recommendation.items]},
        )

    async def generate_shop_tryon(self, user_image: CapturedImage, items_description: str) -> GeneratedImage | None:
        """Dress the portrait in text-described items; any failure yields ``None``."""

        parts = [
            image_part(user_image.data, user_image.mime_type),
            text_part(self._prompt_builder.shop_tryon(items_description)),
        ]
        try:
            response = await self._oracle().generate_content(parts)
        except (OracleRequestError, ConfigurationError) as exc:
            logger.warning("Shop try-on generation failed, continuing without image: %s", exc)
            record_oracle_call("shop_tryon", getattr(exc, "kind", OracleFailure.SERVICE).value)
            return None
        record_oracle_call("shop_tryon", "ok" if response.image is not None else OracleFailure.EMPTY.value)
        return response.image

    @staticmethod
    def _with_search_url(item: ShopItem) -> ShopItem:
        if is_search_url(item.purchase_url):
            return item
        return item.model_copy(update={"purchase_url": search_url(item.brand.value, item.name)})
