"""Shop try-on: recommend catalog items, then dress the user photo in them."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable

from smartlook.api import GeneratedImage
from smartlook.capture import CapturedImage
from smartlook.catalog import Brand
from smartlook.config.settings import ConfigurationError
from smartlook.gateway import AIGateway, GatewayError, ShopRecommendation
from smartlook.imggen import describe_items
from smartlook.session import SessionContext
from smartlook.state_machine import PreconditionError

logger = logging.getLogger(__name__)

SHOPPING_NOTICE = "AI 忙碌中，請稍後再試"


@dataclass(slots=True)
class ShoppingResult:
    """A recommendation that always exists, plus an image that may not."""

    recommendation: ShopRecommendation
    user_photo: CapturedImage
    image: GeneratedImage | None = None

    @property
    def total_price(self) -> float:
        return self.recommendation.total_price

    @property
    def display_image_url(self) -> str:
        """The generated image, or the plain user photo when synthesis failed."""

        if self.image is not None:
            return self.image.data_url
        return self.user_photo.data_url


class ShoppingOrchestrator:
    """Two sequential oracle calls: step 2 consumes step 1's items."""

    def __init__(self, session: SessionContext, gateway: AIGateway) -> None:
        self._session = session
        self._gateway = gateway
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    async def run(
        self,
        user_photo: CapturedImage | None = None,
        brands: Iterable[Brand | str] | None = None,
    ) -> ShoppingResult | None:
        """Return the recommendation (and image when available), or ``None`` if step 1 failed."""

        session = self._session
        photo = user_photo or session.user_photo
        if photo is None:
            raise PreconditionError("請先上傳全身照。")
        selected = [Brand(brand) for brand in (brands if brands is not None else session.brands)]
        if not selected:
            raise PreconditionError("請至少選擇一個品牌。")
        if self.running or session.machine.busy:
            raise PreconditionError("目前有其他流程進行中，請稍候。")

        async with self._lock:
            session.shopping_result = None
            try:
                recommendation = await self._gateway.recommend_shop_outfit(photo, selected)
            except ConfigurationError as exc:
                session.notify(str(exc), source="shopping")
                return None
            except GatewayError as exc:
                logger.error("Shop recommendation failed (%s): %s", exc.kind.value, exc)
                session.notify(SHOPPING_NOTICE, source="shopping")
                return None

            description = describe_items(recommendation.items)
            image = await self._gateway.generate_shop_tryon(photo, description)
            if image is None:
                logger.info("Shop try-on image unavailable; falling back to the user photo.")

            result = ShoppingResult(recommendation=recommendation, user_photo=photo, image=image)
            session.shopping_result = result
            return result
