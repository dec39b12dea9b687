"""Wardrobe try-on: resolve the selection and ask the oracle to dress the user photo."""

from __future__ import annotations

import logging
from typing import Iterable

from smartlook.capture import CapturedImage
from smartlook.config.settings import ConfigurationError
from smartlook.gateway import AIGateway, GatewayError, TryOnResult
from smartlook.session import SessionContext
from smartlook.state_machine import PreconditionError

logger = logging.getLogger(__name__)

TRYON_NOTICE = "生成失敗，請稍後再試"


class FittingOrchestrator:
    """Runs one try-on generation for the session's user photo and selection."""

    def __init__(self, session: SessionContext, gateway: AIGateway) -> None:
        self._session = session
        self._gateway = gateway

    def _resolve(self, selection_ids: Iterable[str]) -> list[CapturedImage]:
        ids = list(dict.fromkeys(selection_ids))
        if not ids:
            raise PreconditionError("請至少選擇一件衣物。")
        wardrobe = self._session.wardrobe
        missing = [entry_id for entry_id in ids if entry_id not in wardrobe]
        if missing:
            raise PreconditionError(f"衣櫥中找不到這些衣物：{', '.join(missing)}")
        entries = [wardrobe.get(entry_id) for entry_id in ids]
        return [CapturedImage(data=entry.image, mime_type=entry.mime_type) for entry in entries]

    async def generate(self, selection_ids: Iterable[str] | None = None) -> TryOnResult | None:
        """
        Generate a try-on for ``selection_ids`` (defaults to the session selection).

        Garments are sent in the order given. The session selection is cleared
        once the try-on succeeds, not when the flow starts. Returns ``None``
        after posting a notice when the oracle fails; selection and user photo
        stay untouched.
        """

        session = self._session
        if session.user_photo is None:
            raise PreconditionError("請先上傳全身照。")
        ids = list(selection_ids) if selection_ids is not None else session.selection.ordered()
        garments = self._resolve(ids)
        user_photo = session.user_photo

        session.machine.begin_tryon()
        try:
            result = await self._gateway.generate_wardrobe_tryon(user_photo, garments)
        except ConfigurationError as exc:
            session.machine.tryon_failed()
            session.notify(str(exc), source="fitting")
            return None
        except GatewayError as exc:
            logger.error("Try-on generation failed (%s): %s", exc.kind.value, exc)
            session.machine.tryon_failed()
            session.notify(TRYON_NOTICE, source="fitting")
            return None
        except BaseException:
            session.machine.reset()
            raise

        session.machine.tryon_succeeded(result)
        session.selection.clear()
        if not result.has_image:
            logger.info("Try-on returned advice only; showing text fallback.")
        return result
