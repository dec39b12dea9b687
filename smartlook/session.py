"""Explicit per-session state shared by the controller and the orchestrators."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from smartlook.capture import CapturedImage
from smartlook.catalog import DEFAULT_BRANDS, Brand
from smartlook.state_machine import ProcessStateMachine
from smartlook.storage import SelectionSet, WardrobeStore

if TYPE_CHECKING:
    from smartlook.services.shopping import ShoppingResult

logger = logging.getLogger(__name__)


class AppTab(str, Enum):
    """The four navigable views."""

    UPLOAD = "upload"
    WARDROBE = "wardrobe"
    FITTING_ROOM = "fitting"
    SHOPPING = "shopping"


@dataclass(slots=True, frozen=True)
class Notice:
    """User-facing message reported out of band (the blocking alert of the UI)."""

    message: str
    source: str
    created_at: float = field(default_factory=time.time)


@dataclass(slots=True)
class SessionContext:
    """Wardrobe, user photo, selection and view state for one user session."""

    wardrobe: WardrobeStore = field(default_factory=WardrobeStore)
    machine: ProcessStateMachine = field(default_factory=ProcessStateMachine)
    user_photo: CapturedImage | None = None
    brands: list[Brand] = field(default_factory=lambda: list(DEFAULT_BRANDS))
    active_tab: AppTab = AppTab.UPLOAD
    shopping_result: "ShoppingResult | None" = None
    notices: list[Notice] = field(default_factory=list)
    selection: SelectionSet = field(init=False)

    def __post_init__(self) -> None:
        self.selection = SelectionSet(self.wardrobe)

    def notify(self, message: str, source: str) -> Notice:
        notice = Notice(message=message, source=source)
        self.notices.append(notice)
        logger.info("Notice from %s: %s", source, message)
        return notice

    def drain_notices(self) -> list[Notice]:
        """Return pending notices and forget them."""

        drained, self.notices = self.notices, []
        return drained

    def set_user_photo(self, image: CapturedImage) -> None:
        """Replace the session's body photo."""

        self.user_photo = image

    def toggle_brand(self, brand: Brand | str) -> bool:
        """Flip ``brand`` in the shopping selection; return ``True`` when now selected."""

        value = Brand(brand)
        if value in self.brands:
            self.brands.remove(value)
            return False
        self.brands.append(value)
        return True
