"""Multi-step flows built on top of the gateway."""

from .fitting import FittingOrchestrator
from .shopping import ShoppingOrchestrator, ShoppingResult

__all__ = ["FittingOrchestrator", "ShoppingOrchestrator", "ShoppingResult"]
