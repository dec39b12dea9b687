"""Prompt building for the oracle calls."""

from .prompt_builder import (
    ANALYSIS_REQUEST,
    ANALYSIS_SCHEMA,
    ANALYSIS_SYSTEM_INSTRUCTION,
    SHOP_RECOMMENDATION_SCHEMA,
    PromptBuilder,
    describe_items,
)

__all__ = [
    "ANALYSIS_REQUEST",
    "ANALYSIS_SCHEMA",
    "ANALYSIS_SYSTEM_INSTRUCTION",
    "SHOP_RECOMMENDATION_SCHEMA",
    "PromptBuilder",
    "describe_items",
]
