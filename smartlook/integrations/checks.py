"""Connectivity check for the external oracle."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable

from openai import APIError

from smartlook.api import OracleClient, OracleRequestError
from smartlook.config.settings import ConfigurationError, get_settings


@dataclass(slots=True)
class IntegrationCheckResult:
    """Structured result describing the integration check outcome."""

    name: str
    success: bool
    message: str


async def _run_check(
    name: str,
    factory: Callable[[], Awaitable[bool]],
    success_message: str,
) -> IntegrationCheckResult:
    try:
        result = await factory()
    except (APIError, ConfigurationError, OracleRequestError, OSError) as exc:
        return IntegrationCheckResult(name=name, success=False, message=str(exc))

    if result:
        return IntegrationCheckResult(name=name, success=True, message=success_message)
    return IntegrationCheckResult(
        name=name,
        success=False,
        message="Service responded with non-success status.",
    )


async def check_oracle() -> IntegrationCheckResult:
    """List models on the configured endpoint to confirm the key and URL work."""

    async def _ping() -> bool:
        client = OracleClient(get_settings())
        try:
            return await client.ping()
        finally:
            await client.close()

    return await _run_check(
        name="Oracle",
        factory=_ping,
        success_message="Oracle endpoint is reachable.",
    )


async def run_all_checks() -> list[IntegrationCheckResult]:
    """Execute all integration checks."""

    return [await check_oracle()]
