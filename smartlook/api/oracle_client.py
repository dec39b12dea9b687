"""Async wrapper around the OpenAI-compatible multimodal oracle endpoint."""

from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Sequence

import httpx
from openai import APIError, APIStatusError, AsyncOpenAI

from smartlook.config.settings import SmartLookSettings

logger = logging.getLogger(__name__)


class OracleFailure(str, Enum):
    """Distinguishable ways an oracle round trip can fail."""

    SERVICE = "service"
    MALFORMED = "malformed"
    EMPTY = "empty"


class OracleRequestError(RuntimeError):
    """Raised when the oracle call fails or returns something unusable."""

    def __init__(
        self,
        message: str,
        kind: OracleFailure = OracleFailure.SERVICE,
        status_code: int | None = None,
    ) -> None:
        self.kind = kind
        self.status_code = status_code
        super().__init__(message)


@dataclass(slots=True, frozen=True)
class GeneratedImage:
    """Inline image returned by the oracle."""

    data: bytes
    mime_type: str = "image/png"

    @property
    def data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"

    @classmethod
    def from_data_url(cls, url: str) -> "GeneratedImage | None":
        if not url.startswith("data:") or "," not in url:
            return None
        header, encoded = url.split(",", 1)
        mime_type = header[len("data:"):].split(";", 1)[0] or "image/png"
        try:
            return cls(data=base64.b64decode(encoded, validate=True), mime_type=mime_type)
        except (ValueError, binascii.Error):
            logger.warning("Oracle returned an undecodable inline image.")
            return None


@dataclass(slots=True)
class MixedResponse:
    """Concatenated text parts and the first inline image of a generation call."""

    text: str
    image: GeneratedImage | None = None


def image_part(data: bytes, mime_type: str = "image/jpeg") -> dict[str, Any]:
    """Build a chat content part carrying an inline base64 image."""

    encoded = base64.b64encode(data).decode("ascii")
    return {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{encoded}"}}


def text_part(text: str) -> dict[str, Any]:
    return {"type": "text", "text": text}


class OracleClient:
    """Provides structured (JSON) and mixed image/text generation calls."""

    def __init__(self, settings: SmartLookSettings) -> None:
        api_key = settings.require_api_key()
        base_url = settings.base_url.rstrip("/")
        self._settings = settings
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=settings.request_timeout,
            headers={
                "Authorization": f"Bearer {api_key}",
            },
        )
        self._openai = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=settings.request_timeout,
        )

    async def close(self) -> None:
        """Close the underlying HTTP clients."""

        await self._client.aclose()
        await self._openai.close()

    async def _request_json(
        self,
        method: str,
        endpoint: str,
        *,
        json_body: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            response = await self._client.request(method, endpoint, json=json_body)
            response.raise_for_status()
        except httpx.TimeoutException as exc:  # pragma: no cover - network safeguard
            raise OracleRequestError("Oracle request timed out.") from exc
        except httpx.HTTPStatusError as exc:
            raise OracleRequestError(
                f"Oracle returned {exc.response.status_code}: {exc.response.text}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.RequestError as exc:
            raise OracleRequestError(f"Oracle is unreachable: {exc}") from exc

        if not response.content:
            raise OracleRequestError("Oracle returned an empty body.", kind=OracleFailure.EMPTY)
        try:
            payload = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise OracleRequestError("Oracle returned a non-JSON body.", kind=OracleFailure.MALFORMED) from exc
        if not isinstance(payload, dict):
            raise OracleRequestError("Oracle returned a non-object JSON body.", kind=OracleFailure.MALFORMED)
        return payload

    async def structured_completion(
        self,
        parts: Sequence[Mapping[str, Any]],
        *,
        schema_name: str,
        schema: Mapping[str, Any],
        system_instruction: str | None = None,
    ) -> dict[str, Any]:
        """Run a chat completion constrained to ``schema`` and return the decoded object."""

        messages: list[dict[str, Any]] = []
        if system_instruction:
            messages.append({"role": "system", "content": system_instruction})
        messages.append({"role": "user", "content": list(parts)})

        try:
            response = await self._openai.chat.completions.create(
                model=self._settings.analysis_model,
                messages=messages,  # type: ignore[arg-type]
                response_format={
                    "type": "json_schema",
                    "json_schema": {"name": schema_name, "schema": dict(schema), "strict": True},
                },
            )
        except APIStatusError as exc:
            raise OracleRequestError(str(exc), status_code=exc.status_code) from exc
        except APIError as exc:
            raise OracleRequestError(str(exc)) from exc

        if not response.choices:
            raise OracleRequestError("Oracle returned no choices.", kind=OracleFailure.EMPTY)
        content = response.choices[0].message.content
        if not content:
            raise OracleRequestError("Oracle returned an empty message.", kind=OracleFailure.EMPTY)
        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as exc:
            raise OracleRequestError("Oracle returned malformed JSON.", kind=OracleFailure.MALFORMED) from exc
        if not isinstance(parsed, dict):
            raise OracleRequestError("Oracle returned a non-object JSON value.", kind=OracleFailure.MALFORMED)
        return parsed

    async def generate_content(self, parts: Sequence[Mapping[str, Any]]) -> MixedResponse:
        """Ask the image model for a mixed image/text answer."""

        payload = {
            "model": self._settings.image_model,
            "messages": [{"role": "user", "content": list(parts)}],
            "modalities": ["image", "text"],
        }
        result = await self._request_json("POST", "/chat/completions", json_body=payload)
        return self.parse_mixed_response(result)

    @staticmethod
    def parse_mixed_response(payload: Mapping[str, Any]) -> MixedResponse:
        """Concatenate every text part and pick the first inline image of the first choice."""

        if not isinstance(payload, Mapping):
            raise OracleRequestError("Oracle image response is not an object.", kind=OracleFailure.MALFORMED)
        choices = payload.get("choices") or []
        if not isinstance(choices, Sequence) or isinstance(choices, str):
            raise OracleRequestError("Oracle image response has malformed choices.", kind=OracleFailure.MALFORMED)
        if not choices:
            raise OracleRequestError("Oracle image response has no choices.", kind=OracleFailure.EMPTY)
        choice = choices[0]
        if not isinstance(choice, Mapping):
            raise OracleRequestError("Oracle image response has a malformed choice.", kind=OracleFailure.MALFORMED)
        message = choice.get("message") or {}
        if not isinstance(message, Mapping):
            raise OracleRequestError("Oracle image response has no message.", kind=OracleFailure.MALFORMED)

        texts: list[str] = []
        image: GeneratedImage | None = None

        for entry in message.get("images") or []:
            url = _image_url_of(entry)
            if url and image is None:
                image = GeneratedImage.from_data_url(url)

        content = message.get("content")
        if isinstance(content, str):
            if content.startswith("data:"):
                image = image or GeneratedImage.from_data_url(content)
            else:
                texts.append(content)
        elif isinstance(content, list):
            for part in content:
                if not isinstance(part, Mapping):
                    continue
                if part.get("type") == "text" and part.get("text"):
                    texts.append(str(part["text"]))
                elif part.get("type") == "image_url" and image is None:
                    url = _image_url_of(part)
                    if url:
                        image = GeneratedImage.from_data_url(url)

        if image is None:
            logger.info("Oracle image response contained no inline image.")
        return MixedResponse(text="".join(texts), image=image)

    async def ping(self) -> bool:
        """Return ``True`` when the oracle responds to a model listing call."""

        models = await self._openai.models.list()
        return bool(models.data)


def _image_url_of(entry: Any) -> str | None:
    if not isinstance(entry, Mapping):
        return None
    info = entry.get("image_url")
    if isinstance(info, Mapping):
        url = info.get("url")
        return str(url) if url else None
    if isinstance(info, str):
        return info
    return None
