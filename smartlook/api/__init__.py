"""Transport to the external multimodal oracle."""

from .oracle_client import (
    GeneratedImage,
    MixedResponse,
    OracleClient,
    OracleFailure,
    OracleRequestError,
    image_part,
    text_part,
)

__all__ = [
    "GeneratedImage",
    "MixedResponse",
    "OracleClient",
    "OracleFailure",
    "OracleRequestError",
    "image_part",
    "text_part",
]
