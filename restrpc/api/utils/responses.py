"""JSON response class using orjson serialization.

Procedure outputs are already dumped to JSON-compatible data by pydantic, so
rendering only has to encode them. orjson keeps dict insertion order, which
keeps procedure outputs and the OpenAPI document in declaration order.

``ORJSONResponse`` is the default response class of the FastAPI application
and the response class of the dispatch pipeline.
"""

from typing import Any

import orjson
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ORJSONResponse(JSONResponse):
    """Response class using orjson for JSON serialization.

    Attributes:
        media_type: The media type for the response.
    """

    media_type = "application/json"

    def render(self, content: Any) -> bytes:  # noqa: ANN401 - accepts any JSON-serializable content
        """Render the content as JSON using orjson.

        Args:
            content: The content to serialize to JSON.

        Returns:
            bytes: The JSON-encoded bytes.
        """
        # Handle Pydantic models by calling model_dump()
        if isinstance(content, BaseModel):
            content = content.model_dump(mode="json")

        return orjson.dumps(content, option=orjson.OPT_NON_STR_KEYS)
