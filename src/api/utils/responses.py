"""JSON response class serialized with orjson.

Set as the application's default response class so every endpoint, error
handler and middleware short-circuit renders bodies the same way. orjson
handles datetime values natively, which the health payloads rely on.
"""

from typing import Any

import orjson
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ORJSONResponse(JSONResponse):
    """JSONResponse rendered with orjson."""

    media_type = "application/json"

    def render(self, content: Any) -> bytes:  # noqa: ANN401 - any JSON-serializable content
        """Render ``content`` as JSON bytes.

        Pydantic models are dumped in JSON mode first so that nested models
        and timestamps serialize the same way as in route responses.
        """
        if isinstance(content, BaseModel):
            content = content.model_dump(mode="json", by_alias=True, exclude_none=True)
        return orjson.dumps(content, option=orjson.OPT_NON_STR_KEYS)
