"""Error response schemas.

Every error leaves the API in the same shape, a list of ``{param, msg}``
entries, so clients can show field errors and service errors the same way:

    {"errors": [{"param": "database", "msg": "Database service is ..."}]}

``param`` names the request field at fault, or one of the pseudo-fields
``database``, ``server`` and ``auth`` for errors not tied to a field.
"""

from pydantic import BaseModel, Field


class ErrorItem(BaseModel):
    """A single error entry."""

    param: str = Field(
        ...,
        description="Request field or subsystem the error relates to",
        examples=["username", "database", "server"],
    )
    msg: str = Field(
        ...,
        description="Human-readable error message",
        examples=["Database service is temporarily unavailable."],
    )


class ErrorResponse(BaseModel):
    """Standardized error response body."""

    errors: list[ErrorItem] = Field(..., min_length=1)

    @classmethod
    def single(cls, param: str, msg: str) -> "ErrorResponse":
        """Build a response holding one error entry."""
        return cls(errors=[ErrorItem(param=param, msg=msg)])
