"""Pydantic models for provider responses.

Frozen models validated up front, so a malformed token endpoint reply is
rejected before any session field is touched.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Annotated, Any, Self

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .errors import InvalidTokenResponseError


class TokenResponse(BaseModel):
    """Token endpoint response of a successful refresh grant."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    access_token: str = Field(..., min_length=1)
    refresh_token: str = Field(..., min_length=1)
    expires_in: Annotated[int, Field(ge=0)]
    token_type: str = Field(default="Bearer")
    scope: str | None = None
    id_token: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> Self:
        """Parse a decoded token endpoint JSON body.

        Raises:
            InvalidTokenResponseError: If the body is not an object, a
                required field is missing or empty, or ``expires_in`` is
                negative.
        """
        if not isinstance(payload, Mapping):
            msg = f"Token response must be a JSON object, got {type(payload).__name__}"
            raise InvalidTokenResponseError(msg)

        try:
            return cls.model_validate(dict(payload))
        except PydanticValidationError as e:
            fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
            raise InvalidTokenResponseError(
                f"Invalid token response: {', '.join(fields)}",
                details={"fields": fields},
            ) from e
