"""Schemas related to OAuth flows."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class OAuthCallbackResponse(BaseModel):
    """JSON body returned to API clients completing the OAuth callback."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = "Authentication successful"
    refresh_token: str = Field(..., alias="refreshToken")
    expiry_date: Optional[int] = Field(
        None,
        alias="expiryDate",
        description="Access token expiry in milliseconds since the epoch.",
    )


class RevokeRequest(BaseModel):
    """Payload for revoking an access or refresh token."""

    token: str = Field("", description="Token to invalidate at Google.")


__all__ = ["OAuthCallbackResponse", "RevokeRequest"]
