"""Request and response bodies for dataset access grants."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.core.errors import ValidationError
from app.models.provisioning import OAuthCredential, ProvisioningRequest

# 9999-12-31T23:59:59.999Z, the last instant ``datetime`` can represent.
MAX_EXPIRY_DATE_MS = 253402300799999


class GrantAccessRequest(BaseModel):
    """Grant request as posted by the browser client.

    Fields default to empty strings so missing values reach the orchestrator's
    validation and produce the service's own error body.
    """

    model_config = ConfigDict(populate_by_name=True)

    refresh_token: str = Field("", alias="refreshToken")
    project_id: str = Field("", alias="projectId")
    dataset_id: str = Field("", alias="datasetId")
    access_token: Optional[str] = Field(None, alias="accessToken")
    expiry_date: Optional[int] = Field(
        None,
        alias="expiryDate",
        description="Access token expiry in milliseconds since the epoch.",
    )

    def to_provisioning_request(self) -> ProvisioningRequest:
        expires_at = None
        if self.expiry_date is not None:
            if not 0 <= self.expiry_date <= MAX_EXPIRY_DATE_MS:
                raise ValidationError("Expiry date is out of range.")
            expires_at = datetime.fromtimestamp(self.expiry_date / 1000, tz=timezone.utc)
        credential = OAuthCredential(
            refresh_token=self.refresh_token,
            access_token=self.access_token,
            expires_at=expires_at,
        )
        return ProvisioningRequest(
            credential=credential,
            account_id=self.project_id.strip(),
            resource_id=self.dataset_id.strip(),
        )


class GrantAccessResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = "Access granted successfully"
    stack_name: str = Field(..., alias="stackName")
    outputs: Dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    error: str
    message: str


__all__ = ["ErrorResponse", "GrantAccessRequest", "GrantAccessResponse"]
