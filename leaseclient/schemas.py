"""
Backend response models.

Only the fields this client reads are declared; anything else the server
sends is ignored.
"""

import logging
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)


class MessageResponse(BaseModel):
    """Generic acknowledgement or error body."""
    model_config = ConfigDict(extra="ignore")

    message: Optional[str] = Field(None, description="Human-readable server message")


class TokenResponse(BaseModel):
    """Refresh endpoint response."""
    model_config = ConfigDict(extra="ignore")

    token: str = Field(..., min_length=1, description="New access token")


class LoginResponse(BaseModel):
    """Login / 2FA validation response."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(..., alias="_id", description="User id")
    name: str = ""
    email: Optional[str] = None
    role: str = "tenant"
    is_verified: bool = Field(False, alias="isVerified")
    is_phone_verified: bool = Field(False, alias="isPhoneVerified")
    two_factor_enabled: bool = Field(False, alias="twoFactorEnabled")
    token: Optional[str] = Field(None, description="Access token, absent when 2FA is pending")

    def identity_dict(self) -> dict:
        return {
            "_id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "isVerified": self.is_verified,
            "isPhoneVerified": self.is_phone_verified,
        }


class PhoneNotVerifiedResponse(BaseModel):
    """403 body returned by login when the phone still needs an OTP."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    message: str
    token: str
    phone_number: Optional[str] = Field(None, alias="phoneNumber")


def read_json(response: httpx.Response) -> dict:
    """Decode a JSON object body, or {} when there is none."""
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def extract_message(response: httpx.Response) -> Optional[str]:
    """Server-supplied `message` of a response body, if any."""
    try:
        return MessageResponse.model_validate(read_json(response)).message
    except ValidationError:
        return None
