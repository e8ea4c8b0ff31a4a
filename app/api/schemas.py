"""
Pydantic schemas for API request/response validation and documentation.
These models provide type hints, validation, and examples for FastAPI's auto-generated docs.
"""

from pydantic import BaseModel, Field
from typing import Optional, Any


# ============================================================================
# ENROLLMENT SCHEMAS
# ============================================================================

class TotpEnrollRequest(BaseModel):
    """Request body for enrolling a new TOTP credential."""
    label: str = Field(..., min_length=1, max_length=255, description="Account name shown in the authenticator app")
    issuer: Optional[str] = Field(None, min_length=1, max_length=255, description="Issuer shown in the authenticator app, defaults to TOTP_ISSUER")

    class Config:
        json_schema_extra = {
            "example": {
                "label": "jane@example.com",
                "issuer": "exam-registry"
            }
        }


class TotpEnrollData(BaseModel):
    """Provisioning data for a freshly enrolled credential."""
    secret: str = Field(..., description="Base32 encoded shared secret")
    url: str = Field(..., description="otpauth:// provisioning URI")
    qr: str = Field(..., description="QR code of the URI as SVG markup")


class TotpEnrollResponse(BaseModel):
    """Response from the enrollment endpoint."""
    success: bool = Field(..., description="Whether enrollment was successful")
    message: Optional[str] = Field(None, description="Status message")
    data: Optional[TotpEnrollData] = Field(None, description="Provisioning data if successful")

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "message": "Credential enrolled",
                "data": {
                    "secret": "JBSWY3DPEHPK3PXPJBSWY3DPEHPK3PXP",
                    "url": "otpauth://totp/jane@example.com?secret=JBSWY3DPEHPK3PXPJBSWY3DPEHPK3PXP&issuer=exam-registry",
                    "qr": "<svg ...></svg>"
                }
            }
        }


# ============================================================================
# VERIFICATION SCHEMAS
# ============================================================================

class TotpVerifyRequest(BaseModel):
    """Request body for TOTP verification. The code format is checked by the handler."""
    label: str = Field(..., min_length=1, description="Account name the credential was enrolled with")
    totp_code: str = Field(..., description="6-digit TOTP code from authenticator app")

    class Config:
        json_schema_extra = {
            "example": {
                "label": "jane@example.com",
                "totp_code": "123456"
            }
        }


class TotpVerifyResponse(BaseModel):
    """Response from the verification endpoint. On failure `data.reason` holds the failure kind."""
    success: bool = Field(..., description="Whether the TOTP was accepted")
    message: Optional[str] = Field(None, description="Status message")
    data: Optional[Any] = Field(None, description="Check result")

    class Config:
        json_schema_extra = {
            "example": {
                "success": False,
                "message": "Invalid TOTP code",
                "data": {"ok": False, "reason": "WRONG_TOTP"}
            }
        }


class AdminResponse(BaseModel):
    """Generic admin operation response."""
    success: bool = Field(..., description="Whether operation was successful")
    message: Optional[str] = Field(None, description="Status message")
    data: Optional[Any] = Field(None, description="Additional data if applicable")
