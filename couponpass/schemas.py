"""
Pydantic schemas for the coupon pass endpoints.
"""

from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class PassRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    discount: str
    service_type: Optional[str] = Field(None, alias="serviceType")
    expiry_date: Optional[str] = Field(None, alias="expiryDate")
    background_color: Optional[str] = Field(None, alias="backgroundColor")
    strip_image: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("stripImage", "stripImageData", "strip_image"),
    )  # Base64 encoded image, optionally a data: URL

    @field_validator("discount", mode="before")
    @classmethod
    def discount_as_text(cls, v):
        """Numbers are accepted and kept as their text form."""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("service_type", "expiry_date", "background_color", "strip_image", mode="before")
    @classmethod
    def blank_as_missing(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class PassResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    pass_url: str = Field(..., alias="passUrl")
    pass_id: str = Field(..., alias="passId")


class PassErrorResponse(BaseModel):
    success: bool = False
    error: str
    details: Optional[str] = None
