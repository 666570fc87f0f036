"""Pydantic schemas for promotional code administration."""

import re
from datetime import date

from pydantic import BaseModel, Field, field_validator, model_validator

from agrifaas.billing.types import DiscountType

CODE_PATTERN = re.compile(r"^[A-Z0-9_-]{3,64}$")


def _normalize_code(v: str) -> str:
    v = v.strip().upper()
    if not CODE_PATTERN.match(v):
        raise ValueError("Code must be 3-64 letters, digits, hyphens or underscores")
    return v


class PromoCodeCreate(BaseModel):
    """Schema for creating a promotional code."""

    code: str = Field(..., description="Code as typed by customers (stored upper-case)")
    discount_type: DiscountType
    discount_amount: float = Field(..., gt=0)
    usage_limit: int = Field(..., ge=1)
    expiry_date: date = Field(..., description="Last day on which the code is valid")
    is_active: bool = True
    description: str | None = Field(None, max_length=500)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return _normalize_code(v)

    @model_validator(mode="after")
    def percentage_at_most_100(self) -> "PromoCodeCreate":
        if self.discount_type == DiscountType.PERCENTAGE and self.discount_amount > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        return self


class PromoCodeUpdate(BaseModel):
    """Schema for editing a promotional code. Only provided fields change."""

    discount_type: DiscountType | None = None
    discount_amount: float | None = Field(None, gt=0)
    usage_limit: int | None = Field(None, ge=1)
    expiry_date: date | None = None
    is_active: bool | None = None
    description: str | None = Field(None, max_length=500)
