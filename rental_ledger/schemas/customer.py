from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class CustomerCreate(BaseModel):
    name: str
    phone: Optional[str] = None

    @field_validator("name")
    @classmethod
    def require_name(cls, value: str) -> str:
        cleaned = (value or "").strip()
        if not cleaned:
            raise ValueError("name is required")
        return cleaned


class Customer(CustomerCreate):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
