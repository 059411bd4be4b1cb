"""Pydantic schemas for products: the ledger's record type plus API payloads."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _clean_code(value: str) -> str:
    cleaned = (value or "").strip().upper()
    if not cleaned:
        raise ValueError("code is required")
    return cleaned


class ProductBase(BaseModel):
    code: str
    name: str
    category: Optional[str] = None
    price_per_day: float = Field(default=0.0, ge=0)
    total_owned: int = Field(default=0, ge=0)
    location: Optional[str] = None
    specs: Optional[str] = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, value: str) -> str:
        return _clean_code(value)

    @field_validator("name")
    @classmethod
    def require_name(cls, value: str) -> str:
        cleaned = (value or "").strip()
        if not cleaned:
            raise ValueError("name is required")
        return cleaned


class ProductCreate(ProductBase):
    pass


class ProductUpdate(BaseModel):
    code: Optional[str] = None
    name: Optional[str] = None
    category: Optional[str] = None
    price_per_day: Optional[float] = Field(default=None, ge=0)
    total_owned: Optional[int] = Field(default=None, ge=0)
    location: Optional[str] = None
    specs: Optional[str] = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return _clean_code(value)

    @field_validator("name")
    @classmethod
    def require_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("name is required")
        return cleaned


class Product(ProductBase):
    """A product as the ledger sees it.

    ``current_physical_stock`` is deliberately unconstrained: a phantom-export
    reconciliation may briefly push it around before the return lands.
    """

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    current_physical_stock: int = 0
    version: int = 1
