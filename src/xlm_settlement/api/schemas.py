"""Pydantic schemas for API request/response models."""

from pydantic import BaseModel, ConfigDict, Field


class AccountCreate(BaseModel):
    """Schema for registering a peer account."""

    id: str = Field(min_length=1)


class AccountResponse(BaseModel):
    """Schema for a peer account."""

    id: str


class Quantity(BaseModel):
    """An integer amount at a given scale, as exchanged with the connector."""

    model_config = ConfigDict(frozen=True)

    amount: str = Field(pattern=r"^[0-9]+$")
    scale: int = Field(ge=0, le=255)


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    code: str | None = None
