"""Schemas for API key endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field


class ApiKeyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    expires_at: datetime | None = None


class ApiKeyRead(BaseModel):
    """Key metadata. Never includes the secret or its hash."""

    id: str
    name: str
    description: str | None = None
    prefix: str
    is_active: bool
    expires_at: datetime | None = None
    last_used_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ApiKeyCreated(BaseModel):
    success: bool = True
    api_key: ApiKeyRead
    key: str = Field(description="Plaintext key. Store it now; it cannot be shown again.")


class ApiKeyList(BaseModel):
    success: bool = True
    api_keys: list[ApiKeyRead]
