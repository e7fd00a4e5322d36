"""Pydantic schemas for authentication."""

from pydantic import BaseModel, ConfigDict


class UserInfo(BaseModel):
    """Schema for the authenticated user."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
