"""Pydantic schemas for the admin identity."""

from pydantic import BaseModel, Field


class AdminCredentials(BaseModel):
    """Body for createadmin and authenticate."""
    username: str = Field(..., min_length=1, max_length=64, pattern=r"^[A-Za-z0-9._@-]+$")
    password: str = Field(..., min_length=1, max_length=256)


class AdminRead(BaseModel):
    username: str

    model_config = {"from_attributes": True}


class AuthResult(BaseModel):
    UserName: str
    AuthToken: str
