"""Pydantic schemas for networks and access keys.

Separate "Create" schemas (input) from "Read" schemas (output). Key
values are secrets but are returned on read: enrolling nodes need them,
and every read route is master-key only.
"""

from typing import Optional

from pydantic import BaseModel, Field

NAME_PATTERN = r"^[A-Za-z0-9_-]+$"


# ─── Networks ───────────────────────────────────────────

class NetworkCreate(BaseModel):
    netid: str = Field(..., min_length=1, max_length=32, pattern=NAME_PATTERN)
    addressrange: str = Field(..., min_length=1, max_length=64)


class NetworkRead(BaseModel):
    netid: str
    addressrange: str

    model_config = {"from_attributes": True}


# ─── Access keys ────────────────────────────────────────

class AccessKeyCreate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=64, pattern=NAME_PATTERN)
    uses: int


class AccessKeyRead(BaseModel):
    """uses is the number of enrollments left, not the initial count."""
    name: str
    network: str = Field(validation_alias="network_id")
    uses: int = Field(validation_alias="uses_remaining")
    value: str

    model_config = {"from_attributes": True}


class ConsumeRequest(BaseModel):
    attempt_id: Optional[str] = Field(None, min_length=1, max_length=128)


class ConsumeResult(BaseModel):
    name: str
    network: str
    value: str
    uses: int
    replayed: bool = False
