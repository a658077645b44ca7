"""The {Code, Message, Response} envelope.

Used for authenticate, deletes, consumption and every error response.
List and entity reads return bare JSON.
"""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    Code: int
    Message: str
    Response: Optional[T] = None


class ErrorDetail(BaseModel):
    kind: str
    retryable: bool = False
