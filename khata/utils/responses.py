from pydantic import BaseModel
from typing import TypeVar, Generic, Optional
from khata.errors import ErrorKind


T = TypeVar("T")


class Result(BaseModel, Generic[T]):
    """The one response shape used by every endpoint.

    `error` is only set when `success` is False.
    """
    success: bool
    message: str
    data: Optional[T] = None
    error: Optional[ErrorKind] = None


def ok(data, message: str) -> dict:
    return {
        "success": True,
        "message": message,
        "data": data,
    }
