# addresskit/schemas/misc.py
from typing import Any, List
from pydantic import BaseModel


class Message(BaseModel):
    """
    A simple schema for returning a message in an API response.
    """

    message: str


class DataResponse(BaseModel):
    success: bool = True
    data: Any = None


class ListResponse(BaseModel):
    success: bool = True
    count: int
    data: List[Any]
