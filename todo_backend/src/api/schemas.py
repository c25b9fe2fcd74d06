from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


# PUBLIC_INTERFACE
class TodoCreate(BaseModel):
    """
    Schema for creating a new Todo item.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy groceries",
                "content": "Milk, eggs, bread",
                "category": "errands",
            }
        }
    )

    title: str = Field(..., description="Title of the todo item; must be unique")
    content: str = Field(..., description="Body of the todo item")
    category: str = Field(default="", description="Optional category; stored as '' when omitted")

    @field_validator("category", mode="before")
    @classmethod
    def default_category(cls, v: Optional[str]) -> str:
        """
        An explicit null is stored the same way as an omitted category.
        """
        return "" if v is None else v


# PUBLIC_INTERFACE
class TodoUpdate(BaseModel):
    """
    Schema for updating an existing Todo item.
    All fields are optional; only provided fields will be updated.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy groceries and supplies",
                "completed": True,
            }
        }
    )

    title: Optional[str] = Field(default=None, description="New title; must stay unique")
    content: Optional[str] = Field(default=None, description="New body")
    category: Optional[str] = Field(default=None, description="New category")
    completed: Optional[bool] = Field(default=None, description="Completion status flag")


# PUBLIC_INTERFACE
class TodoOut(BaseModel):
    """
    Schema returned by the API for a Todo item.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "6f1c1b0e-8a8c-4b8e-9a51-3f0f3f8a2b1d",
                "title": "Buy groceries",
                "content": "Milk, eggs, bread",
                "category": "errands",
                "completed": False,
                "created_at": "2025-01-25T10:15:30.123456+00:00",
                "updated_at": "2025-01-25T10:15:30.123456+00:00",
            }
        }
    )

    id: UUID = Field(..., description="Unique identifier of the todo item")
    title: str
    content: str
    category: Optional[str] = None
    completed: bool = False
    created_at: Optional[datetime] = Field(default=None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(default=None, description="Last update timestamp")


class TodoData(BaseModel):
    todo: TodoOut


# PUBLIC_INTERFACE
class TodoResponse(BaseModel):
    """Success envelope wrapping a single todo."""

    status: str = "success"
    data: TodoData


# PUBLIC_INTERFACE
class TodoListResponse(BaseModel):
    """Success envelope for the list endpoint."""

    status: str = "success"
    results: int = Field(..., description="Number of todos in this page")
    todos: List[TodoOut]


class MessageResponse(BaseModel):
    """Envelope carrying a status discriminator and a human-readable message."""

    model_config = ConfigDict(
        json_schema_extra={"example": {"status": "fail", "message": "Todo with that title already exists"}}
    )

    status: str
    message: str


class ValidationErrorResponse(MessageResponse):
    detail: List[Any]


class HealthResponse(BaseModel):
    status: str = "success"
    message: str
    backend: str
