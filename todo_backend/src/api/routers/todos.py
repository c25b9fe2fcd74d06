from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, Request, Response, status
from fastapi.responses import JSONResponse

from ..errors import DUPLICATE_TITLE_MESSAGE
from ..models import Deleted, Duplicate, Failed, Found, Listed, NotFound
from ..repositories import ListQuery, Repository
from ..schemas import (
    HealthResponse,
    MessageResponse,
    TodoCreate,
    TodoListResponse,
    TodoResponse,
    TodoUpdate,
    ValidationErrorResponse,
)
from ..settings import Settings
from ..utils import error_envelope, fail_envelope, list_envelope, todo_envelope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

LIST_FAILURE_MESSAGE = "Something bad happened fetching"
DELETE_FAILURE_MESSAGE = "Something bad happened deleting"

_VALIDATION_RESPONSE = {422: {"model": ValidationErrorResponse, "description": "Request validation failed"}}


def get_repository(request: Request) -> Repository:
    """
    Repository built once at startup and shared by every request.
    """
    return request.app.state.repository


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def _parse_id(raw: str) -> Optional[UUID]:
    try:
        return UUID(raw)
    except ValueError:
        return None


def _not_found(raw_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content=fail_envelope(f"Todo with ID: {raw_id} not found"),
    )


# PUBLIC_INTERFACE
@router.get(
    "/healthchecker",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health Check",
)
async def health_check(repo: Repository = Depends(get_repository)) -> dict:
    """
    Liveness probe. Does not touch storage.
    """
    return {"status": "success", "message": "Healthy", "backend": repo.name}


# PUBLIC_INTERFACE
@router.get(
    "/todos",
    response_model=TodoListResponse,
    tags=["todos"],
    summary="List Todos",
    description=(
        "List todos ordered by id.\n\n"
        "Query parameters:\n"
        "- page: 1-based page number (values below 1 are treated as 1)\n"
        "- limit: page size (clamped to 1..LIST_MAX_LIMIT)\n\n"
        "The offset is (page - 1) * the effective limit, i.e. after clamping: "
        "page=2&limit=150 with LIST_MAX_LIMIT=100 starts at row 100."
    ),
    responses={500: {"model": MessageResponse, "description": "Storage failure"}, **_VALIDATION_RESPONSE},
)
async def list_todos(
    page: Optional[int] = Query(None, description="1-based page number"),
    limit: Optional[int] = Query(None, description="Maximum number of todos to return"),
    repo: Repository = Depends(get_repository),
    settings: Settings = Depends(get_app_settings),
):
    """
    List a page of todos.
    """
    query = ListQuery.from_page(
        page,
        limit,
        default_limit=settings.list_default_limit,
        max_limit=settings.list_max_limit,
    )
    outcome = await repo.list(query)
    if isinstance(outcome, Listed):
        return list_envelope(outcome.todos)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_envelope(LIST_FAILURE_MESSAGE),
    )


# PUBLIC_INTERFACE
@router.post(
    "/todos/",
    response_model=TodoResponse,
    tags=["todos"],
    summary="Create Todo",
    responses={
        400: {"model": MessageResponse, "description": "A todo with that title already exists"},
        500: {"model": MessageResponse, "description": "Storage failure"},
        **_VALIDATION_RESPONSE,
    },
)
async def create_todo(payload: TodoCreate, repo: Repository = Depends(get_repository)):
    """
    Create a todo. Titles are unique; a duplicate answers 400 and stores nothing.
    """
    outcome = await repo.create(payload)
    if isinstance(outcome, Found):
        return todo_envelope(outcome.todo)
    if isinstance(outcome, Duplicate):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=fail_envelope(DUPLICATE_TITLE_MESSAGE),
        )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_envelope(outcome.detail),
    )


# PUBLIC_INTERFACE
@router.get(
    "/todos/{todo_id}",
    response_model=TodoResponse,
    tags=["todos"],
    summary="Get Todo",
    responses={404: {"model": MessageResponse, "description": "Todo not found"}},
)
async def get_todo(
    todo_id: str = Path(..., description="UUID of the todo"),
    repo: Repository = Depends(get_repository),
):
    """
    Retrieve a single todo.

    Storage failures are reported as 404 like a missing row; they are logged.
    """
    parsed = _parse_id(todo_id)
    if parsed is None:
        return _not_found(todo_id)
    outcome = await repo.get(parsed)
    if isinstance(outcome, Found):
        return todo_envelope(outcome.todo)
    if isinstance(outcome, Failed):
        logger.info("Lookup of todo %s failed, answering 404", parsed)
    return _not_found(str(parsed))


# PUBLIC_INTERFACE
@router.patch(
    "/todos/{todo_id}",
    response_model=TodoResponse,
    tags=["todos"],
    summary="Update Todo",
    description="Partially update a todo; omitted fields are left unchanged.",
    responses={
        400: {"model": MessageResponse, "description": "A todo with that title already exists"},
        404: {"model": MessageResponse, "description": "Todo not found"},
        500: {"model": MessageResponse, "description": "Storage failure"},
        **_VALIDATION_RESPONSE,
    },
)
async def update_todo(
    payload: TodoUpdate,
    todo_id: str = Path(..., description="UUID of the todo"),
    repo: Repository = Depends(get_repository),
):
    parsed = _parse_id(todo_id)
    if parsed is None:
        return _not_found(todo_id)
    outcome = await repo.update(parsed, payload)
    if isinstance(outcome, Found):
        return todo_envelope(outcome.todo)
    if isinstance(outcome, NotFound):
        return _not_found(str(parsed))
    if isinstance(outcome, Duplicate):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=fail_envelope(DUPLICATE_TITLE_MESSAGE),
        )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_envelope(outcome.detail),
    )


# PUBLIC_INTERFACE
@router.delete(
    "/todos/{todo_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    tags=["todos"],
    summary="Delete Todo",
    responses={
        204: {"description": "Todo deleted"},
        404: {"description": "Todo not found"},
        500: {"model": MessageResponse, "description": "Storage failure"},
    },
)
async def delete_todo(
    todo_id: str = Path(..., description="UUID of the todo"),
    repo: Repository = Depends(get_repository),
):
    """
    Delete a todo. Returns 204 on success, 404 with an empty body if no row matched.
    """
    parsed = _parse_id(todo_id)
    if parsed is None:
        return Response(status_code=status.HTTP_404_NOT_FOUND)
    outcome = await repo.delete(parsed)
    if isinstance(outcome, Deleted):
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    if isinstance(outcome, NotFound):
        return Response(status_code=status.HTTP_404_NOT_FOUND)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_envelope(DELETE_FAILURE_MESSAGE),
    )
