"""To-do list endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from obsidian_dashboard.api.deps import get_dashboard
from obsidian_dashboard.api.models import (
    ApiResponse,
    TodoCreateRequest,
    TodoListResponse,
    TodoResponse,
)
from obsidian_dashboard.dashboard import Dashboard

router = APIRouter(prefix="/api/todos", tags=["todos"])


def _list_response(dashboard: Dashboard) -> ApiResponse[TodoListResponse]:
    return ApiResponse[TodoListResponse](
        data=TodoListResponse(
            todos=[TodoResponse.from_todo(todo) for todo in dashboard.todos.todos],
            remaining=dashboard.todos.remaining,
        )
    )


@router.get("", response_model=ApiResponse[TodoListResponse])
async def list_todos(dashboard: Dashboard = Depends(get_dashboard)) -> ApiResponse[TodoListResponse]:
    return _list_response(dashboard)


@router.post("", response_model=ApiResponse[TodoResponse], status_code=201)
async def add_todo(
    body: TodoCreateRequest,
    dashboard: Dashboard = Depends(get_dashboard),
) -> ApiResponse[TodoResponse]:
    todo = await dashboard.todos.add(body.text)
    return ApiResponse[TodoResponse](data=TodoResponse.from_todo(todo))


@router.post("/{todo_id}/toggle", response_model=ApiResponse[TodoResponse])
async def toggle_todo(
    todo_id: str,
    dashboard: Dashboard = Depends(get_dashboard),
) -> ApiResponse[TodoResponse]:
    todo = await dashboard.todos.toggle(todo_id)
    return ApiResponse[TodoResponse](data=TodoResponse.from_todo(todo))


@router.delete("/{todo_id}", response_model=ApiResponse[TodoListResponse])
async def delete_todo(
    todo_id: str,
    dashboard: Dashboard = Depends(get_dashboard),
) -> ApiResponse[TodoListResponse]:
    await dashboard.todos.remove(todo_id)
    return _list_response(dashboard)
