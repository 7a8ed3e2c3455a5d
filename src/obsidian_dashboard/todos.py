"""To-do list backed solely by the local store.

Same lifecycle as the event core: subscribe on mount, refresh on change,
dispose on unmount.  There is a single source of truth, so no merging.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from pydantic import ValidationError

from obsidian_dashboard.core.debounce import Debouncer
from obsidian_dashboard.errors import StoreError
from obsidian_dashboard.models import Todo
from obsidian_dashboard.store import ChangeSubscription, LocalStore

logger = logging.getLogger(__name__)

TodosObserver = Callable[[tuple[Todo, ...]], None]


class TodoList:
    def __init__(self, store: LocalStore, *, debounce_seconds: float = 0.25) -> None:
        self._store = store
        self._todos: tuple[Todo, ...] = ()
        self._observers: list[TodosObserver] = []
        self._subscription: ChangeSubscription | None = None
        self._debouncer = Debouncer(self.refresh, debounce_seconds)

    @property
    def todos(self) -> tuple[Todo, ...]:
        return self._todos

    @property
    def remaining(self) -> int:
        return sum(1 for todo in self._todos if not todo.completed)

    @property
    def mounted(self) -> bool:
        return self._subscription is not None

    def add_observer(self, observer: TodosObserver) -> None:
        self._observers.append(observer)

    def remove_observer(self, observer: TodosObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def find(self, todo_id: str) -> Todo | None:
        return next((todo for todo in self._todos if todo.id == todo_id), None)

    async def refresh(self) -> tuple[Todo, ...]:
        """Reload every todo, oldest first.  A failed read yields an empty list."""
        try:
            rows = await self._store.list_todos()
        except StoreError as exc:
            logger.warning("Todo fetch failed: %s", exc)
            rows = []

        todos: list[Todo] = []
        for row in rows:
            try:
                todos.append(Todo.model_validate(row))
            except ValidationError as exc:
                logger.warning("Skipping malformed todo row %r: %s", row.get("id"), exc)

        self._todos = tuple(todos)
        for observer in list(self._observers):
            try:
                observer(self._todos)
            except Exception:
                logger.warning("Todos observer failed", exc_info=True)
        return self._todos

    async def add(self, text: str) -> Todo:
        """Insert a new, uncompleted todo.  Blank text is rejected."""
        text = (text or "").strip()
        if not text:
            raise ValueError("Todo text must not be blank")
        row = await self._store.insert_todo(text)
        await self.refresh()
        return Todo.model_validate(row)

    async def toggle(self, todo_id: str) -> Todo:
        todo = self.find(todo_id)
        if todo is None:
            raise KeyError(todo_id)
        row = await self._store.update_todo(todo_id, completed=not todo.completed)
        if row is None:
            await self.refresh()
            raise KeyError(todo_id)
        await self.refresh()
        return Todo.model_validate(row)

    async def remove(self, todo_id: str) -> None:
        deleted = await self._store.delete_todo(todo_id)
        await self.refresh()
        if not deleted:
            raise KeyError(todo_id)

    async def mount(self) -> tuple[Todo, ...]:
        if self._subscription is None:
            self._subscription = await self._store.subscribe_to_changes(
                "todos", self._debouncer.trigger
            )
        else:
            logger.warning("Todo list already mounted; keeping existing subscription")
        return await self.refresh()

    async def unmount(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await subscription.dispose()
        await self._debouncer.aclose()
