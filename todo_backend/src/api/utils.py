from __future__ import annotations

from typing import Any, Dict, Iterable, List, Sequence, Union


# PUBLIC_INTERFACE
def list_envelope(todos: Union[Sequence[Any], Iterable[Any]]) -> Dict[str, Any]:
    """
    Build the success envelope for the list endpoint.

    Args:
        todos: The todos of the current page.

    Returns:
        Dict with keys: status, results, todos.
    """
    materialized: List[Any] = list(todos) if not isinstance(todos, list) else todos
    return {
        "status": "success",
        "results": len(materialized),
        "todos": materialized,
    }


# PUBLIC_INTERFACE
def todo_envelope(todo: Any) -> Dict[str, Any]:
    """Wrap a single todo as ``{"status": "success", "data": {"todo": ...}}``."""
    return {"status": "success", "data": {"todo": todo}}


def fail_envelope(message: str) -> Dict[str, str]:
    return {"status": "fail", "message": message}


def error_envelope(message: str) -> Dict[str, str]:
    return {"status": "error", "message": message}
