"""HookRegistry — per-model pre-operation hooks."""

from __future__ import annotations

import logging
from enum import Enum
from inspect import isawaitable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    Hook = Callable[[Any], Awaitable[None] | None]

logger = logging.getLogger(__name__)


class HookEvent(str, Enum):
    """Mapper operations that run pre-hooks."""

    COUNT = "count"
    FIND = "find"
    FIND_ONE = "find_one"
    SAVE = "save"
    REMOVE = "remove"


class HookRegistry:
    """Ordered pre-hooks keyed by operation.

    Query hooks receive the :class:`~mongo_controller.query.Query` about to run;
    ``save``/``remove`` hooks receive the document. A hook that raises aborts
    the operation and the error reaches the caller unchanged.
    """

    def __init__(self) -> None:
        self._hooks: dict[HookEvent, list[Hook]] = {}

    def register(self, event: HookEvent | str, hook: Hook) -> None:
        """Register ``hook`` to run before ``event``."""
        hooks = self._hooks.setdefault(HookEvent(event), [])
        if hook not in hooks:
            hooks.append(hook)

    async def run(self, event: HookEvent | str, target: Any) -> None:
        """Run every hook for ``event`` in registration order."""
        for hook in self._hooks.get(HookEvent(event), []):
            result = hook(target)
            if isawaitable(result):
                await result

    def get_registered_hooks(self) -> dict[HookEvent, list[Hook]]:
        """Return all registered hooks (debugging utility)."""
        return {k: list(v) for k, v in self._hooks.items()}

    def clear(self) -> None:
        """Remove all hook registrations (testing utility)."""
        self._hooks.clear()
        logger.debug("Cleared hook registrations")
