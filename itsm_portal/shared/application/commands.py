"""
Optimistic Commands
===================

Apply a local state change immediately, confirm it with the server, and
undo that change if the server write fails.

The undo runs against the state as it is when the failure arrives, so
changes made by others while the server call was pending survive.
"""

from typing import Any, Awaitable, Callable, Generic, TypeVar

from itsm_portal.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

S = TypeVar("S")


class OptimisticCommand(Generic[S]):
    """
    Apply / confirm / revert.

    Args:
        get_state: returns the current local state
        set_state: replaces the local state
        apply: produces the optimistic state from the current one
        revert: puts back what ``apply`` removed, given the current state
        confirm: server call; raising or returning False means failure
        name: label for logs
    """

    def __init__(
        self,
        get_state: Callable[[], S],
        set_state: Callable[[S], None],
        apply: Callable[[S], S],
        revert: Callable[[S], S],
        confirm: Callable[[], Awaitable[Any]],
        name: str = "command"
    ):
        self._get_state = get_state
        self._set_state = set_state
        self._apply = apply
        self._revert = revert
        self._confirm = confirm
        self.name = name
        self.rolled_back = False

    async def execute(self) -> bool:
        """
        Run the command.

        Returns:
            True when the server confirmed, False after a rollback
        """
        self._set_state(self._apply(self._get_state()))

        try:
            result = await self._confirm()
        except Exception as e:
            logger.error(
                "Optimistic update failed, reverting",
                extra={"command": self.name, "error": str(e)}
            )
            result = False

        if result is False:
            self._set_state(self._revert(self._get_state()))
            self.rolled_back = True
            return False

        return True
