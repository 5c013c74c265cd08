"""
Notification Inbox
==================

Client-side view of a user's unread notifications.

Mark-read prunes the list before the server answers; when the server
write fails the pruned rows are put back, next to anything pushed in the
meantime.
"""

from typing import Any, Callable, Dict, List

from itsm_portal.notifications.application.services import NotificationService
from itsm_portal.shared.application.commands import OptimisticCommand
from itsm_portal.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class NotificationInbox:
    """Unread list for one user, kept in step with the relay."""

    def __init__(self, service: NotificationService, user_id: str):
        self._service = service
        self.user_id = user_id
        self._items: List[Dict[str, Any]] = []

    @property
    def items(self) -> List[Dict[str, Any]]:
        return list(self._items)

    @property
    def unread_count(self) -> int:
        return len(self._items)

    def _get(self) -> List[Dict[str, Any]]:
        return self._items

    def _set(self, items: List[Dict[str, Any]]) -> None:
        self._items = items

    async def load(self) -> List[Dict[str, Any]]:
        notifications = await self._service.get_unread_notifications(self.user_id)
        self._items = [n.to_row() for n in notifications]
        return self.items

    def add(self, row: Dict[str, Any]) -> None:
        """Prepend a pushed notification (ignores duplicates)."""
        if any(item.get("id") == row.get("id") for item in self._items):
            return
        self._items = [row] + self._items

    def _prune(
        self,
        predicate: Callable[[Dict[str, Any]], bool],
        confirm: Callable[[], Any],
        name: str
    ) -> OptimisticCommand:
        removed: List[Dict[str, Any]] = []

        def apply(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
            kept = []
            for item in items:
                (removed if predicate(item) else kept).append(item)
            return kept

        def revert(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
            present = {item.get("id") for item in items}
            restored = items + [row for row in removed if row.get("id") not in present]
            # Newest first; rows without a timestamp keep their order
            return sorted(restored, key=lambda row: row.get("created_at") or "", reverse=True)

        return OptimisticCommand(
            get_state=self._get,
            set_state=self._set,
            apply=apply,
            revert=revert,
            confirm=confirm,
            name=name,
        )

    async def mark_as_read(self, notification_id: str) -> bool:
        """
        Optimistically drop one notification.

        Returns:
            False when the server rejected it and the row was put back
        """
        command = self._prune(
            lambda item: item.get("id") == notification_id,
            lambda: self._service.mark_as_read(notification_id, self.user_id),
            "mark_notification_read",
        )
        return await command.execute()

    async def mark_all_as_read(self) -> bool:
        command = self._prune(
            lambda item: True,
            lambda: self._service.mark_all_as_read(self.user_id),
            "mark_all_notifications_read",
        )
        return await command.execute()
