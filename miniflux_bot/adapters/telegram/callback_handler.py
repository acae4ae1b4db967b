"""Callback handler for the inline buttons attached to forwarded entries."""

from __future__ import annotations

import hmac
import logging
from typing import TYPE_CHECKING, Any

from miniflux_bot.adapters.telegram.keyboard import (
    DELETE_AND_MARK_READ,
    DELETE_MESSAGE,
    ENTRY_ACTIONS,
    MARK_READ,
    MARK_UNREAD,
    TOGGLE_STAR,
    CallbackPayload,
    build_keyboard,
    parse_callback_data,
)
from miniflux_bot.core.logging_utils import generate_correlation_id
from miniflux_bot.core.time_utils import utc_now
from miniflux_bot.domain.exceptions import (
    DomainException,
    InvalidCallbackError,
    NotFoundError,
    UnauthorizedError,
)
from miniflux_bot.domain.models import STATUS_READ, STATUS_UNREAD

if TYPE_CHECKING:
    from miniflux_bot.adapters.miniflux.client import MinifluxClient
    from miniflux_bot.adapters.telegram.access_controller import AccessController
    from miniflux_bot.adapters.telegram.protocol import ChatClientProtocol
    from miniflux_bot.adapters.telegram.task_manager import BackgroundTaskSet
    from miniflux_bot.infrastructure.persistence.sqlite.repositories import (
        SqliteEntryRepository,
    )

logger = logging.getLogger(__name__)


# Callback data format: "secret:action:entry_id"
# Examples:
#   "abc123:markRead:42"            - Mark entry 42 as read
#   "abc123:markUnread:42"          - Mark entry 42 as unread
#   "abc123:toggleStar:42"          - Star or unstar entry 42
#   "abc123:deleteAndMarkRead:42"   - Mark entry 42 read and delete its message
#   "abc123:deleteMessage"          - Delete the message the button sits on

_STATUS_ACTIONS = {
    MARK_READ: (STATUS_READ, "Marked entry as read", "Error marking entry as read"),
    MARK_UNREAD: (STATUS_UNREAD, "Marked entry as unread", "Error marking entry as unread"),
}


class CallbackHandler:
    """Apply inline button presses to Miniflux and keep the chat in step."""

    def __init__(
        self,
        *,
        access: AccessController,
        secret: str,
        feed: MinifluxClient,
        chat: ChatClientProtocol,
        store: SqliteEntryRepository,
        tasks: BackgroundTaskSet,
    ) -> None:
        self.access = access
        self.secret = secret
        self.feed = feed
        self.chat = chat
        self.store = store
        self.tasks = tasks

    async def on_callback_query(self, callback_query: Any) -> None:
        """Entry point for Pyrogram: handle the press in its own tracked task."""
        self.tasks.spawn(
            self.handle_callback(callback_query),
            name=f"callback:{getattr(callback_query, 'id', '?')}",
        )

    async def handle_callback(self, callback_query: Any) -> bool:
        """Route one callback query.

        Returns:
            True if an action was applied, False if the query was dropped.
        """
        cid = generate_correlation_id()
        if not self.access.is_authorized_callback(callback_query, cid=cid):
            return False

        try:
            payload = self._authenticate(getattr(callback_query, "data", None))
        except (InvalidCallbackError, UnauthorizedError) as exc:
            logger.warning(
                "callback_rejected", extra={"reason": exc.message, "cid": cid, **exc.details}
            )
            return False

        message = getattr(callback_query, "message", None)
        message_id = getattr(message, "id", None)
        if message_id is None:
            logger.warning("callback_without_message", extra={"cid": cid})
            return False

        logger.info(
            "callback_action_received",
            extra={"action": payload.action, "entry_id": payload.entry_id, "cid": cid},
        )

        query_id = str(callback_query.id)
        if payload.action in _STATUS_ACTIONS:
            return await self._handle_status(query_id, message_id, payload, cid)
        if payload.action == TOGGLE_STAR:
            return await self._handle_toggle_star(query_id, message_id, payload, cid)
        if payload.action == DELETE_AND_MARK_READ:
            return await self._handle_delete_and_mark_read(query_id, message_id, payload, cid)
        if payload.action == DELETE_MESSAGE:
            return await self._handle_delete_message(query_id, message_id, cid)

        logger.warning("unknown_callback_action", extra={"action": payload.action, "cid": cid})
        return False

    def _authenticate(self, data: Any) -> CallbackPayload:
        payload = parse_callback_data(data)
        if not hmac.compare_digest(payload.secret.encode(), self.secret.encode()):
            msg = "Callback carried an invalid secret"
            raise UnauthorizedError(msg, details={"action": payload.action})
        if payload.action in ENTRY_ACTIONS and payload.entry_id is None:
            msg = "Callback action requires an entry ID"
            raise InvalidCallbackError(msg, details={"action": payload.action})
        return payload

    async def _handle_status(
        self, query_id: str, message_id: int, payload: CallbackPayload, cid: str
    ) -> bool:
        status, ok_text, error_text = _STATUS_ACTIONS[payload.action]
        entry_id = int(payload.entry_id or 0)
        try:
            await self.feed.update_entries([entry_id], status)
        except DomainException as exc:
            logger.error(
                "miniflux_update_failed",
                extra={"entry_id": entry_id, "status": status, "error": exc.message, "cid": cid},
            )
            await self._answer(query_id, error_text, show_alert=True, cid=cid)
            return False

        await self._answer(query_id, ok_text, cid=cid)
        await self._refresh_keyboard(message_id, entry_id, cid)
        await self._touch(entry_id, cid)
        return True

    async def _handle_toggle_star(
        self, query_id: str, message_id: int, payload: CallbackPayload, cid: str
    ) -> bool:
        entry_id = int(payload.entry_id or 0)
        try:
            await self.feed.toggle_bookmark(entry_id)
        except DomainException as exc:
            logger.error(
                "miniflux_bookmark_failed",
                extra={"entry_id": entry_id, "error": exc.message, "cid": cid},
            )
            await self._answer(query_id, "Error updating Miniflux entry", show_alert=True, cid=cid)
            return False

        await self._answer(query_id, "Updated entry", cid=cid)
        await self._refresh_keyboard(message_id, entry_id, cid)
        await self._touch(entry_id, cid)
        return True

    async def _handle_delete_and_mark_read(
        self, query_id: str, message_id: int, payload: CallbackPayload, cid: str
    ) -> bool:
        entry_id = int(payload.entry_id or 0)
        try:
            await self.feed.update_entries([entry_id], STATUS_READ)
        except DomainException as exc:
            logger.error(
                "miniflux_update_failed",
                extra={"entry_id": entry_id, "status": STATUS_READ, "error": exc.message, "cid": cid},
            )
            await self._answer(query_id, "Error marking entry as read", show_alert=True, cid=cid)
            return False

        await self._delete_message(message_id, cid)
        await self.store.async_delete_by_entry_id(entry_id)
        await self._answer(query_id, "Deleted message & marked as read", cid=cid)
        return True

    async def _handle_delete_message(self, query_id: str, message_id: int, cid: str) -> bool:
        await self._delete_message(message_id, cid)
        await self.store.async_delete_by_message_id(message_id)
        await self._answer(query_id, "Deleted message", cid=cid)
        return True

    async def _refresh_keyboard(self, message_id: int, entry_id: int, cid: str) -> None:
        """Fetch the entry again and redraw the buttons from its current state."""
        try:
            article = await self.feed.get_entry(entry_id)
            await self.chat.edit_reply_markup(message_id, build_keyboard(article, self.secret))
        except DomainException as exc:
            logger.warning(
                "keyboard_refresh_failed",
                extra={"entry_id": entry_id, "message_id": message_id, "error": exc.message, "cid": cid},
            )
            return
        logger.debug("keyboard_refreshed", extra={"entry_id": entry_id, "cid": cid})

    async def _touch(self, entry_id: int, cid: str) -> None:
        try:
            await self.store.async_update_timestamp(entry_id, utc_now())
        except NotFoundError:
            logger.info("callback_entry_not_stored", extra={"entry_id": entry_id, "cid": cid})

    async def _delete_message(self, message_id: int, cid: str) -> None:
        try:
            await self.chat.delete_message(message_id)
        except DomainException as exc:
            logger.warning(
                "message_delete_failed",
                extra={"message_id": message_id, "error": exc.message, "cid": cid},
            )

    async def _answer(
        self, query_id: str, text: str, *, show_alert: bool = False, cid: str | None = None
    ) -> None:
        try:
            await self.chat.answer_callback(query_id, text, show_alert=show_alert)
        except DomainException as exc:
            logger.warning("callback_answer_failed", extra={"error": exc.message, "cid": cid})
