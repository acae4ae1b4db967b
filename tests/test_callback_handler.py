"""Inline button presses end to end: access, secret, Miniflux, chat and store."""

from __future__ import annotations

import unittest
from datetime import timedelta
from pathlib import Path
from tempfile import TemporaryDirectory

from miniflux_bot.adapters.telegram.access_controller import AccessController
from miniflux_bot.adapters.telegram.callback_handler import CallbackHandler
from miniflux_bot.adapters.telegram.task_manager import BackgroundTaskSet
from miniflux_bot.core.time_utils import utc_now
from miniflux_bot.db.session import DatabaseSessionManager
from miniflux_bot.domain.models import STATUS_READ, STATUS_UNREAD, EntryMapping
from miniflux_bot.infrastructure.persistence.sqlite.repositories import SqliteEntryRepository
from tests.conftest import (
    CHAT_ID,
    SECRET,
    FakeChatClient,
    FakeMinifluxClient,
    make_article,
    make_config,
)


class FakeCallbackQuery:
    def __init__(self, data: str, *, uid: int = CHAT_ID, message_id: int = 500) -> None:
        class _User:
            def __init__(self, id):
                self.id = id

        class _Message:
            def __init__(self, id):
                self.id = id

        self.id = "cbq-1"
        self.data = data
        self.from_user = _User(uid)
        self.message = _Message(message_id)


class TestCallbackHandler(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self._tmp = TemporaryDirectory()
        self.db = DatabaseSessionManager(path=str(Path(self._tmp.name) / "store.db"))
        self.db.migrate()
        self.store = SqliteEntryRepository(self.db)
        self.chat = FakeChatClient()
        self.feed = FakeMinifluxClient([make_article(42)])
        self.tasks = BackgroundTaskSet()
        self.sent_time = utc_now() - timedelta(hours=1)
        await self.store.async_insert(
            EntryMapping(
                entry_id=42,
                message_id=500,
                sent_time=self.sent_time,
                updated_time=self.sent_time,
            )
        )
        self.handler = CallbackHandler(
            access=AccessController(make_config()),
            secret=SECRET,
            feed=self.feed,
            chat=self.chat,
            store=self.store,
            tasks=self.tasks,
        )

    async def asyncTearDown(self) -> None:
        self.db.close()
        self._tmp.cleanup()

    async def test_mark_read_updates_miniflux_keyboard_and_timestamp(self) -> None:
        handled = await self.handler.handle_callback(FakeCallbackQuery(f"{SECRET}:markRead:42"))

        self.assertTrue(handled)
        self.assertEqual(self.feed.updates, [([42], STATUS_READ)])
        self.assertEqual(self.chat.answers[0]["text"], "Marked entry as read")
        self.assertFalse(self.chat.answers[0]["show_alert"])
        message_id, keyboard = self.chat.edits[0]
        self.assertEqual(message_id, 500)
        self.assertEqual(keyboard[0][0].label, "Mark as unread")
        mapping = await self.store.async_get_by_entry_id(42)
        self.assertGreater(mapping.updated_time, self.sent_time)

    async def test_mark_unread(self) -> None:
        await self.handler.handle_callback(FakeCallbackQuery(f"{SECRET}:markUnread:42"))

        self.assertEqual(self.feed.updates, [([42], STATUS_UNREAD)])
        self.assertEqual(self.chat.answers[0]["text"], "Marked entry as unread")

    async def test_toggle_star(self) -> None:
        await self.handler.handle_callback(FakeCallbackQuery(f"{SECRET}:toggleStar:42"))

        self.assertEqual(self.feed.toggled, [42])
        self.assertEqual(self.chat.answers[0]["text"], "Updated entry")
        self.assertEqual(self.chat.edits[0][1][0][1].label, "Unstar")

    async def test_delete_and_mark_read(self) -> None:
        await self.handler.handle_callback(FakeCallbackQuery(f"{SECRET}:deleteAndMarkRead:42"))

        self.assertEqual(self.feed.updates, [([42], STATUS_READ)])
        self.assertEqual(self.chat.deleted, [500])
        self.assertEqual(self.chat.answers[0]["text"], "Deleted message & marked as read")
        self.assertEqual(await self.store.async_get_all(), [])

    async def test_delete_message_removes_row_by_message_id(self) -> None:
        await self.handler.handle_callback(FakeCallbackQuery(f"{SECRET}:deleteMessage"))

        self.assertEqual(self.feed.updates, [])
        self.assertEqual(self.chat.deleted, [500])
        self.assertEqual(self.chat.answers[0]["text"], "Deleted message")
        self.assertEqual(await self.store.async_count(), 0)

    async def test_upstream_failure_answers_with_alert_and_changes_nothing(self) -> None:
        self.feed.fail_updates = True

        handled = await self.handler.handle_callback(
            FakeCallbackQuery(f"{SECRET}:deleteAndMarkRead:42")
        )

        self.assertFalse(handled)
        self.assertEqual(
            self.chat.answers, [{"id": "cbq-1", "text": "Error marking entry as read", "show_alert": True}]
        )
        self.assertEqual(self.chat.deleted, [])
        self.assertEqual(await self.store.async_count(), 1)

    async def test_star_failure_text(self) -> None:
        self.feed.fail_updates = True

        await self.handler.handle_callback(FakeCallbackQuery(f"{SECRET}:toggleStar:42"))

        self.assertEqual(self.chat.answers[0]["text"], "Error updating Miniflux entry")

    async def test_wrong_sender_is_dropped_silently(self) -> None:
        handled = await self.handler.handle_callback(
            FakeCallbackQuery(f"{SECRET}:markRead:42", uid=CHAT_ID + 1)
        )

        self.assertFalse(handled)
        self.assertEqual(self.feed.updates, [])
        self.assertEqual(self.chat.answers, [])

    async def test_wrong_secret_is_dropped_silently(self) -> None:
        handled = await self.handler.handle_callback(FakeCallbackQuery("nope:markRead:42"))

        self.assertFalse(handled)
        self.assertEqual(self.feed.updates, [])
        self.assertEqual(self.chat.answers, [])

    async def test_malformed_and_unknown_payloads_are_dropped(self) -> None:
        for data in (f"{SECRET}:markRead:abc", f"{SECRET}:markRead", f"{SECRET}:explode:42", "x"):
            self.assertFalse(await self.handler.handle_callback(FakeCallbackQuery(data)))

        self.assertEqual(self.feed.updates, [])
        self.assertEqual(self.chat.answers, [])

    async def test_stale_callback_for_unstored_entry_still_succeeds(self) -> None:
        await self.store.async_delete_by_entry_id(42)

        handled = await self.handler.handle_callback(FakeCallbackQuery(f"{SECRET}:markRead:42"))

        self.assertTrue(handled)
        self.assertEqual(self.chat.answers[0]["text"], "Marked entry as read")

    async def test_on_callback_query_runs_in_tracked_task(self) -> None:
        await self.handler.on_callback_query(FakeCallbackQuery(f"{SECRET}:toggleStar:42"))
        await self.tasks.drain()

        self.assertEqual(self.feed.toggled, [42])
        self.assertEqual(self.tasks.active, 0)


if __name__ == "__main__":
    unittest.main()
