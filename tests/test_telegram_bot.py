"""Bot wiring: startup order, first poll and shutdown."""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import pytest

from miniflux_bot.adapters.telegram.telegram_bot import TelegramBot
from miniflux_bot.domain.exceptions import UpstreamUnavailableError
from tests.conftest import make_article, make_config


def _make_bot(db, chat, feed, **telegram) -> TelegramBot:
    with patch("miniflux_bot.adapters.telegram.telegram_bot.setup_json_logging"):
        return TelegramBot(
            cfg=make_config(db.path, **telegram), db=db, telegram_client=chat, feed=feed
        )


@pytest.mark.asyncio
async def test_start_seeds_watermark_polls_and_shuts_down(db, chat, feed):
    feed.add(make_article(5))
    bot = _make_bot(db, chat, feed)

    runner = asyncio.create_task(bot.start())
    for _ in range(100):
        if chat.started and len(feed.entries_calls) >= 2:
            break
        await asyncio.sleep(0.01)

    assert bot.poller.watermark == 5
    # Entries that arrive after startup are forwarded on the next poll.
    feed.add(make_article(6))
    report = await bot.poller.poll_once()
    assert report.forwarded_ids == [6]

    bot.request_stop()
    await asyncio.wait_for(runner, timeout=5)

    assert not chat.started
    assert feed.closed
    assert not bot.scheduler.is_running


@pytest.mark.asyncio
async def test_startup_fails_when_miniflux_is_unreachable(db, chat, feed):
    feed.fail_entries = True
    bot = _make_bot(db, chat, feed)

    with pytest.raises(UpstreamUnavailableError):
        await bot.start()

    assert chat.started is False
    assert feed.closed


@pytest.mark.asyncio
async def test_callbacks_are_routed_through_the_chat_client(db, chat, feed):
    bot = _make_bot(db, chat, feed)

    runner = asyncio.create_task(bot.start())
    for _ in range(100):
        if chat.started:
            break
        await asyncio.sleep(0.01)

    assert chat.message_handler == bot.command_handler.handle_message
    assert chat.callback_query_handler == bot.callback_handler.on_callback_query

    bot.request_stop()
    await asyncio.wait_for(runner, timeout=5)
