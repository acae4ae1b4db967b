import json
import logging
from datetime import datetime

import pytest
from loguru import logger as loguru_logger

from miniflux_bot.core.logging_utils import (
    InterceptHandler,
    generate_correlation_id,
    setup_json_logging,
)
from miniflux_bot.core.time_utils import UTC
from miniflux_bot.domain.models import Article, parse_timestamp


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    loguru_logger.remove()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_setup_routes_stdlib_records_into_loguru_as_json(restore_root_logger, tmp_path):
    log_file = tmp_path / "bot.log"
    setup_json_logging("DEBUG", log_file=str(log_file))
    captured: list[str] = []
    loguru_logger.add(captured.append, serialize=True)

    logging.getLogger("miniflux_bot.test").info(
        "entry_forwarded", extra={"entry_id": 42, "cid": "abc"}
    )

    assert [type(h) for h in restore_root_logger.handlers] == [InterceptHandler]
    record = json.loads(captured[-1])["record"]
    assert record["message"] == "entry_forwarded"
    assert record["level"]["name"] == "INFO"
    assert record["extra"]["entry_id"] == 42
    assert record["extra"]["cid"] == "abc"
    assert record["extra"]["logger_name"] == "miniflux_bot.test"


def test_setup_quietens_noisy_libraries(restore_root_logger):
    setup_json_logging("DEBUG")

    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("pyrogram").level == logging.WARNING


def test_correlation_ids_are_short_and_unique():
    ids = {generate_correlation_id() for _ in range(50)}

    assert len(ids) == 50
    assert all(len(cid) == 12 for cid in ids)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("2024-05-01T12:00:00Z", datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC)),
        ("2024-05-01T12:00:00.123456789Z", datetime(2024, 5, 1, 12, 0, 0, 123456, tzinfo=UTC)),
        ("2024-05-01T14:00:00.5+02:00", datetime(2024, 5, 1, 12, 0, 0, 500000, tzinfo=UTC)),
    ],
)
def test_parse_timestamp(raw, expected):
    assert parse_timestamp(raw) == expected


def test_article_from_api_falls_back_to_published_at_and_missing_category():
    article = Article.from_api(
        {
            "id": "7",
            "title": "Hello",
            "url": "https://example.com",
            "status": "read",
            "published_at": "2024-05-01T12:00:00Z",
            "feed": {"title": "Feed"},
        }
    )

    assert article.id == 7
    assert article.is_read
    assert article.starred is False
    assert article.category_id is None
    assert article.category_title == ""
    assert article.changed_at == datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC)
