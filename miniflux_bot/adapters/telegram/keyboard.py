"""Inline keyboard for forwarded entries and the callback payloads it encodes.

Payload format is ``secret:action:entry_id`` (``secret:action`` for the
plain delete button). The secret is the only thing that authenticates a
button press, since Telegram callback data comes back verbatim from the client.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from miniflux_bot.domain.exceptions import InvalidCallbackError

if TYPE_CHECKING:
    from miniflux_bot.domain.models import Article

# Telegram rejects callback data longer than this many bytes.
MAX_CALLBACK_DATA_BYTES = 64

MARK_READ = "markRead"
MARK_UNREAD = "markUnread"
TOGGLE_STAR = "toggleStar"
DELETE_AND_MARK_READ = "deleteAndMarkRead"
DELETE_MESSAGE = "deleteMessage"

ENTRY_ACTIONS = frozenset({MARK_READ, MARK_UNREAD, TOGGLE_STAR, DELETE_AND_MARK_READ})


@dataclass(frozen=True)
class KeyboardButton:
    label: str
    callback_data: str


Keyboard = tuple[tuple[KeyboardButton, ...], ...]


@dataclass(frozen=True)
class CallbackPayload:
    secret: str
    action: str
    entry_id: int | None = None


def encode_callback(secret: str, action: str, entry_id: int | None = None) -> str:
    data = f"{secret}:{action}" if entry_id is None else f"{secret}:{action}:{entry_id}"
    if len(data.encode()) > MAX_CALLBACK_DATA_BYTES:
        msg = f"Callback data for {action} exceeds {MAX_CALLBACK_DATA_BYTES} bytes"
        raise ValueError(msg)
    return data


def build_keyboard(article: Article, secret: str) -> Keyboard:
    """Return the buttons reflecting the article's current read and starred state."""
    if article.is_unread:
        read_button = KeyboardButton("Mark as read", encode_callback(secret, MARK_READ, article.id))
    else:
        read_button = KeyboardButton(
            "Mark as unread", encode_callback(secret, MARK_UNREAD, article.id)
        )

    star_button = KeyboardButton(
        "Unstar" if article.starred else "Star",
        encode_callback(secret, TOGGLE_STAR, article.id),
    )

    return (
        (read_button, star_button),
        (
            KeyboardButton("Delete message", encode_callback(secret, DELETE_MESSAGE)),
            KeyboardButton(
                "Delete & mark as read",
                encode_callback(secret, DELETE_AND_MARK_READ, article.id),
            ),
        ),
    )


def parse_callback_data(data: str | bytes | None) -> CallbackPayload:
    """Split callback data into secret, action and optional entry ID.

    Raises:
        InvalidCallbackError: If the payload has the wrong shape or a
            non-numeric entry ID.
    """
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    if not data:
        msg = "Empty callback data"
        raise InvalidCallbackError(msg)

    parts = data.split(":")
    if len(parts) not in (2, 3):
        msg = "Callback data must have two or three segments"
        raise InvalidCallbackError(msg, details={"segments": len(parts)})

    entry_id: int | None = None
    if len(parts) == 3:
        try:
            entry_id = int(parts[2])
        except ValueError as exc:
            msg = "Callback entry ID is not an integer"
            raise InvalidCallbackError(msg) from exc

    return CallbackPayload(secret=parts[0], action=parts[1], entry_id=entry_id)
