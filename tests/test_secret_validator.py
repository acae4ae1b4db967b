import pytest

from miniflux_bot.config import parse_telegram_secret
from miniflux_bot.domain.exceptions import InvalidSecretError


@pytest.mark.parametrize("value", ["a", "abc123", "ABCdef789", "x" * 15, "0"])
def test_accepts_short_alphanumeric_secrets(value):
    assert parse_telegram_secret(value) == value


@pytest.mark.parametrize(
    "value",
    ["", None, "x" * 16, "abc:123", "abc 123", "abc-123", "päss", "abc123\n"],
)
def test_rejects_everything_else(value):
    with pytest.raises(InvalidSecretError):
        parse_telegram_secret(value)


def test_invalid_secret_is_a_value_error():
    # pydantic turns ValueError raised in validators into a ValidationError.
    assert issubclass(InvalidSecretError, ValueError)
