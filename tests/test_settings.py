"""Validation rules on Settings."""

import pytest
from pydantic import ValidationError
from ratemate.config.settings import Settings


def test_defaults():
    config = Settings(_env_file=None)

    assert config.MAX_CONTEXT_LENGTH == 3000
    assert config.SESSION_HISTORY_LIMIT == 20
    assert config.PROMPT_HISTORY_TURNS == 10
    assert config.SESSION_COOKIE_MAX_AGE == 604800
    assert config.is_production is False


@pytest.mark.parametrize(
    "overrides",
    [
        {"SESSION_HISTORY_LIMIT": 21},
        {"SESSION_HISTORY_LIMIT": 0},
        {"SIMILARITY_THRESHOLD": 1.5},
        {"MAX_CONTEXT_LENGTH": 10},
        {"EMBEDDING_DIMENSION": 0},
    ],
)
def test_invalid_values_rejected(overrides):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **overrides)


def test_api_key_is_secret():
    config = Settings(_env_file=None, GOOGLE_API_KEY="AIza-secret-value")

    assert "AIza-secret-value" not in repr(config)
    assert config.GOOGLE_API_KEY.get_secret_value() == "AIza-secret-value"
