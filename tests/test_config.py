"""
tests/test_config.py -- Settings validation rules.

Settings is constructed directly with keyword values; constructor arguments
take precedence over environment variables and .env, so these tests do not
depend on the DEBUG value conftest sets for the app.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings

GOOD_KEY = "k" * 32


class TestSecretKey:
    def test_production_requires_key(self):
        with pytest.raises(ValidationError, match="SECRET_KEY is required"):
            Settings(debug=False, secret_key="")

    def test_debug_generates_key(self):
        settings = Settings(debug=True, secret_key="")
        assert len(settings.secret_key) >= 32

    def test_generated_keys_differ(self):
        assert Settings(debug=True, secret_key="").secret_key != Settings(debug=True, secret_key="").secret_key

    @pytest.mark.parametrize("debug", [True, False])
    def test_short_key_rejected(self, debug):
        with pytest.raises(ValidationError, match="at least 32"):
            Settings(debug=debug, secret_key="k" * 31)

    def test_explicit_key_kept(self):
        assert Settings(debug=False, secret_key=GOOD_KEY).secret_key == GOOD_KEY


class TestDevConveniences:
    def test_follow_debug_on(self):
        settings = Settings(debug=True, secret_key=GOOD_KEY)
        assert settings.expose_verification_code is True
        assert settings.public_stats is True

    def test_follow_debug_off(self):
        settings = Settings(debug=False, secret_key=GOOD_KEY)
        assert settings.expose_verification_code is False
        assert settings.public_stats is False

    def test_explicit_value_wins(self):
        settings = Settings(debug=False, secret_key=GOOD_KEY, public_stats=True, expose_verification_code=True)
        assert settings.public_stats is True
        assert settings.expose_verification_code is True


class TestDefaults:
    def test_default_values(self):
        settings = Settings(debug=False, secret_key=GOOD_KEY, bcrypt_rounds=12)
        assert settings.bcrypt_rounds == 12
        assert settings.session_duration_seconds == 7 * 24 * 60 * 60
        assert settings.general_rate_limit == "100 per 15 minutes"
        assert settings.auth_rate_limit == "5 per 15 minutes"
        assert settings.database_url == ""

    @pytest.mark.parametrize("rounds", [3, 32])
    def test_bcrypt_rounds_bounds(self, rounds):
        with pytest.raises(ValidationError):
            Settings(debug=True, secret_key=GOOD_KEY, bcrypt_rounds=rounds)
