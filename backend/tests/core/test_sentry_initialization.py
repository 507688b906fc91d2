"""
Tests for Sentry initialization and the application lifespan.
"""
from unittest.mock import AsyncMock, patch

import pytest
from sentry_sdk.utils import BadDsn

from app.main import init_sentry, lifespan

DSN = "https://public@sentry.io/123456"


class TestInitSentry:
    """Tests for init_sentry()."""

    @pytest.mark.parametrize("dsn", ["", None], ids=["empty", "none"])
    def test_disabled_without_dsn(self, dsn):
        """Test that a missing DSN leaves Sentry off."""
        with patch("app.main.sentry_sdk.init") as mock_init:
            result = init_sentry(
                dsn=dsn,  # type: ignore[arg-type]
                traces_sample_rate=0.1,
                environment="test",
                release="1.0.0",
            )

        assert result is False
        mock_init.assert_not_called()

    def test_init_parameters(self):
        """Test the arguments passed to sentry_sdk.init."""
        with patch("app.main.sentry_sdk.init") as mock_init:
            result = init_sentry(
                dsn=DSN,
                traces_sample_rate=0.25,
                environment="production",
                release="2.0.0",
            )

        assert result is True
        kwargs = mock_init.call_args[1]
        assert kwargs["dsn"] == DSN
        assert kwargs["traces_sample_rate"] == pytest.approx(0.25)
        assert kwargs["environment"] == "production"
        assert kwargs["release"] == "2.0.0"
        assert kwargs["send_default_pii"] is False
        assert sorted(type(i).__name__ for i in kwargs["integrations"]) == [
            "FastApiIntegration",
            "StarletteIntegration",
        ]

    def test_logs_environment_and_sampling(self):
        """Test the startup log line."""
        with patch("app.main.sentry_sdk.init"), patch("app.main.logger") as mock_logger:
            init_sentry(
                dsn=DSN,
                traces_sample_rate=0.25,
                environment="staging",
                release="1.0.0",
            )

        message = mock_logger.info.call_args[0][0]
        assert "environment 'staging'" in message
        assert "25% trace sampling" in message

    @pytest.mark.parametrize(
        "invalid_dsn",
        ["not-a-valid-dsn", "   ", "https://missing-project-id@sentry.io/"],
        ids=["plain-string", "whitespace", "no-project-id"],
    )
    def test_malformed_dsn_fails_fast(self, invalid_dsn):
        """Test that a malformed DSN is not silently ignored."""
        with pytest.raises(BadDsn):
            init_sentry(
                dsn=invalid_dsn,
                traces_sample_rate=0.1,
                environment="test",
                release="1.0.0",
            )


class TestLifespan:
    """Tests for the startup and shutdown hooks."""

    async def test_initializes_sentry_from_settings_and_disposes_engine(self):
        """Test that the lifespan wires settings into Sentry and closes the pool."""
        with patch("app.main.init_sentry") as mock_init, patch(
            "app.models.async_engine"
        ) as mock_engine, patch("app.main.settings") as mock_settings:
            mock_dispose = mock_engine.dispose = AsyncMock()
            mock_settings.SENTRY_DSN = DSN
            mock_settings.SENTRY_TRACES_SAMPLE_RATE = 0.5
            mock_settings.ENV = "staging"
            mock_settings.APP_VERSION = "9.9.9"

            async with lifespan(None):
                mock_init.assert_called_once_with(
                    dsn=DSN,
                    traces_sample_rate=0.5,
                    environment="staging",
                    release="9.9.9",
                )
                mock_dispose.assert_not_awaited()

        mock_dispose.assert_awaited_once()
