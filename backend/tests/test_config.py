"""
Tests for service settings.
"""

from dataclasses import FrozenInstanceError

import pytest

from webm2mp4.config import DEFAULT_SETTINGS, ConverterSettings


class TestDefaults:

    def test_defaults(self):
        settings = ConverterSettings()
        assert settings.bootstrap_strategy == "discover"
        assert settings.ffmpeg_path is None
        assert settings.recovery_delay_seconds == 3.0
        assert settings.transcode_timeout_seconds is None
        assert settings.host == "127.0.0.1"
        assert settings == DEFAULT_SETTINGS

    def test_settings_are_immutable(self):
        with pytest.raises(FrozenInstanceError):
            DEFAULT_SETTINGS.port = 9000


class TestValidation:

    def test_unknown_strategy(self):
        with pytest.raises(ValueError):
            ConverterSettings(bootstrap_strategy="download")

    def test_negative_recovery_delay(self):
        with pytest.raises(ValueError):
            ConverterSettings(recovery_delay_seconds=-1)

    def test_non_positive_timeout(self):
        with pytest.raises(ValueError):
            ConverterSettings(transcode_timeout_seconds=0)


class TestFromEnv:

    def test_empty_environment_gives_defaults(self):
        assert ConverterSettings.from_env({}) == ConverterSettings()

    def test_overrides(self):
        settings = ConverterSettings.from_env({
            "WEBM2MP4_BOOTSTRAP": "Explicit",
            "WEBM2MP4_FFMPEG_PATH": "/opt/ffmpeg/bin/ffmpeg",
            "WEBM2MP4_RECOVERY_DELAY": "0.5",
            "WEBM2MP4_TIMEOUT": "120",
            "WEBM2MP4_PORT": "9090",
            "WEBM2MP4_LOG_LEVEL": "debug",
            "WEBM2MP4_CORS_ORIGINS": "http://a.test, http://b.test,",
        })

        assert settings.bootstrap_strategy == "explicit"
        assert settings.ffmpeg_path == "/opt/ffmpeg/bin/ffmpeg"
        assert settings.recovery_delay_seconds == 0.5
        assert settings.transcode_timeout_seconds == 120.0
        assert settings.port == 9090
        assert settings.log_level == "DEBUG"
        assert settings.cors_origins == ("http://a.test", "http://b.test")

    def test_invalid_value_is_rejected(self):
        with pytest.raises(ValueError):
            ConverterSettings.from_env({"WEBM2MP4_PORT": "eighty"})


class TestDictRoundTrip:

    def test_to_dict_and_back(self):
        settings = ConverterSettings(port=9000, cors_origins=("http://x.test",))
        data = settings.to_dict()

        assert data["cors_origins"] == ["http://x.test"]
        assert ConverterSettings.from_dict(data) == settings

    def test_unknown_keys_are_rejected(self):
        with pytest.raises(ValueError) as exc_info:
            ConverterSettings.from_dict({"port": 9000, "threads": 4})
        assert "threads" in str(exc_info.value)


def test_with_overrides_ignores_none():
    settings = ConverterSettings().with_overrides(port=9001, host=None)
    assert settings.port == 9001
    assert settings.host == "127.0.0.1"
