import dataclasses
import json
import logging

import pytest

from offline_images.config import LogLevel, Settings, SettingsError, load_settings
from offline_images.logs import operation_logger


def test_defaults():
    settings = Settings()
    assert settings.auto_download is True
    assert settings.download_on_paste is True
    assert settings.image_folder == "attachments"
    assert settings.use_md5_for_filenames is True
    assert settings.convert_png_to_jpeg is False
    assert settings.jpeg_quality == 85
    assert settings.max_download_retries == 3
    assert settings.download_timeout == 30000
    assert settings.ignored_domains == ""
    assert settings.log_level is LogLevel.ERROR


def test_load_persisted_document(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(
        json.dumps(
            {
                "imageFolder": "assets",
                "useMD5ForFilenames": False,
                "jpegQuality": 60,
                "ignoredDomains": "a.com, b.org",
                "logLevel": 4,
                "sponsorShown": True,
            }
        ),
        encoding="utf-8",
    )

    settings = load_settings(path)

    assert settings.image_folder == "assets"
    assert settings.use_md5_for_filenames is False
    assert settings.jpeg_quality == 60
    assert settings.ignored_domain_list == ["a.com", "b.org"]
    assert settings.log_level is LogLevel.DEBUG
    assert settings.max_download_retries == 3


def test_missing_file_gives_defaults(tmp_path):
    assert load_settings(tmp_path / "absent.json") == Settings()
    assert load_settings(None) == Settings()


def test_unreadable_document(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(SettingsError):
        load_settings(path)


@pytest.mark.parametrize(
    "document",
    [
        {"jpegQuality": "high"},
        {"maxDownloadRetries": "many"},
        {"downloadTimeout": []},
        {"ignoredDomains": ["a.com"]},
    ],
)
def test_malformed_values_raise_settings_error(tmp_path, document):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps(document), encoding="utf-8")
    with pytest.raises(SettingsError):
        load_settings(path)


def test_numeric_strings_are_normalised():
    settings = Settings.from_mapping({"jpegQuality": "60", "maxDownloadRetries": "2"})
    assert settings.jpeg_quality == 60
    assert settings.max_download_retries == 2


@pytest.mark.parametrize(
    "changes",
    [{"jpeg_quality": 0}, {"jpeg_quality": 101}, {"max_download_retries": 0}, {"download_timeout": 0}],
)
def test_invalid_values(changes):
    with pytest.raises(SettingsError):
        Settings(**changes)


def test_overrides_produce_new_snapshot():
    base = Settings()
    changed = base.with_overrides(image_folder="img", jpeg_quality=None, log_level="warn")

    assert changed is not base
    assert changed.image_folder == "img"
    assert changed.jpeg_quality == 85
    assert changed.log_level is LogLevel.WARN
    assert base.image_folder == "attachments"
    with pytest.raises(dataclasses.FrozenInstanceError):
        base.image_folder = "other"


def test_unknown_log_level():
    with pytest.raises(SettingsError):
        LogLevel.parse("loud")


def test_operation_logger_applies_snapshot_verbosity(caplog):
    caplog.set_level(logging.DEBUG, logger="offline_images")
    quiet = operation_logger(Settings(log_level=LogLevel.ERROR))
    chatty = operation_logger(Settings(log_level=LogLevel.DEBUG), context="note.md")

    quiet.info("hidden")
    quiet.error("shown")
    chatty.debug("detail")

    messages = [record.getMessage() for record in caplog.records]
    assert "hidden" not in messages
    assert "shown" in messages
    assert "[note.md] detail" in messages


def test_none_verbosity_silences_everything(caplog):
    caplog.set_level(logging.DEBUG, logger="offline_images")
    silent = operation_logger(Settings(log_level=LogLevel.NONE))

    silent.error("nope")

    assert caplog.records == []
