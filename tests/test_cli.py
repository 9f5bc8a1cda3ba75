import io
import json

from offline_images.cli import build_settings, main, parse_args
from offline_images.config import LogLevel


def test_build_settings_applies_overrides(tmp_path):
    settings_path = tmp_path / "s.json"
    settings_path.write_text(json.dumps({"imageFolder": "media", "jpegQuality": 50}), encoding="utf-8")

    args = parse_args(
        [
            "all",
            str(tmp_path),
            "--settings",
            str(settings_path),
            "--original-names",
            "--png-to-jpeg",
            "--retries",
            "5",
            "--log-level",
            "info",
        ]
    )
    settings = build_settings(args)

    assert settings.image_folder == "media"
    assert settings.jpeg_quality == 50
    assert settings.use_md5_for_filenames is False
    assert settings.convert_png_to_jpeg is True
    assert settings.max_download_retries == 5
    assert settings.log_level is LogLevel.INFO


def test_settings_file_in_vault_is_picked_up(tmp_path):
    (tmp_path / ".offline-images.json").write_text(
        json.dumps({"ignoredDomains": "example.com"}), encoding="utf-8"
    )
    settings = build_settings(parse_args(["all", str(tmp_path)]))
    assert settings.ignored_domain_list == ["example.com"]


def test_invalid_override_exits_with_error(tmp_path):
    assert main(["all", str(tmp_path), "--jpeg-quality", "0"]) == 2


def test_paste_passes_through_plain_text(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", io.StringIO("no images here"))

    assert main(["paste", "--vault", str(tmp_path)]) == 0

    assert capsys.readouterr().out == "no images here"


def test_all_on_empty_vault(tmp_path, capsys):
    assert main(["all", str(tmp_path)]) == 0
    assert "Processed 0 files." in capsys.readouterr().err


def test_malformed_settings_file_exits_with_error(tmp_path):
    (tmp_path / ".offline-images.json").write_text(
        json.dumps({"jpegQuality": "high"}), encoding="utf-8"
    )
    assert main(["all", str(tmp_path)]) == 2
