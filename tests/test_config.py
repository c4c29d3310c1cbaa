from __future__ import annotations

import json
from pathlib import Path

import pytest

from annotation_import.config import (
    ImporterSettings,
    get_container_root,
    get_settings_path,
    get_vault_dir,
    load_settings,
    save_settings,
)


def test_defaults() -> None:
    settings = ImporterSettings()
    assert settings.output_folder == "Books"
    assert settings.overwrite_existing == "true"
    assert settings.sort_annotations is True
    assert settings.tags == ["book/notes"]


def test_missing_file_gives_defaults(tmp_path: Path) -> None:
    assert load_settings(tmp_path / "nope.json") == ImporterSettings()


def test_save_and_load(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "settings.json"
    settings = ImporterSettings(output_folder="Reading", overwrite_existing="smart", include_citations=True)

    save_settings(settings, path)

    assert json.loads(path.read_text(encoding="utf-8"))["overwrite_existing"] == "smart"
    assert load_settings(path) == settings


def test_unknown_keys_are_ignored(tmp_path: Path, caplog) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"output_folder": "X", "gemini_api_key": "secret"}), encoding="utf-8")

    settings = load_settings(path)

    assert settings.output_folder == "X"
    assert "gemini_api_key" in caplog.text


def test_boolean_overwrite_setting_is_converted() -> None:
    assert ImporterSettings(overwrite_existing=True).overwrite_existing == "true"
    assert ImporterSettings(overwrite_existing=False).overwrite_existing == "false"


def test_invalid_overwrite_mode() -> None:
    with pytest.raises(ValueError):
        ImporterSettings(overwrite_existing="sometimes")


def test_tags_strip_hashes_and_blanks() -> None:
    assert ImporterSettings(custom_tags="#book/notes, ,#reading ,  x").tags == ["book/notes", "reading", "x"]
    assert ImporterSettings(custom_tags="").tags == []


def test_container_metadata_only_when_needed() -> None:
    settings = ImporterSettings(include_covers=False, include_extended_frontmatter=False, include_extended_in_note=False)
    assert not settings.wants_container_metadata
    assert ImporterSettings(include_covers=False, include_extended_frontmatter=False).wants_container_metadata


def test_environment_overrides(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("ANNOTATION_IMPORT_SETTINGS", str(tmp_path / "s.json"))
    monkeypatch.setenv("ANNOTATION_IMPORT_VAULT", str(tmp_path / "vault"))
    monkeypatch.setenv("APPLE_BOOKS_CONTAINER", str(tmp_path / "container"))

    assert get_settings_path() == tmp_path / "s.json"
    assert get_vault_dir() == tmp_path / "vault"
    assert get_container_root() == tmp_path / "container"


def test_environment_defaults(monkeypatch) -> None:
    monkeypatch.delenv("ANNOTATION_IMPORT_SETTINGS", raising=False)
    monkeypatch.delenv("ANNOTATION_IMPORT_VAULT", raising=False)
    monkeypatch.delenv("APPLE_BOOKS_CONTAINER", raising=False)

    assert get_settings_path().name == ".annotation_import.json"
    assert get_vault_dir() == Path.cwd()
    assert get_container_root() is None
