"""Tests for launcher settings loading."""

from __future__ import annotations

from pathlib import Path

from qlaunch.settings import DEFAULT_OVMF_PATH, LauncherSettings, load_settings


def test_missing_settings_file_uses_defaults(tmp_path: Path) -> None:
    settings = load_settings(tmp_path / 'settings.toml')
    assert settings == LauncherSettings()
    assert settings.ovmf_path == DEFAULT_OVMF_PATH


def test_settings_file_overrides(tmp_path: Path) -> None:
    fpath = tmp_path / 'settings.toml'
    fpath.write_text(
        'profiles_file = "~/vms/profiles.json"\n'
        'ovmf_path = "/opt/ovmf/OVMF.fd"\n'
        'search_dirs = ["/srv/images"]\n'
        'use_sudo = false\n'
        'verbosity = 2\n'
        'unknown_key = 1\n',
        encoding='utf-8',
    )
    settings = load_settings(fpath)
    assert settings.ovmf_path == '/opt/ovmf/OVMF.fd'
    assert settings.use_sudo is False
    assert settings.verbosity == 2
    assert settings.expanded_search_dirs() == [Path('/srv/images')]
    assert settings.resolved_profiles_file() == Path.home() / 'vms' / 'profiles.json'
    assert not hasattr(settings, 'unknown_key')
