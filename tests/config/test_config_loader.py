# -*- coding: utf-8 -*-
"""
Tests for the config_loader module.
"""

import argparse
import json
from pathlib import Path

import pytest

from config.config_loader import load_import_settings
from config.config_models import AgencyConfig, ImportSettings
from processors.gtfs.errors import ConfigurationError


def _cli(**overrides):
    values = {"skip_delete": False, "continue_on_error": False, "download_dir": None}
    values.update(overrides)
    return argparse.Namespace(**values)


def test_missing_config_file_uses_defaults(tmp_path):
    settings = load_import_settings(config_file_path=tmp_path / "absent.yaml")

    assert settings.agencies == []
    assert settings.skip_delete is False
    assert settings.continue_on_error is False
    assert settings.download_dir == Path("./gtfs-downloads")
    assert settings.request_timeout == 120


def test_yaml_file_values(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        "skip_delete: true\n"
        "request_timeout: 30\n"
        "agencies:\n"
        "  - agency_key: demo\n"
        "    url: https://demo.example.com/gtfs.zip\n"
        "    exclude: [shapes.txt, frequencies]\n"
        "    proj: EPSG:2913\n"
        "pg:\n"
        "  host: db.internal\n"
    )

    settings = load_import_settings(config_file_path=config_file)

    assert settings.skip_delete is True
    assert settings.request_timeout == 30
    assert settings.pg.host == "db.internal"
    agency = settings.agencies[0]
    assert agency.agency_key == "demo"
    assert agency.url == "https://demo.example.com/gtfs.zip"
    assert agency.exclude == ["shapes", "frequencies"]
    assert agency.proj == "EPSG:2913"
    assert agency.skip_delete is None


def test_json_file_with_camel_case_keys(tmp_path):
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps({
        "skipDelete": True,
        "downloadDir": str(tmp_path / "scratch"),
        "agencies": [{"agency_key": "demo", "path": "~/feeds/demo.zip"}],
    }))

    settings = load_import_settings(config_file_path=config_file)

    assert settings.skip_delete is True
    assert settings.download_dir == tmp_path / "scratch"
    assert settings.agencies[0].path == "~/feeds/demo.zip"


def test_cli_overrides_file(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("skip_delete: false\ndownload_dir: /var/tmp/gtfs\n")

    settings = load_import_settings(
        cli_args=_cli(skip_delete=True, continue_on_error=True, download_dir=str(tmp_path / "cli")),
        config_file_path=config_file,
    )

    assert settings.skip_delete is True
    assert settings.continue_on_error is True
    assert settings.download_dir == tmp_path / "cli"


def test_unset_cli_flags_do_not_override_file(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("skip_delete: true\n")

    settings = load_import_settings(cli_args=_cli(), config_file_path=config_file)

    assert settings.skip_delete is True


def test_environment_is_below_file(tmp_path, monkeypatch):
    monkeypatch.setenv("GTFS_REQUEST_TIMEOUT", "45")
    monkeypatch.setenv("PG_PASSWORD", "from-env")
    config_file = tmp_path / "config.yaml"
    config_file.write_text("skip_delete: true\n")

    settings = load_import_settings(config_file_path=config_file)
    assert settings.request_timeout == 45
    assert settings.pg.password == "from-env"

    config_file.write_text("request_timeout: 10\n")
    settings = load_import_settings(config_file_path=config_file)
    assert settings.request_timeout == 10


def test_unparsable_file_raises(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("agencies: [unclosed\n")

    with pytest.raises(ConfigurationError):
        load_import_settings(config_file_path=config_file)


def test_non_mapping_file_raises(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("- just\n- a list\n")

    with pytest.raises(ConfigurationError):
        load_import_settings(config_file_path=config_file)


def test_invalid_values_raise(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("request_timeout: soon\n")

    with pytest.raises(ConfigurationError, match="Invalid importer configuration"):
        load_import_settings(config_file_path=config_file)


class TestModels:

    def test_exclude_accepts_single_string(self):
        agency = AgencyConfig(agency_key="demo", url="https://x", exclude="shapes.txt")
        assert agency.exclude == ["shapes"]

    def test_agency_entry_may_lack_key(self):
        agency = AgencyConfig(url="https://x")
        assert agency.agency_key is None

    def test_db_params(self):
        settings = ImportSettings()
        settings.pg.host = "db"
        settings.pg.port = 6543
        params = settings.pg.as_db_params()
        assert params["host"] == "db"
        assert params["port"] == "6543"
        assert set(params) == {"dbname", "user", "password", "host", "port"}

    def test_password_is_not_dumped(self):
        assert "password" not in ImportSettings().model_dump()["pg"]
