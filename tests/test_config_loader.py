#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Tests for load_merge_settings and the settings models.
"""

import argparse
from pathlib import Path

import pytest

from processors.gtfs_merge import pipeline_definitions as defs
from processors.gtfs_merge.session import MergeSession
from settings.config_loader import _deep_update, _nest, load_merge_settings, read_yaml_config
from settings.config_models import MergeSettings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("GTFS_MERGE_ARCHIVE_PREFIX", "GTFS_MERGE_LOG_LEVEL", "GTFS_FEED_INFO_LANG"):
        monkeypatch.delenv(name, raising=False)


def cli(**values):
    return argparse.Namespace(**values)


def test_defaults_without_config_file(tmp_path):
    settings = load_merge_settings(config_file_path=str(tmp_path / "missing.yaml"))
    assert settings.archive_prefix == "GTFS_Merged"
    assert settings.renamed_id_separator == "_Merged_"
    assert settings.update_feed_info is True
    assert settings.feed_info.lang == "en"


def test_defaults_match_engine_defaults():
    """Settings defaults are the engine's own constants."""
    settings = MergeSettings()
    assert settings.renamed_id_separator == defs.DEFAULT_RENAMED_ID_SEPARATOR
    assert settings.renamed_id_separator == MergeSession().renamed_id_separator
    assert settings.audit_log_name == defs.AUDIT_LOG_FILENAME
    assert settings.discrepancy_report_name == defs.DISCREPANCY_REPORT_FILENAME


def test_precedence_env_yaml_cli(tmp_path, monkeypatch):
    """Environment < YAML < CLI."""
    monkeypatch.setenv("GTFS_MERGE_ARCHIVE_PREFIX", "FromEnv")
    monkeypatch.setenv("GTFS_MERGE_LOG_LEVEL", "debug")
    config = tmp_path / "gtfs_merge.yaml"
    config.write_text(
        "archive_prefix: FromYaml\nfeed_info:\n  publisher_name: Yaml Transit\n  lang: fr\n",
        encoding="utf-8",
    )

    settings = load_merge_settings(
        cli_args=cli(archive_prefix="FromCli", publisher_name=None, output_dir=None),
        config_file_path=str(config),
    )

    assert settings.archive_prefix == "FromCli"
    assert settings.log_level == "DEBUG"
    assert settings.feed_info.publisher_name == "Yaml Transit"
    assert settings.feed_info.lang == "fr"


def test_cli_nested_feed_info_value(tmp_path):
    settings = load_merge_settings(
        cli_args=cli(contact_email="ops@example.org", output_dir=Path("/data")),
        config_file_path=str(tmp_path / "none.yaml"),
    )
    assert settings.feed_info.contact_email == "ops@example.org"
    assert settings.output_dir == Path("/data")


def test_invalid_value_exits(tmp_path):
    with pytest.raises(SystemExit):
        load_merge_settings(cli_args=cli(renamed_id_separator=""), config_file_path=str(tmp_path / "none.yaml"))


def test_unknown_log_level_rejected():
    with pytest.raises(ValueError):
        MergeSettings(log_level="LOUD")


class TestReadYamlConfig:
    """Tests for tolerant YAML reading."""

    def test_broken_yaml_is_ignored(self, tmp_path):
        config = tmp_path / "bad.yaml"
        config.write_text("archive_prefix: [unclosed\n", encoding="utf-8")
        assert read_yaml_config(config) == {}

    def test_non_mapping_is_ignored(self, tmp_path):
        config = tmp_path / "list.yaml"
        config.write_text("- a\n- b\n", encoding="utf-8")
        assert read_yaml_config(config) == {}

    def test_empty_file(self, tmp_path):
        config = tmp_path / "empty.yaml"
        config.write_text("", encoding="utf-8")
        assert read_yaml_config(config) == {}


def test_nest_and_deep_update():
    nested = _nest({"a.b": 1, "c": 2})
    assert nested == {"a": {"b": 1}, "c": 2}
    merged = _deep_update({"a": {"b": 0, "x": 9}, "c": 0}, {"a": {"b": 1}, "c": None})
    assert merged == {"a": {"b": 1, "x": 9}, "c": 0}
