"""Tests for TOML config file loading."""

from __future__ import annotations

import argparse
from pathlib import Path

import pytest

from rpyfront.cli import build_parser, load_config, main, resolve_options


def _options(tmp_path: Path, *extra: str):
    doc = tmp_path / "script.rpy"
    doc.write_text("pass\n")
    ns = build_parser().parse_args([str(doc), *extra])
    return resolve_options(ns)


class TestLoadConfig:
    def test_missing_config_returns_empty(self, tmp_path: Path) -> None:
        assert load_config(None, tmp_path) == {}

    def test_explicit_path(self, tmp_path: Path) -> None:
        cfg = tmp_path / "custom.toml"
        cfg.write_text('[log]\nlevel = "info"\n')
        result = load_config(cfg, tmp_path)
        assert result["log"] == {"level": "info"}

    def test_auto_discover_rpyfront_toml(self, tmp_path: Path) -> None:
        cfg = tmp_path / "rpyfront.toml"
        cfg.write_text("[output]\nast = true\n")
        result = load_config(None, tmp_path)
        assert result["output"] == {"ast": True}


class TestConfigMerge:
    def test_defaults(self, tmp_path: Path) -> None:
        opts = _options(tmp_path)
        assert opts.log_level == "WARNING"
        assert not (opts.dump_tokens or opts.dump_ast or opts.dump_symbols)
        assert opts.input_files == [tmp_path / "script.rpy"]

    def test_config_log_level(self, tmp_path: Path) -> None:
        (tmp_path / "rpyfront.toml").write_text('[log]\nlevel = "debug"\n')
        assert _options(tmp_path).log_level == "DEBUG"

    def test_cli_overrides_config_log_level(self, tmp_path: Path) -> None:
        (tmp_path / "rpyfront.toml").write_text('[log]\nlevel = "debug"\n')
        assert _options(tmp_path, "--log-level", "error").log_level == "ERROR"

    def test_invalid_config_log_level(self, tmp_path: Path) -> None:
        (tmp_path / "rpyfront.toml").write_text('[log]\nlevel = "loud"\n')
        with pytest.raises(argparse.ArgumentTypeError):
            _options(tmp_path)

    def test_config_outputs(self, tmp_path: Path) -> None:
        (tmp_path / "rpyfront.toml").write_text("[output]\ntokens = true\nsymbols = true\n")
        opts = _options(tmp_path)
        assert opts.dump_tokens
        assert not opts.dump_ast
        assert opts.dump_symbols

    def test_cli_flag_enables_output(self, tmp_path: Path) -> None:
        (tmp_path / "rpyfront.toml").write_text("[output]\nast = false\n")
        assert _options(tmp_path, "--ast").dump_ast

    def test_non_bool_output_ignored(self, tmp_path: Path) -> None:
        (tmp_path / "rpyfront.toml").write_text('[output]\nast = "yes"\n')
        assert not _options(tmp_path).dump_ast

    def test_explicit_config_flag(self, tmp_path: Path) -> None:
        cfg = tmp_path / "other.toml"
        cfg.write_text("[output]\nast = true\n")
        assert _options(tmp_path, "--config", str(cfg)).dump_ast


class TestConfigEndToEnd:
    def test_config_enables_ast_dump(self, tmp_path: Path, capsys) -> None:
        (tmp_path / "rpyfront.toml").write_text("[output]\nast = true\n")
        doc = tmp_path / "script.rpy"
        doc.write_text("pass\n")
        assert main([str(doc)]) == 0
        assert capsys.readouterr().out == "Program\n  Pass\n"
