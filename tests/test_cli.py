"""Tests for the command line entry point."""

from __future__ import annotations

from unittest.mock import patch

import yaml
from s3_domain_proxy import cli


def test_init_writes_sample_config(tmp_path, capsys):
    path = tmp_path / "config.yaml"

    assert cli.main(["--mode", "init", "--config", str(path)]) == 0

    document = yaml.safe_load(path.read_text())
    assert document["port"] == "8080"
    assert list(document["domains"]) == ["example.com"]
    assert document["domains"]["example.com"]["use_path_style"] is False
    assert "Sample configuration file generated" in capsys.readouterr().out


def test_run_with_missing_config_fails(tmp_path):
    with patch.object(cli.uvicorn, "run") as run:
        code = cli.main(["--config", str(tmp_path / "absent.yaml")])

    assert code == 1
    run.assert_not_called()


def test_run_with_placeholder_config_fails(tmp_path):
    path = tmp_path / "config.yaml"
    cli.main(["--mode", "init", "--config", str(path)])

    with patch.object(cli.uvicorn, "run") as run:
        code = cli.main(["--mode", "run", "--config", str(path)])

    assert code == 1
    run.assert_not_called()


def test_run_starts_server_on_configured_port(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "port: '9191'\n"
        "domains:\n"
        "  www.example.com:\n"
        "    bucket: static-site\n"
        "    region: us-east-1\n"
        "    access_key: ak\n"
        "    secret_key: sk\n"
    )

    with patch.object(cli.uvicorn, "run") as run:
        code = cli.main(["--config", str(path), "--host", "127.0.0.1"])

    assert code == 0
    run.assert_called_once()
    kwargs = run.call_args.kwargs
    assert kwargs["host"] == "127.0.0.1"
    assert kwargs["port"] == 9191
    assert kwargs["timeout_keep_alive"] == 30
