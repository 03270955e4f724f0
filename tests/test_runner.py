"""Tests for the typer CLI."""

import sys

import pytest
from loguru import logger
from typer.testing import CliRunner

from sse_academy.runner import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    # The commands swap the loguru sink for the runner's captured stderr.
    logger.remove()
    logger.add(sys.stderr)


def test_decode_file(tmp_path):
    capture = tmp_path / "capture.txt"
    capture.write_bytes(b": comment\n\nid: 1\nevent: tick\ndata: a\ndata: b\n\ndata: c\r\n\r\n")

    result = runner.invoke(app, ["decode", str(capture)])

    assert result.exit_code == 0
    assert "id='1' event=tick data='a\\nb'" in result.stdout
    assert "id='1' event=message data='c'" in result.stdout


def test_decode_missing_file(tmp_path):
    result = runner.invoke(app, ["decode", str(tmp_path / "missing.txt")])
    assert result.exit_code != 0


def test_listen_plain(sse_server):
    sse_server.send("hello", id="42")

    result = runner.invoke(app, ["listen", sse_server.url, "--plain", "--duration", "0.5"])

    assert result.exit_code == 0
    assert "id='42' event=message data='hello'" in result.stdout


def test_listen_rejected(sse_server):
    sse_server.content_type = "application/json"

    result = runner.invoke(app, ["listen", sse_server.url, "--plain", "--duration", "0.5"])

    assert result.exit_code == 1
