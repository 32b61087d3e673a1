"""
Test the command-line interface
"""
import json

import click
import pytest
from click.testing import CliRunner

from cli.main import cli, parse_option_pairs


@pytest.fixture
def runner():
    return CliRunner()


@pytest.mark.unit
def test_parse_option_pairs():
    options = parse_option_pairs((
        "width=1280",
        "format=webm",
        'inputPaths=["/a.mp4", "/b.mp4"]',
        "accurate=false",
        "text=a=b",
    ))
    assert options == {
        "width": 1280,
        "format": "webm",
        "inputPaths": ["/a.mp4", "/b.mp4"],
        "accurate": False,
        "text": "a=b",
    }


@pytest.mark.unit
def test_parse_option_pairs_rejects_bare_words():
    with pytest.raises(click.BadParameter):
        parse_option_pairs(("width",))


@pytest.mark.unit
def test_operations_json(runner):
    result = runner.invoke(cli, ["--json", "operations"], obj={})
    assert result.exit_code == 0
    assert "stabilize" in json.loads(result.output)


@pytest.mark.unit
def test_operations_table(runner):
    result = runner.invoke(cli, ["operations"], obj={})
    assert result.exit_code == 0
    assert "extract-frames" in result.output


@pytest.mark.unit
def test_process_missing_input(runner, tmp_path):
    result = runner.invoke(
        cli, ["--media-root", str(tmp_path), "process", "mute", "/missing.mp4"], obj={}
    )
    assert result.exit_code == 1
    assert "INPUT_NOT_FOUND" in result.output


@pytest.mark.unit
def test_process_invalid_option(runner, tmp_path):
    (tmp_path / "clip.mp4").write_bytes(b"placeholder")
    result = runner.invoke(
        cli, ["--media-root", str(tmp_path), "process", "crop", "/clip.mp4", "-o", "cropWidth=0"], obj={}
    )
    assert result.exit_code == 1
    assert "VALIDATION_ERROR" in result.output


@pytest.mark.unit
def test_unknown_operation_rejected_by_cli(runner, tmp_path):
    result = runner.invoke(cli, ["--media-root", str(tmp_path), "process", "explode", "/clip.mp4"], obj={})
    assert result.exit_code == 2
