"""Tests for CLI command parsing."""

import pytest

from cli.models import CancelCommand, DownloadCommand, StatusCommand, TransfersCommand, UploadCommand
from cli.parser import ParseError, parse_command


def test_parse_upload():
    assert parse_command("upload movie.mkv") == UploadCommand(path="movie.mkv")


def test_parse_upload_quoted_path():
    assert parse_command('upload "my movie.mkv"') == UploadCommand(path="my movie.mkv")


def test_parse_download():
    assert parse_command("download -100777:12") == DownloadCommand(remote_ref="-100777:12")


def test_parse_download_with_output():
    cmd = parse_command("download -100777:12 ~/films/")
    assert cmd == DownloadCommand(remote_ref="-100777:12", output_path="~/films/")


def test_parse_commands_without_arguments():
    assert parse_command("status") == StatusCommand()
    assert parse_command("transfers") == TransfersCommand()


def test_parse_cancel():
    assert parse_command("cancel 0f3a") == CancelCommand(transfer_id="0f3a")


@pytest.mark.parametrize("line,message", [
    ("", "Empty command"),
    ("   ", "Empty command"),
    ("upload", "exactly 1 argument"),
    ("upload a b", "exactly 1 argument"),
    ("download", "1 or 2 arguments"),
    ("download 12", "Invalid remote reference"),
    ("download -1:2 out extra", "1 or 2 arguments"),
    ("status now", "takes no arguments"),
    ("cancel", "exactly 1 argument"),
    ("upload 'unterminated", "Invalid syntax"),
    ("fetch x", "Unknown command"),
])
def test_parse_errors(line, message):
    with pytest.raises(ParseError, match=message):
        parse_command(line)
