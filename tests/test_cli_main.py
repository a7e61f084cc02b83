from unittest.mock import patch

from cli.main import run_once
from cli.models import DownloadCommand


def test_run_once_dispatches_parsed_command(capsys):
    with patch('cli.main.dispatch_command', return_value="Downloaded: a.bin") as dispatch:
        code = run_once(['download', '-100:5', 'my dir/'])

    assert code == 0
    dispatch.assert_called_once_with(DownloadCommand(remote_ref='-100:5', output_path='my dir/'))
    assert "Downloaded: a.bin" in capsys.readouterr().out


def test_run_once_error_result_sets_exit_code():
    with patch('cli.main.dispatch_command', return_value="Error: Relay error"):
        assert run_once(['status']) == 1


def test_run_once_parse_error(capsys):
    assert run_once(['frobnicate']) == 1
    assert "Unknown command" in capsys.readouterr().err
