"""Command parser for CLI input."""

import shlex

from cli.models import (
    CancelCommand,
    CommandRequest,
    DownloadCommand,
    StatusCommand,
    TransfersCommand,
    UploadCommand,
)


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a CommandRequest object.

    Args:
        input_line: Raw user input from REPL

    Returns:
        CommandRequest object (one of Upload/Download/Status/Transfers/Cancel)

    Raises:
        ParseError: If command syntax is invalid
    """
    if not input_line.strip():
        raise ParseError("Empty command")

    try:
        tokens = shlex.split(input_line)
    except ValueError as e:
        raise ParseError(f"Invalid syntax: {e}")

    if not tokens:
        raise ParseError("Empty command")

    command_name = tokens[0]
    args = tokens[1:]

    if command_name == "upload":
        return _parse_upload(args)
    elif command_name == "download":
        return _parse_download(args)
    elif command_name == "status":
        _expect_no_args(command_name, args)
        return StatusCommand()
    elif command_name == "transfers":
        _expect_no_args(command_name, args)
        return TransfersCommand()
    elif command_name == "cancel":
        return _parse_cancel(args)
    else:
        raise ParseError(f"Unknown command: {command_name}")


def _expect_no_args(command_name: str, args: list[str]) -> None:
    if args:
        raise ParseError(f"{command_name} takes no arguments")


def _parse_upload(args: list[str]) -> UploadCommand:
    """Parse 'upload <path>' command."""
    if len(args) != 1:
        raise ParseError("upload requires exactly 1 argument: <path>")
    return UploadCommand(path=args[0])


def _parse_download(args: list[str]) -> DownloadCommand:
    """Parse 'download <remote_ref> [output_path]' command."""
    if len(args) < 1 or len(args) > 2:
        raise ParseError("download requires 1 or 2 arguments: <remote_ref> [output_path]")

    remote_ref = args[0]
    if ":" not in remote_ref:
        raise ParseError(f"Invalid remote reference '{remote_ref}', expected <channel_id>:<message_id>")

    output_path = args[1] if len(args) > 1 else None
    return DownloadCommand(remote_ref=remote_ref, output_path=output_path)


def _parse_cancel(args: list[str]) -> CancelCommand:
    """Parse 'cancel <transfer_id>' command."""
    if len(args) != 1:
        raise ParseError("cancel requires exactly 1 argument: <transfer_id>")
    return CancelCommand(transfer_id=args[0])
