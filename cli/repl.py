"""Interactive prompt_toolkit shell for the TeleStore CLI."""

import os
import sys
from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory

from cli.commands import (
    handle_cancel,
    handle_download,
    handle_status,
    handle_transfers,
    handle_upload,
)
from cli.completer import TeleStoreCompleter
from cli.constants import (
    HELP_TEXT,
    LOGO,
    PROMPT_TEXT,
    STYLE,
    WELCOME_HELP,
    WELCOME_TITLE,
)
from cli.models import (
    CancelCommand,
    DownloadCommand,
    StatusCommand,
    TransfersCommand,
    UploadCommand,
)
from cli.parser import ParseError, parse_command

HANDLERS = {
    UploadCommand: handle_upload,
    DownloadCommand: handle_download,
    StatusCommand: handle_status,
    TransfersCommand: handle_transfers,
    CancelCommand: handle_cancel,
}


def clear_screen() -> None:
    os.system("cls" if sys.platform == "win32" else "clear")


def show_welcome() -> None:
    print(LOGO)
    print(WELCOME_TITLE)
    print(WELCOME_HELP)


def dispatch_command(cmd_obj) -> str:
    """Run the handler registered for a parsed command and return its output text."""
    handler = HANDLERS.get(type(cmd_obj))
    if handler is None:
        return f"Unknown command type: {type(cmd_obj)}"
    return handler(cmd_obj)


def _run_line(line: str) -> bool:
    """Handle one input line. Returns False when the shell should stop."""
    word = line.strip()
    if not word:
        return True
    if word == "exit":
        print("Goodbye!")
        return False
    if word == "help":
        print(HELP_TEXT)
    elif word == "clear":
        clear_screen()
        show_welcome()
    else:
        try:
            print(dispatch_command(parse_command(line)))
        except ParseError as e:
            print(f"Error: {e}")
    return True


def repl_loop() -> None:
    """Read commands until 'exit' or end of input; Ctrl+C only drops the current line."""
    session: PromptSession = PromptSession(
        completer=TeleStoreCompleter(), history=InMemoryHistory(), style=STYLE
    )

    clear_screen()
    show_welcome()

    while True:
        try:
            line = session.prompt([("class:prompt", PROMPT_TEXT)])
            if not _run_line(line):
                break
        except KeyboardInterrupt:
            continue
        except EOFError:
            print("\nGoodbye!")
            break
