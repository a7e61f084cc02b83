"""Custom completer for TeleStore CLI with local path completion."""

from pathlib import Path
from typing import Iterable

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from cli.constants import COMMANDS


class TeleStoreCompleter(Completer):
    """
    Custom completer that provides:
    - Command name completion for the first token
    - Local path completion for 'upload' and for the output of 'download'
    """

    def get_completions(
        self, document: Document, complete_event
    ) -> Iterable[Completion]:
        text = document.text_before_cursor
        tokens = text.split()

        is_typing_new_token = text.endswith(" ") or not tokens

        if not tokens or (len(tokens) == 1 and not is_typing_new_token):
            yield from self._complete_commands(tokens[0] if tokens else "")
            return

        command = tokens[0].lower()
        position = len(tokens) if is_typing_new_token else len(tokens) - 1
        current_word = "" if is_typing_new_token else tokens[-1]

        if (command == "upload" and position == 1) or (command == "download" and position == 2):
            yield from self._complete_paths(current_word)

    def _complete_commands(self, partial: str) -> Iterable[Completion]:
        """Complete command names matching the partial input."""
        partial_lower = partial.lower()
        for cmd in COMMANDS:
            if cmd.startswith(partial_lower):
                yield Completion(cmd, start_position=-len(partial))

    def _complete_paths(self, partial: str) -> Iterable[Completion]:
        """
        Complete entries of the directory named by the partial path.

        Directories are suggested with a trailing slash.
        """
        if partial.endswith("/"):
            directory, prefix = Path(partial), ""
        else:
            directory, prefix = Path(partial).parent, Path(partial).name

        search_dir = directory.expanduser()
        if not search_dir.is_dir():
            return

        try:
            entries = sorted(search_dir.iterdir())
        except OSError:
            return

        for item in entries:
            if item.name.startswith(".") and not prefix.startswith("."):
                continue
            if not item.name.startswith(prefix):
                continue
            candidate = str(directory / item.name) if str(directory) != "." or partial.startswith("./") else item.name
            if item.is_dir():
                candidate += "/"
            yield Completion(candidate, start_position=-len(partial))
