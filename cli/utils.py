"""Terminal helpers shared by the CLI commands: sizes and progress lines."""

import sys

from cli.constants import GREEN, RESET

SIZE_UNITS = ('KiB', 'MiB', 'GiB', 'TiB', 'PiB')
READ_BLOCK = 64 * 1024
PROGRESS_WIDTH = 100


def format_file_size(size_bytes: int) -> str:
    """
    Render a byte count with a binary unit, e.g. "512 B" or "1.50 MiB".

    Parts are sized in GiB, so anything up to PiB has to read sensibly.
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    value = float(size_bytes)
    for unit in SIZE_UNITS:
        value /= 1024.0
        if value < 1024.0 or unit == SIZE_UNITS[-1]:
            return f"{value:.2f} {unit}"


def _emit(text: str) -> None:
    sys.stdout.write(text)
    sys.stdout.flush()


def show_progress(verb: str, name: str, done: int, total: int) -> None:
    """Rewrite the current terminal line with transfer progress."""
    line = f"\r{verb} {name}: {format_file_size(done)}"
    if total > 0:
        line += f" / {format_file_size(total)} ({GREEN}{done * 100 / total:.1f}%{RESET})"
    _emit(line)


def end_progress() -> None:
    _emit('\n')


def clear_progress() -> None:
    _emit('\r' + ' ' * PROGRESS_WIDTH + '\r')


class ProgressFileWrapper:
    """Read-only file handle for httpx uploads that reports bytes sent as it is consumed."""

    def __init__(self, file_path: str, file_size: int, filename: str):
        self.file_size = file_size
        self.filename = filename
        self._file = open(file_path, 'rb')
        self._sent = 0
        self._done = False

    def read(self, size: int = -1) -> bytes:
        block = self._file.read(size if size > 0 else READ_BLOCK)
        if block:
            self._sent += len(block)
            show_progress("Uploading", self.filename, self._sent, self.file_size)
        elif not self._done:
            self._done = True
            end_progress()
        return block

    def close(self) -> None:
        self._file.close()

    def __enter__(self) -> 'ProgressFileWrapper':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
