"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = ["upload", "download", "status", "transfers", "cancel", "clear", "exit", "help"]

STYLE = Style.from_dict(
    {
        "prompt": "#2AABEE bold",
        "command": "#0088ff bold",
    }
)

BLUE = "\033[38;2;42;171;238m"
GREEN = "\033[32m"
RESET = "\033[0m"

LOGO = f"""{BLUE}
 ████████╗███████╗██╗     ███████╗███████╗████████╗ ██████╗ ██████╗ ███████╗
 ╚══██╔══╝██╔════╝██║     ██╔════╝██╔════╝╚══██╔══╝██╔═══██╗██╔══██╗██╔════╝
    ██║   █████╗  ██║     █████╗  ███████╗   ██║   ██║   ██║██████╔╝█████╗
    ██║   ██╔══╝  ██║     ██╔══╝  ╚════██║   ██║   ██║   ██║██╔══██╗██╔══╝
    ██║   ███████╗███████╗███████╗███████║   ██║   ╚██████╔╝██║  ██║███████╗
    ╚═╝   ╚══════╝╚══════╝╚══════╝╚══════╝   ╚═╝    ╚═════╝ ╚═╝  ╚═╝╚══════╝
{RESET}"""

WELCOME_TITLE = "TeleStore CLI - Large files over a messaging relay"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "telestore> "

HELP_TEXT = """Available commands:
  upload <path>                       Upload a local file (split into parts when large)
  download <remote_ref> [output]      Download a file by the reference printed at upload
  status                              Show whether the relay session is ready
  transfers                           List queued and running transfers
  cancel <transfer_id>                Cancel a transfer at its next part boundary
  clear                               Clear screen and redisplay welcome message
  help                                Show this help
  exit                                Exit REPL

Examples:
  upload videos/holiday.mkv
  download -100123456:42
  download -100123456:42 restored/holiday.mkv
  cancel 3f2a9c0d6e1b4a7f8c5d2e9b0a1f3c4d"""
