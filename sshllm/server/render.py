"""ANSI text written to the client terminal."""

CYAN_BOLD = "\x1b[1;36m"
GREEN_BOLD = "\x1b[1;32m"
RED_BOLD = "\x1b[1;31m"
RESET = "\x1b[0m"

PROMPT = f"{GREEN_BOLD}You: {RESET}"
THINKING = f"{CYAN_BOLD}AI:{RESET} (thinking...)\r"
GOODBYE = "\r\nGoodbye!\r\n"

BANNER = (
    f"\r\n{CYAN_BOLD}"
    "+-----------------------------------------------+\r\n"
    "|                                               |\r\n"
    "|              SSH LLM Chat Server              |\r\n"
    "|                                               |\r\n"
    f"+-----------------------------------------------+{RESET}\r\n"
)


def crlf(text: str) -> str:
    """Terminal line endings for text that may contain bare newlines."""
    return text.replace("\r\n", "\n").replace("\n", "\r\n")


def welcome(text: str) -> str:
    return f"{BANNER}{crlf(text)}\r\n\r\n{PROMPT}"


def reply(text: str) -> str:
    # Leading CR overwrites the thinking indicator
    return f"\r{CYAN_BOLD}AI:{RESET} {crlf(text)}\r\n\r\n{PROMPT}"


def error(message: str) -> str:
    return f"\r{RED_BOLD}Error: {crlf(message)}{RESET}\r\n\r\n{PROMPT}"
