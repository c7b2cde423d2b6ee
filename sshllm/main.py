"""Command line entry point."""

import argparse
import asyncio
import signal
from typing import Any, Optional, Sequence

import structlog
from pydantic import ValidationError

from .config.settings import Settings
from .observability.logging import setup_logging
from .server.ssh import ChatServer

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sshllm",
        description="SSH server for LLM chat with an OpenAI-compatible API. "
        "Every option can also be set with an SSHLLM_* environment variable.",
    )
    parser.add_argument("-p", "--port", type=int, help="Port to listen on")
    parser.add_argument("--host", help="Address to listen on")
    parser.add_argument("-e", "--endpoint", dest="api_url", help="LLM API base URL")
    parser.add_argument("-m", "--model", help="Model name")
    parser.add_argument("-l", "--logs", dest="logs_dir", help="Logs directory")
    parser.add_argument("-k", "--host-key", dest="host_key_path", help="SSH host key path")
    parser.add_argument("-s", "--system-prompt", dest="system_prompt", help="Custom system prompt")
    parser.add_argument(
        "--timeout",
        dest="backend_timeout",
        type=float,
        help="Seconds to wait for a backend reply (default: no limit)",
    )
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--log-format", choices=["console", "json"])
    return parser


def load_settings(argv: Optional[Sequence[str]] = None) -> Settings:
    """Environment settings with command line overrides applied."""
    args = build_parser().parse_args(argv)
    overrides: dict[str, Any] = {k: v for k, v in vars(args).items() if v is not None}
    return Settings(**overrides)


async def serve(settings: Settings) -> None:
    server = ChatServer(settings)
    await server.start()

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows event loops lack signal handlers
            pass

    try:
        await stop.wait()
    finally:
        await server.stop()


def main(argv: Optional[Sequence[str]] = None) -> int:
    try:
        settings = load_settings(argv)
    except ValidationError as exc:
        print(f"Invalid configuration:\n{exc}")
        return 2

    setup_logging(settings.log_level, settings.log_format)
    logger.info("Starting sshllm", port=settings.port)

    try:
        asyncio.run(serve(settings))
    except KeyboardInterrupt:
        pass
    except OSError as exc:
        logger.error("Server failed to start", error=str(exc))
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
