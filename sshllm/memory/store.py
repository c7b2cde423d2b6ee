"""Session memory store -- flat per-identity files under the logs directory.

Layout::

    <logs_dir>/<identity>/summary.txt
    <logs_dir>/<identity>/chat_YYYY-MM-DD.log

The summary file holds ``key: value`` lines. Transcript lines look like
``[HH:MM:SS] role: content``. Storage failures never propagate: reads fall
back to defaults and writes are dropped with a warning.

With newline escaping on, backslash, CR and LF are stored as backslash
escapes and decoded on reload. Files carry no format marker, so a line
written unescaped that happens to contain such a sequence (a Windows path,
say) is decoded too; turn escaping off to read those files verbatim.

Two live connections sharing one identity race on summary.txt; the last
writer wins.
"""

import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

import structlog

from .models import TranscriptEntry, UserSummary

logger = structlog.get_logger()

SUMMARY_FILENAME = "summary.txt"
DEFAULT_RELOAD_LIMIT = 20

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.:-]")


def _escape(content: str) -> str:
    return content.replace("\\", "\\\\").replace("\r", "\\r").replace("\n", "\\n")


def _unescape(content: str) -> str:
    out: list[str] = []
    chars = iter(content)
    for ch in chars:
        if ch != "\\":
            out.append(ch)
            continue
        nxt = next(chars, "")
        if nxt == "n":
            out.append("\n")
        elif nxt == "r":
            out.append("\r")
        elif nxt == "\\":
            out.append("\\")
        else:
            out.append(ch + nxt)
    return "".join(out)


def parse_transcript_line(line: str) -> Optional[TranscriptEntry]:
    """Parse ``[HH:MM:SS] role: content``; returns None for foreign lines."""
    if not line.startswith("["):
        return None
    end = line.find("]")
    if end < 0:
        return None
    rest = line[end + 1 :].strip()
    role, sep, content = rest.partition(":")
    if not sep:
        return None
    return TranscriptEntry(role=role.strip(), content=content.strip())


class SessionMemoryStore:
    """Reads and writes summary and transcript files for identities."""

    def __init__(
        self,
        logs_dir: Path,
        reload_limit: int = DEFAULT_RELOAD_LIMIT,
        escape_newlines: bool = True,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._logs_dir = Path(logs_dir)
        self._reload_limit = reload_limit
        self._escape_newlines = escape_newlines
        self._clock = clock

    # --- paths ---

    def identity_dir(self, identity: str) -> Path:
        """Directory holding all files for one identity."""
        safe = _UNSAFE_CHARS.sub("_", identity) or "_"
        if safe in (".", ".."):
            safe = "_"
        return self._logs_dir / safe

    def summary_path(self, identity: str) -> Path:
        return self.identity_dir(identity) / SUMMARY_FILENAME

    def transcript_path(self, identity: str) -> Path:
        """Transcript file for the current local calendar day."""
        date = self._clock().strftime("%Y-%m-%d")
        return self.identity_dir(identity) / f"chat_{date}.log"

    # --- summary ---

    def load(self, identity: str) -> UserSummary:
        """Load the summary for an identity, defaulting anything missing."""
        summary = UserSummary()
        path = self.summary_path(identity)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return summary
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning(
                "Failed to read user summary", identity=identity, error=str(exc)
            )
            return summary

        for line in text.splitlines():
            key, sep, value = line.partition(":")
            if not sep:
                continue
            key = key.strip().lower()
            value = value.strip()
            if key == "name":
                summary.name = value or None
            elif key == "total_sessions":
                try:
                    summary.total_sessions = max(int(value), 0)
                except ValueError:
                    summary.total_sessions = 0
            # last_seen is informational and not read back

        return summary

    def save(self, identity: str, summary: UserSummary) -> bool:
        """Rewrite the summary file with the known keys only.

        Writes to a sibling temp file and renames it into place. Returns
        False if the write failed.
        """
        summary.last_seen = datetime.now(timezone.utc)
        lines = []
        if summary.name:
            lines.append(f"name: {summary.name}")
        lines.append(f"total_sessions: {summary.total_sessions}")
        lines.append(f"last_seen: {summary.last_seen.isoformat()}")

        path = self.summary_path(identity)
        tmp = path.with_suffix(".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text("\n".join(lines) + "\n", encoding="utf-8")
            tmp.replace(path)
        except OSError as exc:
            logger.warning(
                "Failed to write user summary", identity=identity, error=str(exc)
            )
            return False
        return True

    def record_session_start(self, identity: str) -> UserSummary:
        """Increment the session counter for an identity and persist it."""
        summary = self.load(identity)
        summary.total_sessions += 1
        self.save(identity, summary)
        return summary

    def set_name(self, identity: str, name: str) -> UserSummary:
        """Persist a new display name, keeping the stored session count."""
        summary = self.load(identity)
        summary.name = name
        self.save(identity, summary)
        return summary

    # --- transcript ---

    def append_transcript(self, identity: str, role: str, content: str) -> bool:
        """Append one turn to today's transcript, creating the file if absent."""
        now = self._clock()
        if self._escape_newlines:
            content = _escape(content)
        line = f"[{now.strftime('%H:%M:%S')}] {role}: {content}\n"

        path = self.transcript_path(identity)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as f:
                f.write(line)
        except OSError as exc:
            logger.warning(
                "Failed to append transcript", identity=identity, error=str(exc)
            )
            return False
        return True

    def load_recent_transcript(self, identity: str) -> list[TranscriptEntry]:
        """Return the most recent turns from today's transcript, oldest first."""
        path = self.transcript_path(identity)
        try:
            with path.open("r", encoding="utf-8", errors="replace") as f:
                raw_lines = f.read().splitlines()
        except FileNotFoundError:
            return []
        except OSError as exc:
            logger.warning(
                "Failed to read transcript", identity=identity, error=str(exc)
            )
            return []

        entries: list[TranscriptEntry] = []
        for raw in raw_lines:
            entry = parse_transcript_line(raw)
            if entry is None:
                continue
            if self._escape_newlines:
                entry = TranscriptEntry(entry.role, _unescape(entry.content))
            entries.append(entry)

        if self._reload_limit <= 0:
            return []
        return entries[-self._reload_limit :]
