"""Line editor -- turns raw terminal bytes into echo output and lines.

A pure per-byte transducer with no I/O: the caller writes ``Echo`` data to
the terminal and acts on the other events. Only printable ASCII is kept.
"""

from .events import EmptyLine, Echo, Interrupt, LineCompleted, TerminalEvent

CR = 0x0D
LF = 0x0A
BS = 0x08
DEL = 0x7F
ETX = 0x03  # Ctrl-C

NEWLINE_ECHO = b"\r\n"
ERASE_ECHO = b"\x08 \x08"
INTERRUPT_ECHO = b"\r\n^C\r\n"


class LineEditor:
    """Per-connection input buffer with backspace and Ctrl-C handling."""

    def __init__(self) -> None:
        self._buffer: list[str] = []
        self._after_cr = False

    @property
    def buffer(self) -> str:
        return "".join(self._buffer)

    def feed(self, chunk: bytes) -> list[TerminalEvent]:
        """Process a chunk of input and return events in byte order.

        Processing stops at an interrupt; any bytes after it are discarded.
        """
        events: list[TerminalEvent] = []
        for byte in chunk:
            after_cr, self._after_cr = self._after_cr, False

            if byte == CR or byte == LF:
                # CR LF (possibly split across chunks) is one terminator
                if byte == LF and after_cr:
                    continue
                self._after_cr = byte == CR
                events.append(Echo(NEWLINE_ECHO))
                line = "".join(self._buffer).strip()
                self._buffer.clear()
                events.append(LineCompleted(line) if line else EmptyLine())
            elif byte == BS or byte == DEL:
                if self._buffer:
                    self._buffer.pop()
                    events.append(Echo(ERASE_ECHO))
            elif byte == ETX:
                self._buffer.clear()
                events.append(Echo(INTERRUPT_ECHO))
                events.append(Interrupt())
                break
            elif 0x20 <= byte <= 0x7E:
                self._buffer.append(chr(byte))
                events.append(Echo(bytes((byte,))))
            # everything else (escape sequences, UTF-8, NUL) is ignored

        return events
