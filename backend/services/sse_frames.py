"""
SSE frame tokenizer - splits a text/event-stream into frames
Shared by the relay (upstream side) and the chat client (relay side)
"""

from __future__ import annotations

import codecs

from models.chat import SSEFrame

FRAME_SEPARATOR = "\n\n"


def parse_frame(raw: str) -> SSEFrame | None:
    """Extract the `event:` and `data:` lines of one frame.

    Multiple `data:` lines are joined with a newline. Returns None when the
    frame carries no data (keep-alives and `: ping` comments).
    """
    event = None
    data_lines = []

    for raw_line in raw.split("\n"):
        line = raw_line.strip()
        if not line:
            continue
        if line.startswith("event:"):
            event = line[6:].strip()
        elif line.startswith("data:"):
            data_lines.append(line[5:].strip())

    data = "\n".join(data_lines).strip()
    if not data:
        return None
    return SSEFrame(event=event or None, data=data)


class FrameBuffer:
    """Incremental frame splitter tolerant of arbitrary chunk boundaries"""

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._parts: list[str] = []  # Pending text of the unfinished frame
        self._tail = ""  # Last pending character, for separators split across chunks
        self._carry_cr = False

    def _normalize(self, chunk: str) -> str:
        """Turn CRLF into LF, holding back a trailing CR until the next chunk"""
        if self._carry_cr:
            chunk = "\r" + chunk
        self._carry_cr = chunk.endswith("\r")
        if self._carry_cr:
            chunk = chunk[:-1]
        return chunk.replace("\r\n", "\n")

    def feed(self, chunk: bytes | str) -> list[SSEFrame]:
        """Add a network chunk and return every frame it completed"""
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        chunk = self._normalize(chunk)
        if not chunk:
            return []

        if FRAME_SEPARATOR not in self._tail + chunk:
            self._parts.append(chunk)
            self._tail = chunk[-1]
            return []

        *complete, rest = ("".join(self._parts) + chunk).split(FRAME_SEPARATOR)
        self._parts = [rest] if rest else []
        self._tail = rest[-1:]

        frames = []
        for raw in complete:
            frame = parse_frame(raw)
            if frame is not None:
                frames.append(frame)
        return frames

    def flush(self) -> list[SSEFrame]:
        """Return the trailing unterminated frame at end of stream"""
        raw = "".join(self._parts) + ("\r" if self._carry_cr else "") + self._decoder.decode(b"", final=True)
        self._parts, self._tail, self._carry_cr = [], "", False
        frame = parse_frame(raw)
        return [frame] if frame is not None else []
