"""Incremental reassembly of server-sent events from arbitrarily split text."""

import logging
import warnings
from typing import AsyncGenerator, AsyncIterable, List, Optional

from .errors import ResidualBufferWarning

logger = logging.getLogger(__name__)


class SSEReassembler:
    """
    Line scanner over an SSE byte-stream decoded to text.

    feed() accepts fragments split at any position (mid-field, mid-JSON, or
    between the CR and LF of a CRLF) and returns the data payloads of every
    event completed so far. Lines end with LF, CR or CRLF; a blank line ends
    an event. Only 'data' fields are kept; comments and other fields are
    dropped. No JSON parsing happens here.
    """

    def __init__(self) -> None:
        self._line: List[str] = []
        self._data: List[str] = []
        # Raw text of the event currently being assembled
        self._raw: List[str] = []
        self._skip_lf = False

    def feed(self, fragment: str) -> List[str]:
        payloads: List[str] = []
        pos = 0
        size = len(fragment)
        # Next CR/LF at or after pos; -1 once none remain
        next_lf = fragment.find("\n")
        next_cr = fragment.find("\r")
        while pos < size:
            if self._skip_lf:
                self._skip_lf = False
                if fragment[pos] == "\n":
                    if self._raw:
                        self._raw.append("\n")
                    pos += 1
                    continue

            if 0 <= next_lf < pos:
                next_lf = fragment.find("\n", pos)
            if 0 <= next_cr < pos:
                next_cr = fragment.find("\r", pos)
            if next_lf == -1 or next_cr == -1:
                eol = max(next_lf, next_cr)
            else:
                eol = min(next_lf, next_cr)
            if eol == -1:
                self._line.append(fragment[pos:])
                self._raw.append(fragment[pos:])
                break

            self._line.append(fragment[pos:eol])
            self._raw.append(fragment[pos:eol + 1])
            self._skip_lf = fragment[eol] == "\r"
            pos = eol + 1

            payload = self._end_line()
            if payload is not None:
                payloads.append(payload)
        return payloads

    def _end_line(self) -> Optional[str]:
        line = "".join(self._line)
        self._line = []

        if not line:
            # Blank line: dispatch
            self._raw = []
            if not self._data:
                return None
            payload = "\n".join(self._data)
            self._data = []
            return payload

        if line.startswith(":"):
            return None
        name, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]
        if name == "data":
            self._data.append(value)
        return None

    def flush(self) -> List[str]:
        """
        End of stream. Unterminated data is handed on as raw text so the
        consumer sees the anomaly; upstream may legitimately cut off mid-event.
        """
        residual = "".join(self._raw)
        self._line = []
        self._data = []
        self._raw = []
        self._skip_lf = False
        if not residual:
            return []

        logger.error("Invalid data at end of upstream stream: %r", residual[:2000])
        warnings.warn(
            f"Unterminated SSE data at end of stream ({len(residual)} chars)",
            ResidualBufferWarning,
            stacklevel=2,
        )
        return [residual]


async def iter_sse_payloads(fragments: AsyncIterable[str]) -> AsyncGenerator[str, None]:
    """Yield complete event payloads from a stream of text fragments, in order."""
    reassembler = SSEReassembler()
    async for fragment in fragments:
        for payload in reassembler.feed(fragment):
            yield payload
    for payload in reassembler.flush():
        yield payload
