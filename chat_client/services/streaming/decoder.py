"""NDJSON stream decoding."""

import codecs
import json
import logging
from typing import Any, AsyncGenerator, AsyncIterable, Dict, List

from chat_client.exceptions import MalformedFrameError

logger = logging.getLogger(__name__)


def parse_record(line: str) -> Dict[str, Any]:
    """Parse one NDJSON line into a record.

    Raises:
        MalformedFrameError: If the line is not a JSON object
    """
    try:
        value = json.loads(line)
    except json.JSONDecodeError as e:
        raise MalformedFrameError(f"Invalid JSON record: {e}") from e
    if not isinstance(value, dict):
        raise MalformedFrameError(f"Record is {type(value).__name__}, expected object")
    return value


class StreamDecoder:
    """Turns raw byte chunks into complete parsed records.

    Partial lines (and split multi-byte characters) are buffered across
    chunk boundaries. A malformed line is dropped and counted; it never
    aborts the stream.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.malformed_count = 0
        self.record_count = 0

    def feed(self, chunk: bytes) -> List[Dict[str, Any]]:
        """Consume a chunk and return the records completed by it."""
        self._buffer += self._decoder.decode(chunk)
        records = []
        while True:
            newline_index = self._buffer.find("\n")
            if newline_index == -1:
                break
            line = self._buffer[:newline_index]
            self._buffer = self._buffer[newline_index + 1 :]
            self._append_line(line, records)
        return records

    def flush(self) -> List[Dict[str, Any]]:
        """Signal end-of-stream and return a final unterminated record, if any."""
        self._buffer += self._decoder.decode(b"", final=True)
        tail, self._buffer = self._buffer, ""
        records: List[Dict[str, Any]] = []
        self._append_line(tail, records)
        return records

    def _append_line(self, line: str, records: List[Dict[str, Any]]) -> None:
        line = line.strip()
        if not line:
            return
        try:
            records.append(parse_record(line))
            self.record_count += 1
        except MalformedFrameError as e:
            self.malformed_count += 1
            logger.debug(f"Dropping malformed stream line: {e}")

    async def decode(
        self, chunks: AsyncIterable[bytes]
    ) -> AsyncGenerator[Dict[str, Any], None]:
        """Yield records from an async byte source until it is exhausted."""
        async for chunk in chunks:
            for record in self.feed(chunk):
                yield record
        for record in self.flush():
            yield record
