# ========================
# src/pipeline/ingestion.py
# ========================

"""
Data Ingestion Module

Streams rows out of an uploaded CSV file one at a time, with a pause/resume
switch so downstream batch processing can throttle how fast rows are read.
"""

import asyncio
import csv
import io
import itertools
import logging
from typing import AsyncIterator, BinaryIO, List, Optional, Tuple

from .errors import StreamReadError
from .records import RawRow

logger = logging.getLogger(__name__)


class FlowControl:
    """
    Two-state (flowing/paused) switch shared by a row source and whoever
    applies backpressure to it.
    """

    def __init__(self):
        self._flowing = asyncio.Event()
        self._flowing.set()
        self.pause_count = 0

    def pause(self) -> None:
        if self._flowing.is_set():
            self.pause_count += 1
            logger.debug("Row source paused")
        self._flowing.clear()

    def resume(self) -> None:
        if not self._flowing.is_set():
            logger.debug("Row source resumed")
        self._flowing.set()

    def is_paused(self) -> bool:
        return not self._flowing.is_set()

    async def wait_until_flowing(self) -> None:
        await self._flowing.wait()


class CSVRowSource:
    """
    A lazy CSV row reader over a binary stream.
    Rows are produced one at a time, so memory stays flat no matter how large
    the upload is. The stream cannot be rewound: re-reading means reopening it.
    """

    def __init__(self, stream: BinaryIO, flow: Optional[FlowControl] = None,
                 encoding: str = 'utf-8-sig', read_ahead: int = 256):
        """
        Initialize the row source.

        Args:
            stream: Readable binary stream positioned at the header row
            flow (FlowControl): Pause/resume switch, a new one if omitted
            encoding (str): Text encoding of the stream
            read_ahead (int): Rows parsed per worker-thread read
        """
        self.stream = stream
        self.flow = flow or FlowControl()
        self.encoding = encoding
        self.read_ahead = max(1, read_ahead)
        self.fieldnames: Optional[List[str]] = None
        self.rows_read = 0

    def pause(self) -> None:
        self.flow.pause()

    def resume(self) -> None:
        self.flow.resume()

    def is_paused(self) -> bool:
        return self.flow.is_paused()

    async def rows(self) -> AsyncIterator[RawRow]:
        """
        Yield each data row as a column -> value dict in header order.

        File reads and parsing run in a worker thread, `read_ahead` rows at a
        time, so a slow disk never stalls the event loop.

        Raises:
            StreamReadError: On I/O failure, undecodable bytes, broken quoting,
                a repeated header name or a row with more cells than the header
        """
        text = io.TextIOWrapper(self.stream, encoding=self.encoding, newline='')
        try:
            reader = csv.DictReader(text, strict=True)
            self.fieldnames = await asyncio.to_thread(lambda: reader.fieldnames)
            self._check_header()
            logger.info(f"CSV header: {self.fieldnames}")

            while True:
                block, error = await asyncio.to_thread(self._read_block, reader)
                for row in block:
                    await self.flow.wait_until_flowing()
                    self.rows_read += 1
                    yield row
                if error is not None:
                    raise error
                if len(block) < self.read_ahead:
                    break

            logger.info(f"Total rows read: {self.rows_read}")

        except csv.Error as e:
            raise StreamReadError(f"Malformed CSV input: {e}") from e
        except UnicodeDecodeError as e:
            raise StreamReadError(f"Input is not valid {self.encoding} text: {e}") from e
        except OSError as e:
            raise StreamReadError(f"Error reading input stream: {e}") from e
        finally:
            # Leave closing the underlying stream to its owner
            text.detach()

    def _check_header(self) -> None:
        if not self.fieldnames:
            return
        repeated = sorted({name for name in self.fieldnames if self.fieldnames.count(name) > 1})
        if repeated:
            raise StreamReadError(f"Duplicate headers found: {repeated}")

    def _read_block(self, reader: csv.DictReader) -> Tuple[List[RawRow], Optional[Exception]]:
        """
        Parse up to `read_ahead` rows. Runs in a worker thread.

        A read error is returned next to the rows parsed before it, so those
        rows are still produced before the error is raised.
        """
        block: List[RawRow] = []
        try:
            for row in itertools.islice(reader, self.read_ahead):
                if None in row:
                    raise StreamReadError(
                        f"Line {reader.line_num}: column header mismatch, expected "
                        f"{len(self.fieldnames)} columns got {len(self.fieldnames) + len(row[None])}"
                    )
                block.append({column: (value if value is not None else '') for column, value in row.items()})
        except (StreamReadError, csv.Error, UnicodeDecodeError, OSError) as e:
            return block, e
        return block, None


def open_upload(path) -> BinaryIO:
    """Open a saved upload for reading as a row source stream."""
    try:
        return open(path, 'rb')
    except OSError as e:
        raise StreamReadError(f"Cannot open upload '{path}': {e}") from e
