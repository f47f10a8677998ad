# ========================
# tests/test_ingestion.py
# ========================

import asyncio
import io
import os
import sys
import tempfile
import unittest

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.pipeline.errors import StreamReadError
from src.pipeline.ingestion import CSVRowSource, FlowControl, open_upload


async def collect(source):
    return [row async for row in source.rows()]


class TestFlowControl(unittest.IsolatedAsyncioTestCase):
    """Test the flowing/paused switch."""

    async def test_starts_flowing(self):
        flow = FlowControl()
        self.assertFalse(flow.is_paused())
        await asyncio.wait_for(flow.wait_until_flowing(), timeout=1)

    async def test_pause_and_resume(self):
        """A paused flow blocks waiters until resumed."""
        flow = FlowControl()
        flow.pause()
        flow.pause()
        self.assertTrue(flow.is_paused())
        self.assertEqual(flow.pause_count, 1)

        waiter = asyncio.create_task(flow.wait_until_flowing())
        await asyncio.sleep(0.01)
        self.assertFalse(waiter.done())

        flow.resume()
        await asyncio.wait_for(waiter, timeout=1)
        self.assertFalse(flow.is_paused())


class TestCSVRowSource(unittest.IsolatedAsyncioTestCase):
    """Test the streaming CSV row source."""

    async def test_reads_rows_in_header_order(self):
        """Rows come out as dicts keyed by the header, in file order."""
        data = b"name,email,city\nAda,ada@example.com,London\nAlan,alan@example.com,\n"
        source = CSVRowSource(io.BytesIO(data))

        rows = await collect(source)

        self.assertEqual(source.fieldnames, ['name', 'email', 'city'])
        self.assertEqual(len(rows), 2)
        self.assertEqual(list(rows[0].keys()), ['name', 'email', 'city'])
        self.assertEqual(rows[0]['city'], 'London')
        self.assertEqual(rows[1]['city'], '')
        self.assertEqual(source.rows_read, 2)

    async def test_short_row_is_padded_with_empty_strings(self):
        source = CSVRowSource(io.BytesIO(b"name,email,city\nAda,ada@example.com\n"))
        rows = await collect(source)
        self.assertEqual(rows, [{'name': 'Ada', 'email': 'ada@example.com', 'city': ''}])

    async def test_byte_order_mark_is_ignored(self):
        source = CSVRowSource(io.BytesIO(b"\xef\xbb\xbfname,email\nAda,ada@example.com\n"))
        rows = await collect(source)
        self.assertEqual(source.fieldnames, ['name', 'email'])
        self.assertEqual(rows[0]['name'], 'Ada')

    async def test_header_only_input(self):
        """A header without data rows yields nothing but keeps the columns."""
        source = CSVRowSource(io.BytesIO(b"name,email\n"))
        rows = await collect(source)
        self.assertEqual(rows, [])
        self.assertEqual(source.fieldnames, ['name', 'email'])

    async def test_empty_input(self):
        source = CSVRowSource(io.BytesIO(b""))
        rows = await collect(source)
        self.assertEqual(rows, [])
        self.assertIsNone(source.fieldnames)

    async def test_row_with_extra_cells_is_a_stream_error(self):
        source = CSVRowSource(io.BytesIO(b"name,email\nAda,ada@example.com,extra\n"))
        with self.assertRaises(StreamReadError):
            await collect(source)

    async def test_broken_quoting_is_a_stream_error(self):
        source = CSVRowSource(io.BytesIO(b'name,email\n"Ada"x,ada@example.com\n'))
        with self.assertRaises(StreamReadError):
            await collect(source)

    async def test_undecodable_bytes_are_a_stream_error(self):
        source = CSVRowSource(io.BytesIO(b"name,email\n\xff\xfe\xfa,ada@example.com\n"))
        with self.assertRaises(StreamReadError):
            await collect(source)

    async def test_repeated_header_name_is_a_stream_error(self):
        """A repeated column would silently lose cells, so the header is refused."""
        source = CSVRowSource(io.BytesIO(b"name,email,email\nAda,ada@example.com,\n"))
        with self.assertRaises(StreamReadError) as ctx:
            await collect(source)
        self.assertIn("email", ctx.exception.message)

    async def test_rows_span_several_reads(self):
        data = b"name,email\n" + b"".join(f"P{i},p{i}@example.com\n".encode() for i in range(5))
        source = CSVRowSource(io.BytesIO(data), read_ahead=2)

        rows = await collect(source)

        self.assertEqual([row['name'] for row in rows], ['P0', 'P1', 'P2', 'P3', 'P4'])
        self.assertEqual(source.rows_read, 5)

    async def test_rows_before_a_broken_row_are_produced(self):
        source = CSVRowSource(io.BytesIO(b"name,email\nAda,ada@example.com\nBad,bad@example.com,x\n"))
        produced = []
        with self.assertRaises(StreamReadError):
            async for row in source.rows():
                produced.append(row['name'])
        self.assertEqual(produced, ['Ada'])

    async def test_paused_source_produces_nothing(self):
        """While paused, the next row is held back until resume()."""
        source = CSVRowSource(io.BytesIO(b"name,email\nAda,ada@example.com\nAlan,alan@example.com\n"))
        rows = source.rows()

        first = await rows.__anext__()
        self.assertEqual(first['name'], 'Ada')

        source.pause()
        self.assertTrue(source.is_paused())
        pending = asyncio.create_task(rows.__anext__())
        await asyncio.sleep(0.01)
        self.assertFalse(pending.done())

        source.resume()
        second = await asyncio.wait_for(pending, timeout=1)
        self.assertEqual(second['name'], 'Alan')
        await rows.aclose()

    async def test_underlying_stream_left_open(self):
        stream = io.BytesIO(b"name,email\nAda,ada@example.com\n")
        await collect(CSVRowSource(stream))
        self.assertFalse(stream.closed)

    def test_open_upload_missing_file(self):
        with self.assertRaises(StreamReadError):
            open_upload(os.path.join(tempfile.gettempdir(), "does-not-exist-upload.csv"))


if __name__ == '__main__':
    unittest.main()
