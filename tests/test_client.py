"""
Tests for the position client and the search logger

Run with:
    python -m pytest tests/test_client.py -v
"""

import unittest

import httpx

from tracker.client import PositionClient
from tracker.config import Config
from tracker.errors import PayloadError
from tracker.fetcher import HTTPFetcher
from tracker.models import Position
from tests.fakes import (
    SAMPLE_BODY,
    CountingHandler,
    FakeSink,
    RecordingSleep,
    json_response,
    make_client,
)


class TestGetCurrentPosition(unittest.IsolatedAsyncioTestCase):

    async def test_parses_sample_payload(self):
        sink = FakeSink()
        async with make_client(sink=sink) as client:
            position = await client.get_current_position()

        self.assertEqual(
            position,
            Position(latitude=10.5, longitude=-20.25, altitude=408, timestamp=1700000000),
        )
        self.assertEqual(sink.positions, [position])

    async def test_missing_iss_position_returns_none_without_log(self):
        """No iss_position: no exception, no retry and no sink write."""
        sink = FakeSink()
        handler = CountingHandler(json_response({"message": "success", "timestamp": 1}))
        async with make_client(handler, sink=sink) as client:
            position = await client.get_current_position()

        self.assertIsNone(position)
        self.assertEqual(handler.calls, 1)
        self.assertEqual(sink.positions, [])

    async def test_malformed_coordinates_are_not_retried(self):
        sink = FakeSink()
        body = {"iss_position": {"latitude": "north", "longitude": "1"}, "timestamp": 1}
        handler = CountingHandler(json_response(body))
        sleep = RecordingSleep()
        async with make_client(handler, sink=sink, sleep=sleep) as client:
            position = await client.get_current_position()

        self.assertIsNone(position)
        self.assertEqual(handler.calls, 1)
        self.assertEqual(sleep.calls, [])
        self.assertEqual(sink.positions, [])

    async def test_invalid_json_returns_none(self):
        handler = CountingHandler(httpx.Response(200, text="<html>down</html>"))
        async with make_client(handler) as client:
            self.assertIsNone(await client.get_current_position())
        self.assertEqual(handler.calls, 1)

    async def test_server_errors_are_retried_then_degrade_to_none(self):
        handler = CountingHandler(json_response({}, 503))
        sleep = RecordingSleep()
        async with make_client(handler, sleep=sleep) as client:
            position = await client.get_current_position()

        self.assertIsNone(position)
        self.assertEqual(handler.calls, 3)
        self.assertEqual(sleep.calls, [1.0, 2.0])

    async def test_recovers_after_transient_failure(self):
        handler = CountingHandler(
            httpx.ConnectError("connection refused"),
            json_response(SAMPLE_BODY),
        )
        sleep = RecordingSleep()
        async with make_client(handler, sleep=sleep) as client:
            position = await client.get_current_position()

        self.assertEqual(position.latitude, 10.5)
        self.assertEqual(handler.calls, 2)
        self.assertEqual(sleep.calls, [1.0])

    async def test_status_error_then_success(self):
        handler = CountingHandler(json_response({}, 500), json_response(SAMPLE_BODY))
        async with make_client(handler) as client:
            position = await client.get_current_position()

        self.assertEqual(position.timestamp, 1700000000)
        self.assertEqual(handler.calls, 2)

    async def test_sink_failure_does_not_affect_result(self):
        sink = FakeSink(fail=True)
        async with make_client(sink=sink) as client:
            position = await client.get_current_position()
            await client.wait_for_pending_logs()

        self.assertEqual(position.longitude, -20.25)
        self.assertEqual(sink.positions, [])

    async def test_invalid_url_degrades_to_none_without_retry(self):
        sleep = RecordingSleep()
        client = PositionClient(fetcher=HTTPFetcher(), url="http://exa mple.com:notaport/x",
                                sleep=sleep)
        async with client:
            self.assertIsNone(await client.get_current_position())
        self.assertEqual(sleep.calls, [])

    async def test_unexpected_fetcher_error_degrades_to_none(self):
        class BrokenFetcher:
            async def fetch(self, url, timeout=None):
                raise RuntimeError("event loop closed")

            async def aclose(self):
                pass

        sink = FakeSink()
        async with PositionClient(fetcher=BrokenFetcher(), sink=sink) as client:
            self.assertIsNone(await client.get_current_position())
        self.assertEqual(sink.positions, [])

    async def test_works_without_sink(self):
        async with make_client(sink=None) as client:
            self.assertIsNotNone(await client.get_current_position())


class TestParsePosition(unittest.TestCase):

    def setUp(self):
        self.client = PositionClient(fetcher=None)

    def test_missing_timestamp_is_payload_error(self):
        with self.assertRaises(PayloadError):
            self.client.parse_position({"iss_position": {"latitude": "1", "longitude": "2"}})

    def test_non_object_is_payload_error(self):
        with self.assertRaises(PayloadError):
            self.client.parse_position(["not", "an", "object"])

    def test_out_of_range_latitude_is_payload_error(self):
        body = {"iss_position": {"latitude": "91", "longitude": "0"}, "timestamp": 1}
        with self.assertRaises(PayloadError):
            self.client.parse_position(body)

    def test_altitude_is_constant(self):
        position = self.client.parse_position(SAMPLE_BODY)
        self.assertEqual(position.altitude, 408)


class TestLogSearch(unittest.IsolatedAsyncioTestCase):

    async def test_writes_one_entry(self):
        sink = FakeSink()
        async with make_client(sink=sink) as client:
            await client.log_search("London, England, UK", 51.5074, -0.1278, 6, "success")

        self.assertEqual(len(sink.searches), 1)
        entry = sink.searches[0]
        self.assertEqual(entry.city_name, "London, England, UK")
        self.assertEqual(entry.passes_found, 6)
        self.assertEqual(entry.status, "success")

    async def test_sink_failure_is_swallowed(self):
        async with make_client(sink=FakeSink(fail=True)) as client:
            await client.log_search("Tokyo, Japan", 35.6762, 139.6503, 0, "error")

    async def test_invalid_entry_is_swallowed(self):
        sink = FakeSink()
        async with make_client(sink=sink) as client:
            await client.log_search("Nowhere", 0.0, 0.0, 1, "pending")
        self.assertEqual(sink.searches, [])


class TestFromConfig(unittest.IsolatedAsyncioTestCase):

    async def test_reads_fetch_policy(self):
        config = Config(environ={
            'ISS_POSITION_URL': 'http://localhost:9999/iss-now.json',
            'FETCH_MAX_ATTEMPTS': '5',
            'FETCH_BASE_DELAY': '0.25',
        })
        client = PositionClient.from_config(config)
        try:
            self.assertEqual(client.url, 'http://localhost:9999/iss-now.json')
            self.assertEqual(client.max_attempts, 5)
            self.assertEqual(client.base_delay, 0.25)
            self.assertEqual(client.timeout, 10.0)
        finally:
            await client.aclose()


if __name__ == '__main__':
    unittest.main()
