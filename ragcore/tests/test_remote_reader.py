"""
Tests for the remote reader client and its cache.
"""

import unittest

import httpx

from ragcore.errors import RetrievalError
from ragcore.services.remote_reader import RemoteReader


PAGE = {
    "code": 200,
    "status": 20000,
    "data": {
        "title": "Example",
        "url": "https://example.com/a",
        "content": "# Example\n\nHello from the page.",
        "usage": {"tokens": 12},
    },
}


class TestRemoteReader(unittest.IsolatedAsyncioTestCase):
    """Tests for RemoteReader.crawl."""

    def make_reader(self, handler, **kwargs):
        self.requests = []

        def recording_handler(request):
            self.requests.append(request)
            return handler(request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(recording_handler))
        kwargs.setdefault("max_retries", 1)
        return RemoteReader(reader_url="https://reader.test", client=client, **kwargs)

    async def test_crawl_success(self):
        reader = self.make_reader(lambda request: httpx.Response(200, json=PAGE), token="secret")
        async with reader:
            result = await reader.crawl("https://example.com/a")

        self.assertEqual(result.data.title, "Example")
        self.assertEqual(result.data.content, "# Example\n\nHello from the page.")
        request = self.requests[0]
        self.assertEqual(str(request.url), "https://reader.test/https://example.com/a")
        self.assertEqual(request.headers["Accept"], "application/json")
        self.assertEqual(request.headers["Authorization"], "Bearer secret")

    async def test_cache_hit_skips_network(self):
        reader = self.make_reader(lambda request: httpx.Response(200, json=PAGE))
        async with reader:
            first = await reader.crawl("https://example.com/a")
            second = await reader.crawl("https://example.com/a")

        self.assertEqual(first, second)
        self.assertEqual(len(self.requests), 1)

    async def test_non_200_raises_with_status_and_body(self):
        reader = self.make_reader(lambda request: httpx.Response(404, text="not here"))
        async with reader:
            with self.assertRaises(RetrievalError) as ctx:
                await reader.crawl("https://example.com/missing")

        self.assertEqual(ctx.exception.status_code, 404)
        self.assertEqual(ctx.exception.body, "not here")
        self.assertEqual(ctx.exception.url, "https://example.com/missing")

    async def test_failures_are_not_cached(self):
        responses = [httpx.Response(404, text="not yet"), httpx.Response(200, json=PAGE)]
        reader = self.make_reader(lambda request: responses.pop(0))
        async with reader:
            with self.assertRaises(RetrievalError):
                await reader.crawl("https://example.com/a")
            self.assertNotIn("https://example.com/a", reader.cache)

            result = await reader.crawl("https://example.com/a")

        self.assertEqual(result.data.title, "Example")
        self.assertEqual(len(self.requests), 2)

    async def test_client_errors_are_not_retried(self):
        reader = self.make_reader(lambda request: httpx.Response(403, text="forbidden"), max_retries=3)
        async with reader:
            with self.assertRaises(RetrievalError):
                await reader.crawl("https://example.com/a")

        self.assertEqual(len(self.requests), 1)

    async def test_server_errors_are_retried(self):
        responses = [httpx.Response(503, text="busy"), httpx.Response(200, json=PAGE)]
        reader = self.make_reader(lambda request: responses.pop(0), max_retries=2)
        async with reader:
            result = await reader.crawl("https://example.com/a")

        self.assertEqual(result.data.url, "https://example.com/a")
        self.assertEqual(len(self.requests), 2)

    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        reader = self.make_reader(handler)
        async with reader:
            with self.assertRaises(RetrievalError) as ctx:
                await reader.crawl("https://example.com/a")

        self.assertIsNone(ctx.exception.status_code)

    async def test_malformed_payload(self):
        payload = {"code": 200, "data": {"title": "No content field"}}
        reader = self.make_reader(lambda request: httpx.Response(200, json=payload))
        async with reader:
            with self.assertRaises(RetrievalError):
                await reader.crawl("https://example.com/a")
            self.assertEqual(len(reader.cache), 0)

    async def test_invalid_json(self):
        reader = self.make_reader(lambda request: httpx.Response(200, text="<html>oops</html>"))
        async with reader:
            with self.assertRaises(RetrievalError):
                await reader.crawl("https://example.com/a")

    async def test_empty_payload(self):
        reader = self.make_reader(lambda request: httpx.Response(200, json={}))
        async with reader:
            with self.assertRaises(RetrievalError):
                await reader.crawl("https://example.com/a")

    async def test_cache_eviction(self):
        reader = self.make_reader(lambda request: httpx.Response(200, json=PAGE), cache_size=1)
        async with reader:
            await reader.crawl("https://example.com/a")
            await reader.crawl("https://example.com/b")
            await reader.crawl("https://example.com/a")

        self.assertEqual(len(self.requests), 3)
        self.assertEqual(len(reader.cache), 1)


if __name__ == "__main__":
    unittest.main()
