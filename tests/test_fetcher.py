import httpx
import pytest

from conftest import TEST_USER_AGENT
from imagegem.services.fetcher import BoundedStream, SizeLimitExceeded, UpstreamError


class TestBoundedStream:
    def test_reads_everything_under_the_limit(self):
        stream = BoundedStream(iter([b"abc", b"def"]), limit=6)
        assert stream.read() == b"abcdef"
        assert stream.bytes_read == 6

    def test_partial_read_then_failure_is_sticky(self):
        stream = BoundedStream(iter([b"abc", b"def"]), limit=4)
        assert stream.read(3) == b"abc"
        with pytest.raises(SizeLimitExceeded):
            stream.read(3)
        with pytest.raises(SizeLimitExceeded):
            stream.read(1)

    def test_read_all_fails_once_ceiling_passed(self):
        stream = BoundedStream(iter([b"x" * 10] * 5), limit=25)
        with pytest.raises(SizeLimitExceeded) as excinfo:
            stream.read()
        assert excinfo.value.limit == 25


class TestBoundedFetcher:
    def test_sends_user_agent_and_exposes_content_type(self, origin, fetcher_factory):
        origin.serve(b"payload", "image/png")
        with fetcher_factory().fetch("https://example.com/a.png") as fetched:
            assert fetched.content_type == "image/png"
            assert fetched.stream.read() == b"payload"
        assert origin.requests[0].headers["User-Agent"] == TEST_USER_AGENT
        assert origin.requests[0].method == "GET"

    def test_non_2xx_status_is_propagated(self, origin, fetcher_factory):
        origin.serve(b"nope", "text/plain", status=404)
        with pytest.raises(UpstreamError) as excinfo:
            with fetcher_factory().fetch("https://example.com/missing.png"):
                pass
        assert excinfo.value.status == 404
        assert "404" in str(excinfo.value)

    def test_network_failure_has_no_status(self, origin, fetcher_factory):
        origin.error = httpx.ConnectError("connection refused")
        with pytest.raises(UpstreamError) as excinfo:
            with fetcher_factory().fetch("https://example.com/a.png"):
                pass
        assert excinfo.value.status is None

    def test_declared_length_over_limit_fails_early(self, origin, fetcher_factory):
        origin.serve(b"x" * 100, "image/png")
        with pytest.raises(SizeLimitExceeded):
            with fetcher_factory(max_bytes=50).fetch("https://example.com/a.png"):
                pytest.fail("body should not be exposed")

    def test_chunked_body_over_limit_fails_mid_stream(self, origin, fetcher_factory):
        origin.serve(b"x" * 5000, "image/png")
        origin.chunked = True
        with pytest.raises(SizeLimitExceeded):
            with fetcher_factory(max_bytes=2048).fetch("https://example.com/a.png") as fetched:
                fetched.stream.read()
