"""Tests for the httpx-backed analysis client."""

import json

import httpx
import pytest

from git_archaeologist.analysis import (
    LEGACY_API_PATH,
    AnalysisClient,
    AnalysisRequest,
    ClientConfigurationError,
    TransportError,
)


def _client(handler, **kwargs):
    return AnalysisClient("http://analysis.test/", transport=httpx.MockTransport(handler), **kwargs)


def test_posts_request_payload_to_analyze_endpoint():
    captured = {}

    def handler(request):
        captured["method"] = request.method
        captured["url"] = str(request.url)
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"clusters": {}})

    with _client(handler) as client:
        reply = client.send(AnalysisRequest("https://github.com/o/r", True, 8))

    assert captured == {
        "method": "POST",
        "url": "http://analysis.test/api/analyze/",
        "body": {"repo_url": "https://github.com/o/r", "use_bertopic": True, "min_cluster_size": 8},
    }
    assert reply.ok
    assert json.loads(reply.text) == {"clusters": {}}


def test_legacy_path_and_omitted_cluster_size():
    captured = {}

    def handler(request):
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={})

    with _client(handler, api_path=LEGACY_API_PATH) as client:
        client.send(AnalysisRequest("https://github.com/o/r", False, None))

    assert captured["path"] == "/analyze/"
    assert captured["body"] == {"repo_url": "https://github.com/o/r", "use_bertopic": False}


def test_error_status_is_returned_not_raised():
    def handler(request):
        return httpx.Response(404, json={"detail": "repo not found"})

    with _client(handler) as client:
        reply = client.send(AnalysisRequest("https://github.com/o/r"))

    assert reply.status_code == 404
    assert reply.ok is False
    assert "repo not found" in reply.text


def test_connection_failure_raises_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with _client(handler) as client:
        with pytest.raises(TransportError, match="Could not reach analysis service"):
            client.send(AnalysisRequest("https://github.com/o/r"))


def test_timeout_raises_transport_error():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with _client(handler, timeout=5) as client:
        with pytest.raises(TransportError, match="timed out after 5s"):
            client.send(AnalysisRequest("https://github.com/o/r"))


def test_endpoint_joins_base_and_path():
    client = AnalysisClient("http://localhost:8000/", api_path="analyze/")
    try:
        assert client.endpoint == "http://localhost:8000/analyze/"
    finally:
        client.close()


def test_blank_base_url_rejected():
    with pytest.raises(ClientConfigurationError):
        AnalysisClient("  ")


def test_malformed_base_url_rejected_as_configuration_error():
    with pytest.raises(ClientConfigurationError, match="Invalid analysis service URL"):
        AnalysisClient("http://[::1")
