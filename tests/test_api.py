"""Tests for the Zipline HTTP client and response models.

WHY: The client is the only code that talks to Zipline. A wrong header,
a pagination walk that never ends, or a staging file left on disk would
all fail silently in production. These tests pin down the wire contract.

HOW: Each test builds a ZiplineClient on an httpx.MockTransport whose
handler plays both the Zipline server and the attachment CDN, recording
every request it sees.

RULES:
- No real network access; every request is served by the mock handler
- Staging files go to a per-test tmp_path directory and are checked for
- Zipline requests and source downloads are told apart by host
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from zipline_bot.api.client import (
    HEADER_COMPRESSION,
    HEADER_EXPIRY,
    RemoteError,
    TransferError,
    ZiplineClient,
)
from zipline_bot.api.models import (
    ServiceStats,
    UploadPage,
    UploadRecord,
    UploadResult,
    UserProfile,
)
from zipline_bot.store import UserUploadSettings

BASE_URL = "https://zipline.example.com"
ZIPLINE_HOST = "zipline.example.com"
SOURCE_URL = "https://cdn.example.com/files/cat.png"
TOKEN = "zipline-token-abc123"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class Recorder:
    """MockTransport handler that records requests and delegates to route()."""

    def __init__(self, route: Callable[[httpx.Request], httpx.Response]) -> None:
        self.route = route
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.route(request)

    def zipline_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.host == ZIPLINE_HOST]

    def source_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.host != ZIPLINE_HOST]


def _client(handler: Callable[[httpx.Request], httpx.Response], **kwargs: Any) -> ZiplineClient:
    kwargs.setdefault("token", TOKEN)
    return ZiplineClient(
        base_url=BASE_URL,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def _paged_route(pages: Dict[int, List[Dict[str, Any]]], total: Optional[int]) -> Callable:
    def route(request: httpx.Request) -> httpx.Response:
        page = int(request.url.params["page"])
        body: Dict[str, Any] = {"page": pages.get(page, [])}
        if total is not None:
            body["pages"] = total
        return httpx.Response(200, json=body)
    return route


def _upload_route(
    source_status: int = 200,
    upload_status: int = 200,
    upload_body: Optional[Dict[str, Any]] = None,
) -> Callable:
    def route(request: httpx.Request) -> httpx.Response:
        if request.url.host != ZIPLINE_HOST:
            return httpx.Response(source_status, content=b"PNGDATA")
        return httpx.Response(
            upload_status,
            json=upload_body if upload_body is not None else {
                "files": [{"id": "abc", "url": BASE_URL + "/u/abc.png"}],
            },
        )
    return route


@pytest.fixture
def staging(tmp_path):
    path = tmp_path / "staging"
    path.mkdir()
    return path


# ---------------------------------------------------------------------------
# Authentication and lifecycle
# ---------------------------------------------------------------------------


class TestAuthentication:
    """The raw token goes to Zipline and nowhere else."""

    def test_raw_token_in_authorization_header(self):
        rec = Recorder(lambda r: httpx.Response(200, json={"username": "neo", "role": "USER"}))
        with _client(rec) as client:
            client.get_user_profile()
        assert rec.requests[0].headers["Authorization"] == TOKEN

    def test_requires_context_manager(self):
        client = _client(lambda r: httpx.Response(200, json={}))
        with pytest.raises(RuntimeError, match="context manager"):
            client.get_user_profile()

    def test_stats_sent_without_token(self):
        rec = Recorder(lambda r: httpx.Response(200, json={"users": 3, "files": 10}))
        with _client(rec) as client:
            client.get_service_stats()
        request = rec.requests[0]
        assert request.url.path == "/api/stats"
        assert "Authorization" not in request.headers

    def test_token_not_sent_to_source_host(self, staging):
        rec = Recorder(_upload_route())
        with _client(rec, staging_dir=staging) as client:
            client.upload_from_url(SOURCE_URL, "cat.png")
        source = rec.source_requests()[0]
        assert "Authorization" not in source.headers
        assert rec.zipline_requests()[0].headers["Authorization"] == TOKEN


# ---------------------------------------------------------------------------
# Profile and stats
# ---------------------------------------------------------------------------


class TestProfileAndStats:
    """GET /api/user and GET /api/stats parsing."""

    def test_profile_parsed(self):
        body = {"username": "neo", "role": "ADMIN", "quota": {"used": 12, "max": 100}}
        with _client(lambda r: httpx.Response(200, json=body)) as client:
            profile = client.get_user_profile()
        assert profile == UserProfile("neo", "ADMIN", 12, 100)

    def test_profile_unwraps_user_object(self):
        body = {"user": {"username": "trinity", "role": "USER"}}
        with _client(lambda r: httpx.Response(200, json=body)) as client:
            profile = client.get_user_profile()
        assert profile.username == "trinity"
        assert profile.quota_max is None

    def test_profile_rejected_token_raises_remote_error(self):
        with _client(lambda r: httpx.Response(401, text="unauthorized")) as client:
            with pytest.raises(RemoteError) as exc_info:
                client.get_user_profile()
        assert exc_info.value.status_code == 401
        assert exc_info.value.body == "unauthorized"

    def test_stats_failure_raises_remote_error(self):
        with _client(lambda r: httpx.Response(503, text="down"), token=None) as client:
            with pytest.raises(RemoteError):
                client.get_service_stats()

    def test_stats_list_body_raises_value_error(self):
        with _client(lambda r: httpx.Response(200, json=[{"users": 1}]), token=None) as client:
            with pytest.raises(ValueError, match="list"):
                client.get_service_stats()


# ---------------------------------------------------------------------------
# Upload listing
# ---------------------------------------------------------------------------


class TestFetchPage:
    """GET /api/user/files query and parsing."""

    def test_query_parameters(self, upload_dicts):
        rec = Recorder(_paged_route({1: upload_dicts(2)}, total=1))
        with _client(rec) as client:
            client.fetch_page(1, per_page=50)
        params = rec.requests[0].url.params
        assert rec.requests[0].url.path == "/api/user/files"
        assert params["page"] == "1"
        assert params["perpage"] == "50"
        assert params["sortBy"] == "createdAt"
        assert params["order"] == "desc"
        assert params["filter"] == "all"

    def test_items_parsed(self, upload_dicts):
        rec = Recorder(_paged_route({1: upload_dicts(2)}, total=4))
        with _client(rec) as client:
            page = client.fetch_page(1)
        assert page.current_page == 1
        assert page.total_pages == 4
        assert [r.id for r in page.items] == ["file0", "file1"]

    def test_error_status_raises(self):
        with _client(lambda r: httpx.Response(500, text="boom")) as client:
            with pytest.raises(RemoteError):
                client.fetch_page(1)


class TestFetchAll:
    """Walking the server-side pagination."""

    def test_walks_until_total_pages(self, upload_dicts):
        data = upload_dicts(7)
        rec = Recorder(_paged_route({1: data[:3], 2: data[3:6], 3: data[6:]}, total=3))
        with _client(rec) as client:
            uploads = client.fetch_all(per_page=3)
        assert [u.id for u in uploads] == ["file{}".format(i) for i in range(7)]
        assert len(rec.requests) == 3

    def test_empty_page_stops_before_total(self, caplog, upload_dicts):
        data = upload_dicts(3)
        rec = Recorder(_paged_route({1: data}, total=5))
        with caplog.at_level("WARNING"):
            with _client(rec) as client:
                uploads = client.fetch_all()
        assert len(uploads) == 3
        assert len(rec.requests) == 2
        assert "empty page" in caplog.text

    def test_missing_total_walks_until_empty(self, upload_dicts):
        data = upload_dicts(4)
        rec = Recorder(_paged_route({1: data[:2], 2: data[2:]}, total=None))
        with _client(rec) as client:
            uploads = client.fetch_all(per_page=2)
        assert len(uploads) == 4
        assert len(rec.requests) == 3

    def test_no_uploads(self):
        rec = Recorder(_paged_route({}, total=0))
        with _client(rec) as client:
            assert client.fetch_all() == []
        assert len(rec.requests) == 1

    def test_error_mid_walk_propagates(self, upload_dicts):
        def route(request: httpx.Request) -> httpx.Response:
            if request.url.params["page"] == "1":
                return httpx.Response(200, json={"page": upload_dicts(1), "pages": 2})
            return httpx.Response(502, text="bad gateway")

        with _client(route) as client:
            with pytest.raises(RemoteError):
                client.fetch_all()


# ---------------------------------------------------------------------------
# Upload relay
# ---------------------------------------------------------------------------


class TestUploadFromUrl:
    """Download to staging, multipart upload, cleanup."""

    def test_success_returns_links(self, staging):
        rec = Recorder(_upload_route())
        with _client(rec, staging_dir=staging) as client:
            result = client.upload_from_url(SOURCE_URL, "cat.png")
        assert result.links(BASE_URL) == [BASE_URL + "/u/abc.png"]

    def test_multipart_carries_bytes_and_name(self, staging):
        rec = Recorder(_upload_route())
        with _client(rec, staging_dir=staging) as client:
            client.upload_from_url(SOURCE_URL, "cat.png")
        upload = rec.zipline_requests()[0]
        assert upload.method == "POST"
        assert upload.url.path == "/api/upload"
        assert upload.headers["Content-Type"].startswith("multipart/form-data")
        assert b'filename="cat.png"' in upload.content
        assert b"PNGDATA" in upload.content

    def test_settings_become_headers(self, staging):
        rec = Recorder(_upload_route())
        settings = UserUploadSettings(expiry="7d", compression="60")
        with _client(rec, staging_dir=staging) as client:
            client.upload_from_url(SOURCE_URL, "cat.png", settings)
        upload = rec.zipline_requests()[0]
        assert upload.headers[HEADER_EXPIRY] == "7d"
        assert upload.headers[HEADER_COMPRESSION] == "60"

    def test_default_settings_send_no_option_headers(self, staging):
        rec = Recorder(_upload_route())
        with _client(rec, staging_dir=staging) as client:
            client.upload_from_url(SOURCE_URL, "cat.png", UserUploadSettings())
        upload = rec.zipline_requests()[0]
        assert HEADER_EXPIRY not in upload.headers
        assert HEADER_COMPRESSION not in upload.headers

    def test_source_headers_only_on_download(self, staging):
        rec = Recorder(_upload_route())
        with _client(rec, staging_dir=staging) as client:
            client.upload_from_url(
                SOURCE_URL, "cat.png", source_headers={"Authorization": "Bearer xoxb-1"},
            )
        assert rec.source_requests()[0].headers["Authorization"] == "Bearer xoxb-1"
        assert rec.zipline_requests()[0].headers["Authorization"] == TOKEN

    def test_staging_file_removed_on_success(self, staging):
        with _client(Recorder(_upload_route()), staging_dir=staging) as client:
            client.upload_from_url(SOURCE_URL, "cat.png")
        assert list(staging.iterdir()) == []

    def test_failed_download_raises_transfer_error(self, staging):
        rec = Recorder(_upload_route(source_status=404))
        with _client(rec, staging_dir=staging) as client:
            with pytest.raises(TransferError, match="404"):
                client.upload_from_url(SOURCE_URL, "cat.png")
        assert rec.zipline_requests() == []
        assert list(staging.iterdir()) == []

    def test_network_error_raises_transfer_error(self, staging):
        def route(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with _client(route, staging_dir=staging) as client:
            with pytest.raises(TransferError):
                client.upload_from_url(SOURCE_URL, "cat.png")
        assert list(staging.iterdir()) == []

    def test_rejected_upload_raises_remote_error(self, staging):
        rec = Recorder(_upload_route(upload_status=413))
        with _client(rec, staging_dir=staging) as client:
            with pytest.raises(RemoteError) as exc_info:
                client.upload_from_url(SOURCE_URL, "cat.png")
        assert exc_info.value.status_code == 413
        assert list(staging.iterdir()) == []


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class TestModels:
    """from_dict tolerance for server variants."""

    def test_record_prefers_original_name(self):
        record = UploadRecord.from_dict({"id": 1, "name": "x.png", "originalName": "cat.png"})
        assert record.id == "1"
        assert record.name == "cat.png"

    def test_record_falls_back_to_name(self):
        assert UploadRecord.from_dict({"id": "a", "name": "x.png"}).name == "x.png"

    def test_record_missing_fields(self):
        record = UploadRecord.from_dict({"id": "a"})
        assert record.name is None
        assert record.url is None
        assert record.size is None
        assert record.created_epoch is None

    def test_record_negative_or_bad_size(self):
        assert UploadRecord.from_dict({"id": "a", "size": -5}).size is None
        assert UploadRecord.from_dict({"id": "a", "size": "big"}).size is None
        assert UploadRecord.from_dict({"id": "a", "size": "2048"}).size == 2048

    def test_created_epoch_parses_zulu(self):
        record = UploadRecord.from_dict({"id": "a", "createdAt": "2024-01-01T00:00:00.000Z"})
        assert record.created_epoch == 1704067200

    def test_created_epoch_unparseable(self):
        assert UploadRecord.from_dict({"id": "a", "createdAt": "yesterday"}).created_epoch is None

    def test_page_without_pages_key(self):
        page = UploadPage.from_dict({"page": []}, current_page=2)
        assert page.items == []
        assert page.total_pages is None
        assert page.current_page == 2

    def test_stats_aliases_and_wrapper(self):
        stats = ServiceStats.from_dict({"data": {"count_users": 4, "count": 99, "size": "1 GB"}})
        assert stats == ServiceStats(users=4, files=99, size="1 GB")

    def test_stats_non_object_rejected(self):
        for body in ([1, 2], "ok", None, 7):
            with pytest.raises(ValueError):
                ServiceStats.from_dict(body)

    def test_upload_result_link_fallback(self):
        result = UploadResult.from_dict({"files": [{"id": "xyz"}, {"id": "q", "url": "https://z/u/q"}]})
        assert result.links(BASE_URL + "/") == [BASE_URL + "/u/xyz", "https://z/u/q"]

    def test_upload_result_empty(self):
        assert UploadResult.from_dict({}).links(BASE_URL) == []
