"""
OData and HTTP Client Tests

Validates the HTTP protocol layer against a scripted aiohttp session:
1. V2/V4 result unwrapping and server-driven paging
2. 401 is never retried; 5xx and 429 are retried within budget
3. CSRF token is fetched for writes and refetched once on rejection
4. $metadata parsing for V2 and V4 documents
5. $batch building and per-part response parsing
6. ODataTarget counts partial batch failures; build_target picks dry runs
"""

import asyncio
import json

import pytest

from connectors.auth import BasicAuthProvider
from connectors.http_client import HttpClient
from connectors.odata import BatchRequest, ODataClient, build_batch, extract_results, parse_batch_response, parse_metadata
from connectors.target import DryRunTarget, ODataTarget, build_target
from core.errors import AuthenticationError, ConfigurationError, ODataError
from core.resilience import RetryConfig


async def no_sleep(delay: float) -> None:
    return None


class FakeResponse:
    def __init__(self, status=200, body="", headers=None):
        self.status = status
        self._body = body if isinstance(body, str) else json.dumps(body)
        self.headers = headers or {"Content-Type": "application/json"}

    async def text(self):
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    """Scripted stand-in for aiohttp.ClientSession.

    ``routes`` maps (method, url-suffix) to a list of responses served in order;
    the last response repeats.
    """

    def __init__(self, routes):
        self.routes = {key: list(value) for key, value in routes.items()}
        self.requests = []

    def request(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        for (route_method, suffix), responses in self.routes.items():
            if route_method == method and url.endswith(suffix):
                return responses.pop(0) if len(responses) > 1 else responses[0]
        return FakeResponse(404, {"error": "not found"})

    async def close(self):
        pass


V2_METADATA = """<?xml version="1.0" encoding="utf-8"?>
<edmx:Edmx Version="1.0" xmlns:edmx="http://schemas.microsoft.com/ado/2007/06/edmx">
  <edmx:DataServices>
    <Schema Namespace="API_BUSINESS_PARTNER" xmlns="http://schemas.microsoft.com/ado/2008/09/edm">
      <EntityType Name="A_BusinessPartnerType">
        <Key><PropertyRef Name="BusinessPartner"/></Key>
        <Property Name="BusinessPartner" Type="Edm.String" Nullable="false" MaxLength="10"/>
        <Property Name="BusinessPartnerName" Type="Edm.String" MaxLength="81"/>
      </EntityType>
      <EntityContainer Name="API_BUSINESS_PARTNER_Entities">
        <EntitySet Name="A_BusinessPartner" EntityType="API_BUSINESS_PARTNER.A_BusinessPartnerType"/>
      </EntityContainer>
    </Schema>
  </edmx:DataServices>
</edmx:Edmx>"""


def batch_response(statuses):
    boundary = "batchresponse_1"
    lines = []
    for i, status in enumerate(statuses):
        lines += [
            f"--{boundary}",
            "Content-Type: multipart/mixed; boundary=changeset_%d" % i,
            "",
            f"--changeset_{i}",
            "Content-Type: application/http",
            "Content-Transfer-Encoding: binary",
            "",
            f"HTTP/1.1 {status} {'Created' if status < 400 else 'Bad Request'}",
            "Content-Type: application/json",
            "",
            json.dumps({"d": {"ok": status < 400}}),
            f"--changeset_{i}--",
        ]
    lines.append(f"--{boundary}--")
    return f"multipart/mixed; boundary={boundary}", "\r\n".join(lines)


class TestResultShapes:
    """Entity list unwrapping."""

    def test_v4_value(self):
        assert extract_results({"value": [{"a": 1}]}) == [{"a": 1}]

    def test_v2_results_and_single_entity(self):
        assert extract_results({"d": {"results": [{"a": 1}, {"a": 2}]}}) == [{"a": 1}, {"a": 2}]
        assert extract_results({"d": {"a": 1}}) == [{"a": 1}]

    def test_empty(self):
        assert extract_results(None) == []

    def test_unsupported_version_rejected(self):
        with pytest.raises(ConfigurationError):
            ODataClient("https://host/svc", version="v3")


class TestODataClient:
    """Request behaviour against a scripted session."""

    def test_get_all_follows_next_links(self):
        session = FakeSession({
            ("GET", "/A_BusinessPartner"): [FakeResponse(200, {
                "d": {"results": [{"id": 1}, {"id": 2}], "__next": "https://host/svc/A_BusinessPartner?$skiptoken=2"},
            })],
            ("GET", "?$skiptoken=2"): [FakeResponse(200, {"d": {"results": [{"id": 3}]}})],
        })
        client = ODataClient("https://host/svc", session=session, csrf=False)
        rows = asyncio.run(client.get_all("A_BusinessPartner", {"$top": 2}))
        assert [r["id"] for r in rows] == [1, 2, 3]
        assert session.requests[0][2]["params"]["$format"] == "json"

    def test_v4_count(self):
        session = FakeSession({("GET", "/Products"): [FakeResponse(200, {"@odata.count": 42, "value": []})]})
        client = ODataClient("https://host/svc", version="v4", session=session)
        assert asyncio.run(client.count("Products")) == 42
        assert session.requests[0][2]["params"]["$count"] == "true"

    def test_unauthorized_not_retried(self):
        session = FakeSession({("GET", "/X"): [FakeResponse(401, "denied", {"Content-Type": "text/plain"})]})
        client = ODataClient("https://host/svc", auth=BasicAuthProvider("u", "p"), session=session, sleep=no_sleep)
        with pytest.raises(AuthenticationError):
            asyncio.run(client.get("X"))
        assert len(session.requests) == 1
        assert session.requests[0][2]["headers"]["Authorization"].startswith("Basic ")

    def test_server_error_retried_then_raised(self):
        session = FakeSession({("GET", "/X"): [FakeResponse(503, {"error": {"message": "busy"}})]})
        client = ODataClient(
            "https://host/svc", session=session, sleep=no_sleep,
            retry_config=RetryConfig(max_retries=2, jitter=0),
        )
        with pytest.raises(ODataError) as exc:
            asyncio.run(client.get("X"))
        assert exc.value.status_code == 503
        assert len(session.requests) == 3

    def test_rate_limit_honours_retry_after(self):
        delays = []

        async def record(delay):
            delays.append(delay)

        session = FakeSession({("GET", "/X"): [
            FakeResponse(429, "", {"Retry-After": "7", "Content-Type": "text/plain"}),
            FakeResponse(200, {"value": [{"ok": True}]}),
        ]})
        client = ODataClient("https://host/svc", version="v4", session=session, sleep=record)
        assert asyncio.run(client.get_entities("X")) == [{"ok": True}]
        assert delays == [7.0]

    def test_csrf_refetched_once_on_rejection(self):
        session = FakeSession({
            ("HEAD", "/svc"): [
                FakeResponse(200, "", {"X-CSRF-Token": "tok-1"}),
                FakeResponse(200, "", {"X-CSRF-Token": "tok-2"}),
            ],
            ("POST", "/Orders"): [
                FakeResponse(403, "CSRF token validation failed", {"X-CSRF-Token": "Required"}),
                FakeResponse(201, {"d": {"id": "9"}}),
            ],
        })
        client = HttpClient("https://host/svc", session=session)
        assert asyncio.run(client.post("Orders", {"x": 1})) == {"d": {"id": "9"}}
        posts = [r for r in session.requests if r[0] == "POST"]
        assert [p[2]["headers"]["X-CSRF-Token"] for p in posts] == ["tok-1", "tok-2"]

    def test_get_does_not_fetch_csrf(self):
        session = FakeSession({("GET", "/X"): [FakeResponse(200, {"value": []})]})
        asyncio.run(HttpClient("https://host/svc", session=session).get("X"))
        assert [r[0] for r in session.requests] == ["GET"]


class TestMetadata:
    """EDMX parsing."""

    def test_entity_sets_and_keys(self):
        metadata = parse_metadata(V2_METADATA)
        entity_type = metadata.get_entity_type("A_BusinessPartner")
        assert entity_type.keys == ["BusinessPartner"]
        assert entity_type.properties[0].nullable is False
        assert entity_type.properties[0].max_length == 10
        assert metadata.to_dict()["entitySets"]["A_BusinessPartner"].endswith("A_BusinessPartnerType")

    def test_invalid_document(self):
        with pytest.raises(ODataError):
            parse_metadata("<not-closed")


class TestBatch:
    """$batch wire format."""

    def test_reads_outside_changesets(self):
        content_type, body = build_batch(
            [BatchRequest("GET", "A_Product('1')"), BatchRequest("POST", "A_Product", body={"Product": "2"})],
            boundary="b1",
        )
        assert content_type == "multipart/mixed; boundary=b1"
        assert body.count("--b1\r\n") == 2
        assert body.count("boundary=changeset_") == 1
        assert '{"Product": "2"}' in body

    def test_parse_mixed_statuses(self):
        content_type, body = batch_response([201, 400, 201])
        results = parse_batch_response(content_type, body)
        assert [r.status for r in results] == [201, 400, 201]
        assert results[1].error["code"] == "ERR_ODATA"
        assert results[0].body == {"d": {"ok": True}}

    def test_missing_boundary(self):
        with pytest.raises(ODataError):
            parse_batch_response("application/json", "{}")


class TestTargets:
    """Target loaders."""

    def test_odata_target_counts_partial_failures(self):
        content_type, body = batch_response([201, 400])
        session = FakeSession({
            ("HEAD", "/svc"): [FakeResponse(200, "", {"X-CSRF-Token": "t"})],
            ("POST", "/$batch"): [FakeResponse(202, body, {"Content-Type": content_type})],
        })
        target = ODataTarget(ODataClient("https://host/svc", session=session), {"BANK_MASTER": "A_BankDetail"})
        result = asyncio.run(target.load_batch("BANK_MASTER", [{"Bank": "1"}, {"Bank": "2"}]))
        assert (result.loaded, result.failed) == (1, 1)
        assert result.errors[0]["index"] == 1

    def test_unconfigured_entity_set(self):
        target = ODataTarget(ODataClient("https://host/svc"), {})
        with pytest.raises(ConfigurationError):
            asyncio.run(target.load_batch("UNKNOWN", [{}]))

    def test_build_target_defaults_to_dry_run(self):
        live = ODataTarget(ODataClient("https://host/svc"), {})
        assert isinstance(build_target("mock", False, live), DryRunTarget)
        assert isinstance(build_target("live", True, live), DryRunTarget)
        assert isinstance(build_target("live", False, None), DryRunTarget)
        assert build_target("live", False, live) is live

    def test_dry_run_tracks_batches(self):
        target = DryRunTarget()
        asyncio.run(target.load_batch("X", [{}] * 3))
        asyncio.run(target.load_batch("X", [{}] * 2))
        assert target.total("X") == 5
