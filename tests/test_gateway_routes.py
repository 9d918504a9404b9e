try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

try:
    from ._onshape_fake import ACTIVE, FakeOnshape, done, failed
except ImportError:  # pragma: no cover - fallback for direct execution
    from _onshape_fake import ACTIVE, FakeOnshape, done, failed  # type: ignore

import httpx
import pytest

from cad_compliance.api.routes import _relay_stream
from cad_compliance.clients.onshape_api import OnshapeApiClient
from cad_compliance.main import app
from cad_compliance.models.session import SessionCredential
from cad_compliance.schemas import Violation
from cad_compliance.services.session_codec import SessionCodec

pytestmark = pytest.mark.anyio("asyncio")

CHECK_BODY = {
    "documentId": "d1",
    "workspaceId": "w1",
    "elementId": "e1",
    "rules": [
        {"id": 1, "name": "Minimum Wall Thickness", "category": "Manufacturing", "enabled": True},
        {"id": 3, "name": "Hole Diameter Standards", "category": "Manufacturing", "enabled": False},
    ],
}


class RecordingEvaluator:
    def __init__(self, violations=None) -> None:
        self.violations = violations or []
        self.calls = []

    async def evaluate(self, locator, rules):
        self.calls.append((locator, list(rules)))
        return list(self.violations)


@pytest.fixture()
def overrides(settings):
    from cad_compliance import dependencies

    fake = FakeOnshape()
    evaluator = RecordingEvaluator()

    app.dependency_overrides.clear()
    app.dependency_overrides.update(
        {
            dependencies.get_http_client: lambda: fake.client(),
            dependencies.get_app_settings: lambda: settings,
            dependencies.get_rule_evaluator: lambda: evaluator,
        }
    )

    yield fake, evaluator

    app.dependency_overrides.clear()


def _client(**kwargs) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver", **kwargs
    )


def _bearer(envelope: str) -> dict:
    return {"Authorization": f"Bearer {envelope}"}


async def test_health(overrides):
    async with _client() as client:
        response = await client.get("/api/health")

    assert response.json() == {"status": "ok"}


@pytest.mark.parametrize(
    "method, path, kwargs",
    [
        ("GET", "/api/user", {}),
        ("POST", "/api/export/check-model", {"json": CHECK_BODY}),
        ("GET", "/api/export/download", {"params": {"docId": "d1", "workId": "w1", "elId": "e1"}}),
        ("GET", "/api/onshape/documents", {}),
    ],
)
async def test_routes_without_credential_are_rejected_before_any_outbound_call(
    overrides, method, path, kwargs
):
    fake, evaluator = overrides

    async with _client() as client:
        response = await client.request(method, path, **kwargs)

    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Not authenticated"}
    assert fake.requests == []
    assert evaluator.calls == []


async def test_expired_credential_is_rejected(overrides, settings):
    fake, _ = overrides
    codec = SessionCodec(
        secret=settings.security.session_secret, ttl_seconds=60, clock=lambda: 1_000.0
    )
    envelope = codec.issue(SessionCredential(subject="u1", access_token="a"))

    async with _client() as client:
        response = await client.post(
            "/api/export/check-model", json=CHECK_BODY, headers=_bearer(envelope)
        )

    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Session expired"}
    assert fake.requests == []


async def test_credential_signed_with_other_secret_is_rejected(overrides):
    fake, _ = overrides
    envelope = SessionCodec(secret="someone-else").issue(
        SessionCredential(subject="u1", access_token="a")
    )

    async with _client() as client:
        response = await client.get("/api/user", headers=_bearer(envelope))

    assert response.status_code == 401
    assert response.json()["error"] == "Invalid token"
    assert fake.requests == []


async def test_garbage_cookie_is_malformed(overrides):
    async with _client(cookies={"auth_token": "garbage"}) as client:
        response = await client.get("/api/user")

    assert response.status_code == 401
    assert response.json()["error"] == "Malformed token"


@pytest.mark.parametrize(
    "claims, expected_name",
    [
        (
            {"display_name": "Ada L.", "name": "Ada", "username": "ada", "email": "a@x.io", "subject": "u1"},
            "Ada L.",
        ),
        ({"name": "Ada", "username": "ada", "email": "a@x.io", "subject": "u1"}, "Ada"),
        ({"username": "ada", "email": "a@x.io", "subject": "u1"}, "ada"),
        ({"email": "a@x.io", "subject": "u1"}, "a@x.io"),
        ({"subject": "u1"}, "u1"),
    ],
)
async def test_user_name_fallback_order(overrides, envelope_for, claims, expected_name):
    envelope = envelope_for(**claims)

    async with _client(cookies={"auth_token": envelope}) as client:
        response = await client.get("/api/user")

    assert response.status_code == 200
    assert response.json() == {
        "user": {
            "name": expected_name,
            "email": claims.get("email"),
            "id": claims["subject"],
        }
    }


async def test_logout_clears_cookie(overrides):
    async with _client() as client:
        response = await client.post("/api/logout")

    assert response.status_code == 200
    assert response.json() == {"success": True}
    set_cookie = response.headers["set-cookie"]
    assert set_cookie.startswith("auth_token=")
    assert "Max-Age=0" in set_cookie


async def test_check_model_returns_download_url_and_violations(overrides, envelope_for):
    fake, evaluator = overrides
    fake.polls = [ACTIVE, done("ext-9", "ext-10")]
    evaluator.violations = [
        Violation(
            id=1,
            rule="Minimum Wall Thickness",
            severity="high",
            description="Wall at 1.2mm",
            location="Bracket",
        )
    ]

    async with _client() as client:
        response = await client.post(
            "/api/export/check-model",
            json=CHECK_BODY,
            headers=_bearer(envelope_for(access_token="user-token")),
        )

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "downloadUrl": "https://cad.onshape.com/api/documents/d/d1/externaldata/ext-9",
        "violations": [
            {
                "id": 1,
                "rule": "Minimum Wall Thickness",
                "severity": "high",
                "description": "Wall at 1.2mm",
                "location": "Bracket",
            }
        ],
    }
    assert all(r.headers["authorization"] == "Bearer user-token" for r in fake.requests)
    locator, rules = evaluator.calls[0]
    assert locator.external_id == "ext-9"
    assert [rule.id for rule in rules] == [1]


async def test_check_model_requires_identifiers(overrides, envelope_for):
    fake, _ = overrides

    async with _client() as client:
        response = await client.post(
            "/api/export/check-model",
            json={"documentId": "d1", "rules": []},
            headers=_bearer(envelope_for()),
        )

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "error": "Missing required parameters (documentId, workspaceId, elementId).",
    }
    assert fake.requests == []


async def test_check_model_reports_failed_translation(overrides, envelope_for):
    fake, _ = overrides
    fake.polls = [failed("Unable to translate sketch")]

    async with _client() as client:
        response = await client.post(
            "/api/export/check-model", json=CHECK_BODY, headers=_bearer(envelope_for())
        )

    assert response.status_code == 500
    assert response.json() == {
        "success": False,
        "error": "Translation failed: Unable to translate sketch",
    }


async def test_check_model_reports_timeout_distinctly(overrides, envelope_for):
    fake, evaluator = overrides
    fake.polls = [ACTIVE]

    async with _client() as client:
        response = await client.post(
            "/api/export/check-model", json=CHECK_BODY, headers=_bearer(envelope_for())
        )

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Translation timed out"}
    assert len(fake.poll_calls) == 3
    assert evaluator.calls == []


async def test_check_model_propagates_submission_status(overrides, envelope_for):
    fake, _ = overrides
    fake.submit_status = 403
    fake.submit_body = "Forbidden document"

    async with _client() as client:
        response = await client.post(
            "/api/export/check-model", json=CHECK_BODY, headers=_bearer(envelope_for())
        )

    assert response.status_code == 403
    assert response.json() == {
        "success": False,
        "error": "Failed to start translation: Forbidden document",
    }
    assert fake.poll_calls == []


async def test_download_streams_step_file(overrides, envelope_for):
    fake, _ = overrides
    fake.polls = [done("ext-step")]
    fake.download_body = b"ISO-10303-21;\n" + b"DATA;\n" * 4096 + b"END-ISO-10303-21;\n"

    async with _client() as client:
        response = await client.get(
            "/api/export/download",
            params={"docId": "d1", "workId": "w1", "elId": "e1"},
            headers=_bearer(envelope_for()),
        )

    assert response.status_code == 200
    assert response.content == fake.download_body
    assert response.headers["content-type"].startswith("application/step")
    assert response.headers["content-disposition"] == 'attachment; filename="model.step"'
    assert fake.submit_calls[0].url.path == "/api/assemblies/d/d1/w/w1/e/e1/export/step"
    assert fake.requests[-1].url.path == "/api/documents/d/d1/externaldata/ext-step"


async def test_download_keeps_specific_upstream_content_type(overrides, envelope_for):
    fake, _ = overrides
    fake.polls = [done("ext-step")]
    fake.download_type = "model/step"

    async with _client() as client:
        response = await client.get(
            "/api/export/download",
            params={"docId": "d1", "workId": "w1", "elId": "e1"},
            headers=_bearer(envelope_for()),
        )

    assert response.headers["content-type"].startswith("model/step")


async def test_download_relays_upstream_error(overrides, envelope_for):
    fake, _ = overrides
    fake.polls = [done("ext-step")]
    fake.download_status = 404
    fake.download_body = b"External data not found"

    async with _client() as client:
        response = await client.get(
            "/api/export/download",
            params={"docId": "d1", "workId": "w1", "elId": "e1"},
            headers=_bearer(envelope_for()),
        )

    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "External data not found"}


async def test_download_requires_identifiers(overrides, envelope_for):
    fake, _ = overrides

    async with _client() as client:
        response = await client.get(
            "/api/export/download",
            params={"docId": "d1"},
            headers=_bearer(envelope_for()),
        )

    assert response.status_code == 400
    assert response.json()["error"] == "Missing required parameters (docId, workId, elId)."
    assert fake.requests == []


async def test_download_timeout_message(overrides, envelope_for):
    fake, _ = overrides
    fake.polls = [ACTIVE]

    async with _client() as client:
        response = await client.get(
            "/api/export/download",
            params={"docId": "d1", "workId": "w1", "elId": "e1"},
            headers=_bearer(envelope_for()),
        )

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "STEP export timed out."}


async def test_proxy_relays_get_with_bearer_token(overrides, envelope_for):
    fake, _ = overrides

    async with _client() as client:
        response = await client.get(
            "/api/onshape/documents",
            params={"q": "bracket"},
            headers=_bearer(envelope_for(access_token="proxy-token")),
        )

    assert response.status_code == 200
    assert response.json() == {"items": [{"id": "d1"}]}
    upstream = fake.requests[0]
    assert upstream.url.path == "/api/documents"
    assert upstream.url.params["q"] == "bracket"
    assert upstream.headers["authorization"] == "Bearer proxy-token"


async def test_proxy_preserves_upstream_status(overrides, envelope_for):
    async with _client() as client:
        response = await client.get(
            "/api/onshape/unknown/thing", headers=_bearer(envelope_for())
        )

    assert response.status_code == 404
    assert response.json() == {"message": "No route for /api/unknown/thing"}


async def test_check_model_with_onshape_unreachable_keeps_error_shape(overrides, envelope_for):
    fake, evaluator = overrides
    fake.unreachable = lambda request: True

    async with _client() as client:
        response = await client.post(
            "/api/export/check-model", json=CHECK_BODY, headers=_bearer(envelope_for())
        )

    assert response.status_code == 502
    assert response.headers["content-type"].startswith("application/json")
    assert response.json() == {
        "success": False,
        "error": "Failed to start translation: Could not reach Onshape.",
    }
    assert evaluator.calls == []


async def test_download_with_unreachable_artifact_keeps_error_shape(overrides, envelope_for):
    fake, _ = overrides
    fake.polls = [done("ext-step")]
    fake.unreachable = lambda request: "/externaldata/" in request.url.path

    async with _client() as client:
        response = await client.get(
            "/api/export/download",
            params={"docId": "d1", "workId": "w1", "elId": "e1"},
            headers=_bearer(envelope_for()),
        )

    assert response.status_code == 502
    assert response.json() == {"success": False, "error": "Could not reach Onshape."}


async def test_proxy_with_onshape_unreachable_keeps_error_shape(overrides, envelope_for):
    fake, _ = overrides
    fake.unreachable = lambda request: True

    async with _client() as client:
        response = await client.get("/api/onshape/documents", headers=_bearer(envelope_for()))

    assert response.status_code == 502
    assert response.json() == {"success": False, "error": "Could not reach Onshape."}


async def test_download_relay_closes_upstream_when_reader_stops_early():
    fake = FakeOnshape(download_body=b"DATA;\n" * 4096)

    async with fake.client() as http_client:
        api = OnshapeApiClient(base_url="https://cad.onshape.com/api", http_client=http_client)
        upstream = await api.open_stream(
            api.external_data_url("d1", "ext-step"), access_token="t"
        )
        chunks = _relay_stream(upstream)
        assert await chunks.__anext__()
        await chunks.aclose()

    assert upstream.is_closed
