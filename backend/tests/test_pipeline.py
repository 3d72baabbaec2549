"""
Catalog Backend: Admission Pipeline Tests
=========================================

What:  The ordered stages in front of every route.

What we test:
    ✅ security headers on every response, no Content-Security-Policy
    ✅ permissive CORS and preflight short-circuit
    ✅ decision verdict mapping (429 / 403 / spoofed bot)
    ✅ test-tool bypass only outside production
    ✅ decision-service failure fails closed through the error responder
    ✅ unhandled route failures still pass back through the response stages
    ✅ one access log line per request
"""

import logging

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select
from starlette.responses import Response

from catalog.exceptions import DecisionServiceError
from catalog.main import create_app
from catalog.middleware import (
    AdmissionPipelineMiddleware,
    CORSStage,
    DecisionStage,
    SecurityHeadersStage,
    Stage,
    build_stages,
)
from catalog.models.product import Product
from catalog.services.decision import Decision, DecisionReason, RuleResult

from conftest import FakeDecisionService, make_request

POSTMAN_UA = {"User-Agent": "PostmanRuntime/7.36.0"}


def denied(reason_type: str) -> Decision:
    reason = DecisionReason(type=reason_type)
    return Decision(conclusion="DENY", reason=reason, results=[RuleResult(conclusion="DENY", reason=reason)])


@pytest_asyncio.fixture
async def client_for(make_settings, database):
    """Builds a client around a given decision service and settings overrides."""
    clients = []

    async def _build(decision_service, **overrides):
        settings = make_settings(**overrides)
        app = create_app(settings=settings, database=database, decision_service=decision_service)
        c = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
        clients.append(c)
        return c

    yield _build
    for c in clients:
        await c.aclose()


class TestStageOrder:

    def test_stages_are_in_admission_order(self, settings, decision_service):
        names = [stage.name for stage in build_stages(settings, decision_service)]
        assert names == ["body", "cors", "security_headers", "access_log", "decision"]


class TestSecurityHeaders:

    @pytest.mark.asyncio
    async def test_hardening_headers_present(self, client):
        response = await client.get("/api/test")

        assert response.status_code == 200
        for name, value in SecurityHeadersStage.HEADERS.items():
            assert response.headers[name] == value
        assert "content-security-policy" not in response.headers

    @pytest.mark.asyncio
    async def test_headers_on_not_found(self, client):
        response = await client.get("/no/such/page")
        assert response.status_code == 404
        assert response.headers["x-content-type-options"] == "nosniff"


class TestCORS:

    @pytest.mark.asyncio
    async def test_any_origin_allowed(self, client):
        response = await client.get("/api/products", headers={"Origin": "http://elsewhere.test"})
        assert response.headers["access-control-allow-origin"] == "*"

    @pytest.mark.asyncio
    async def test_preflight_short_circuits(self, client, decision_service):
        response = await client.options(
            "/api/products",
            headers={
                "Origin": "http://elsewhere.test",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "content-type",
            },
        )

        assert response.status_code == 204
        assert response.headers["access-control-allow-origin"] == "*"
        assert "POST" in response.headers["access-control-allow-methods"]
        assert response.headers["access-control-allow-headers"] == "content-type"
        assert decision_service.calls == []

    def test_origin_list_echoes_known_origin(self):
        stage = CORSStage(allow_origins=["http://shop.test"])
        response = Response()
        request = make_request()
        request.scope["headers"].append((b"origin", b"http://shop.test"))

        stage.on_response(request, response, None)

        assert response.headers["access-control-allow-origin"] == "http://shop.test"
        assert "Origin" in response.headers["vary"]

    def test_origin_list_omits_unknown_origin(self):
        stage = CORSStage(allow_origins=["http://shop.test"])
        response = Response()
        request = make_request()
        request.scope["headers"].append((b"origin", b"http://evil.test"))

        stage.on_response(request, response, None)

        assert "access-control-allow-origin" not in response.headers


class TestDecisionVerdicts:

    def test_allow_passes(self):
        assert DecisionStage.verdict(Decision()) is None

    @pytest.mark.parametrize(
        "reason_type, status, error",
        [
            ("RATE_LIMIT", 429, "Too Many Requests"),
            ("BOT", 403, "Bot access denied"),
            ("SHIELD", 403, "Forbidden"),
        ],
    )
    @pytest.mark.asyncio
    async def test_denials_over_http(self, client_for, reason_type, status, error):
        c = await client_for(FakeDecisionService(denied(reason_type)))

        response = await c.get("/api/products")

        assert response.status_code == status
        assert response.json() == {"error": error}
        assert response.headers["access-control-allow-origin"] == "*"

    @pytest.mark.asyncio
    async def test_spoofed_bot_in_allowed_decision_is_403(self, client_for):
        decision = Decision(
            conclusion="ALLOW",
            results=[RuleResult(conclusion="ALLOW", reason=DecisionReason(type="BOT", spoofed=True))],
        )
        c = await client_for(FakeDecisionService(decision))

        response = await c.get("/api/products")

        assert response.status_code == 403
        assert response.json() == {"error": "Spoofed bot detected"}

    @pytest.mark.asyncio
    async def test_each_request_costs_one_unit(self, client, decision_service):
        await client.get("/api/products")
        assert decision_service.calls == [("GET", "/api/products", 1)]

    @pytest.mark.asyncio
    async def test_denied_request_never_reaches_handler(self, client_for, database):
        c = await client_for(FakeDecisionService(denied("RATE_LIMIT")))

        response = await c.post(
            "/api/products", json={"name": "W", "image": "w.png", "price": 1}
        )

        assert response.status_code == 429
        async with database.session() as session:
            assert (await session.scalar(select(func.count()).select_from(Product))) == 0


class TestDevelopmentBypass:

    @pytest.mark.asyncio
    async def test_test_tool_bypasses_outside_production(self, client_for):
        service = FakeDecisionService(denied("RATE_LIMIT"))
        c = await client_for(service, environment="development")

        response = await c.get("/api/products", headers=POSTMAN_UA)

        assert response.status_code == 200
        assert service.calls == []

    @pytest.mark.asyncio
    async def test_test_tool_is_checked_in_production(self, client_for):
        service = FakeDecisionService(denied("RATE_LIMIT"))
        c = await client_for(service, environment="production")

        response = await c.get("/api/products", headers=POSTMAN_UA)

        assert response.status_code == 429
        assert len(service.calls) == 1

    @pytest.mark.asyncio
    async def test_other_clients_are_checked_in_development(self, client_for):
        service = FakeDecisionService(denied("BOT"))
        c = await client_for(service, environment="development")

        response = await c.get("/api/products", headers={"User-Agent": "Mozilla/5.0"})

        assert response.status_code == 403
        assert len(service.calls) == 1

    def test_bypass_signature_is_case_insensitive(self, make_settings):
        stage = DecisionStage(FakeDecisionService(), make_settings())
        assert stage.is_bypassed(make_request(user_agent="POSTMAN desktop"))
        assert not stage.is_bypassed(make_request(user_agent="Mozilla/5.0"))
        assert not stage.is_bypassed(make_request(user_agent=None))


class TestPipelineErrors:

    @pytest.mark.asyncio
    async def test_decision_failure_on_api_path_is_json_500(self, client_for):
        c = await client_for(FakeDecisionService(error=DecisionServiceError()))

        response = await c.get("/api/products")

        assert response.status_code == 500
        assert response.json() == {"error": "Internal Server Error"}
        assert response.headers["x-frame-options"] == "SAMEORIGIN"

    @pytest.mark.asyncio
    async def test_decision_failure_on_page_is_plain_text_500(self, client_for):
        c = await client_for(FakeDecisionService(error=DecisionServiceError()))

        response = await c.get("/products/1")

        assert response.status_code == 500
        assert response.text == "Internal Server Error"

    @pytest.mark.asyncio
    async def test_unexpected_stage_error_is_forwarded(self):
        class ExplodingStage(Stage):
            name = "exploding"

            async def on_request(self, request, ctx):
                raise RuntimeError("boom")

        app = FastAPI()
        app.add_middleware(AdmissionPipelineMiddleware, stages=[ExplodingStage(), SecurityHeadersStage()])

        @app.get("/api/ping")
        async def ping():
            return {"ok": True}

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            response = await c.get("/api/ping")

        assert response.status_code == 500
        assert response.json() == {"error": "Internal Server Error"}
        # stages after the failing one never ran
        assert "x-frame-options" not in response.headers

    @pytest.mark.asyncio
    async def test_route_error_still_runs_response_stages(self, app, client, caplog):
        class FailingProductService:
            async def list_products(self):
                raise RuntimeError("boom")

        app.state.product_service = FailingProductService()
        caplog.set_level(logging.INFO, logger="catalog.access")

        response = await client.get("/api/products", headers={"Origin": "https://shop.example"})

        assert response.status_code == 500
        assert response.json() == {"error": "Internal Server Error"}
        assert response.headers["x-frame-options"] == "SAMEORIGIN"
        assert response.headers["access-control-allow-origin"] == "*"
        records = [r for r in caplog.records if r.name == "catalog.access"]
        assert len(records) == 1
        assert records[0].levelno == logging.ERROR
        assert records[0].status == 500

    @pytest.mark.asyncio
    async def test_unreachable_store_still_runs_response_stages(self, make_settings, caplog):
        settings = make_settings(database_url="postgresql+asyncpg://u:p@127.0.0.1:1/db")
        app = create_app(settings=settings, decision_service=FakeDecisionService())
        caplog.set_level(logging.INFO, logger="catalog.access")

        try:
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
                response = await c.get("/api/products", headers={"Origin": "https://shop.example"})
        finally:
            await app.state.database.dispose()

        assert response.status_code == 500
        assert response.json() == {"error": "Internal Server Error"}
        assert response.headers["x-frame-options"] == "SAMEORIGIN"
        assert response.headers["access-control-allow-origin"] == "*"
        records = [r for r in caplog.records if r.name == "catalog.access"]
        assert len(records) == 1
        assert records[0].status == 500


class TestAccessLog:

    @pytest.mark.asyncio
    async def test_one_line_per_request(self, client, caplog):
        caplog.set_level(logging.INFO, logger="catalog.access")

        await client.get("/api/test")

        records = [r for r in caplog.records if r.name == "catalog.access"]
        assert len(records) == 1
        assert records[0].levelno == logging.INFO
        assert records[0].getMessage().startswith("GET /api/test 200 ")
        assert records[0].getMessage().split()[4] == "ms"
        assert records[0].decision == "ALLOW"

    @pytest.mark.asyncio
    async def test_denials_logged_as_warning(self, client_for, caplog):
        caplog.set_level(logging.INFO, logger="catalog.access")
        c = await client_for(FakeDecisionService(denied("RATE_LIMIT")))

        await c.get("/api/products")

        records = [r for r in caplog.records if r.name == "catalog.access"]
        assert records[-1].levelno == logging.WARNING
        assert records[-1].status == 429
        assert records[-1].decision == "DENY"
        assert records[-1].decision_reason == "RATE_LIMIT"

    @pytest.mark.asyncio
    async def test_bypassed_request_logs_no_decision(self, client, caplog):
        caplog.set_level(logging.INFO, logger="catalog.access")

        await client.get("/api/test", headers=POSTMAN_UA)

        records = [r for r in caplog.records if r.name == "catalog.access"]
        assert records[-1].decision is None
        assert records[-1].decision_reason is None


class TestBodyParsing:

    @pytest.mark.asyncio
    async def test_json_body_reaches_handler_after_parsing(self, client):
        response = await client.post(
            "/api/products",
            content=b'{"name": "W", "image": "w.png", "price": 2}',
            headers={"Content-Type": "application/json; charset=utf-8"},
        )
        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_malformed_json_skips_decision(self, client, decision_service):
        response = await client.post(
            "/api/products",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert decision_service.calls == []
