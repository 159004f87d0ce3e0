"""API tests for the report endpoints."""

import json
from datetime import datetime, timezone

import httpx
import pytest
from fastapi.testclient import TestClient

from reports.client import ReportClient, ReportRequestError
from reports.models import StageId
from reports.orchestrator import FATAL_STREAM_MESSAGE
from reports.stream import ReportPhase
from services.ai.analysis_client import AnalysisError
from subscription.tier_control import UserEntitlement

from report_fakes import NOW, broken_stage, make_comparison, make_legacy, make_primary, premium_entitlement

FREE = {"Authorization": "Bearer free-token"}
PREMIUM = {"Authorization": "Bearer premium-token"}

STREAM_ORDER = [
    ("computed", None),
    ("ai_stage", "profileSynthesis"),
    ("ai_stage", "optimizationAnalysis"),
    ("ai_stage", "riskAssessment"),
    ("ai_stage", "roadmap"),
    ("complete", None),
]


def ndjson(response):
    return [json.loads(line) for line in response.text.splitlines() if line]


def drain_usage(client, dependencies):
    client.portal.call(dependencies.recorder.drain)


@pytest.fixture
def free_user(store):
    store.add_scenario(make_primary(user_id="free-user"))


@pytest.fixture
def premium_user(store):
    store.put_entitlement(premium_entitlement(user_id="premium-user", used=4))
    store.add_scenario(make_primary(user_id="premium-user"))
    store.add_scenario(make_comparison("commute", user_id="premium-user"))


class TestAuthentication:

    def test_missing_token(self, app):
        with TestClient(app) as client:
            response = client.post("/reports")

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}
        assert response.headers["www-authenticate"] == "Bearer"

    def test_unknown_token(self, app, analysis):
        with TestClient(app) as client:
            response = client.post("/reports", headers={"Authorization": "Bearer forged"})

        assert response.status_code == 401
        assert analysis.calls == []

    def test_eligibility_requires_token(self, app):
        with TestClient(app) as client:
            assert client.get("/reports/eligibility").status_code == 401


class TestFreeTier:

    def test_preview_then_upgrade_required(self, app, dependencies, analysis, store, free_user):
        with TestClient(app) as client:
            first = client.post("/reports", headers=FREE)
            drain_usage(client, dependencies)
            calls_after_first = len(analysis.calls)

            second = client.post("/reports", headers=FREE)

        assert first.status_code == 200
        assert first.headers["content-type"].startswith("application/json")
        report = first.json()
        assert report["isPremium"] is False
        assert report["profileSynthesis"]["oneLineSummary"] == "Solid income, leaking hours."
        assert report["optimizationAnalysis"]["quickWins"] == []
        assert report["userName"] == "sam"

        assert second.status_code == 403
        assert second.json()["upgradeRequired"] is True
        assert len(analysis.calls) == calls_after_first

        assert store.entitlements["free-user"].has_generated_preview_ever
        assert store.generations[0].is_preview

    def test_preview_denied_regardless_of_body(self, app, store):
        store.put_entitlement(UserEntitlement(user_id="free-user", has_generated_preview_ever=True))

        with TestClient(app) as client:
            response = client.post("/reports", headers=FREE, json={
                "scenarioData": {"primary": {"data": {"inputs": {"salary": 90000}}}},
            })

        assert response.status_code == 403
        assert response.json()["upgradeUrl"] == "/pricing"

    def test_preview_from_request_body(self, app, analysis):
        with TestClient(app) as client:
            response = client.post("/reports", headers=FREE, json={
                "scenarioData": {"primary": {"id": "body-1", "data": {"inputs": {"salary": 72000}}}},
            })

        assert response.status_code == 200
        assert response.json()["userData"]["income"]["grossAnnualSalary"] == 72000
        assert analysis.stages_called() == [StageId.PROFILE_SYNTHESIS]

    def test_no_scenario(self, app, analysis, store):
        with TestClient(app) as client:
            response = client.post("/reports", headers=FREE)

        assert response.status_code == 400
        assert response.json() == {"error": "No scenario data found. Please complete the calculator first."}
        assert analysis.calls == []
        assert "free-user" not in store.entitlements

    def test_failed_preview_keeps_free_report(self, app, dependencies, store, free_user):
        store.put_entitlement(UserEntitlement(user_id="free-user"))
        stages = dependencies.service.orchestrator.stages
        working_roadmap = stages[StageId.ROADMAP]
        stages[StageId.ROADMAP] = broken_stage(StageId.ROADMAP)

        with TestClient(app) as client:
            failed = client.post("/reports", headers=FREE)
            drain_usage(client, dependencies)

            assert failed.status_code == 500
            assert failed.json() == {"error": "Failed to generate report."}
            assert store.entitlements["free-user"].has_generated_preview_ever is False
            assert store.generations == []

            stages[StageId.ROADMAP] = working_roadmap
            retried = client.post("/reports", headers=FREE)
            drain_usage(client, dependencies)

        assert retried.status_code == 200
        assert store.entitlements["free-user"].has_generated_preview_ever is True

    def test_invalid_body(self, app):
        with TestClient(app) as client:
            response = client.post("/reports", headers=FREE, json={"legacyScenarios": "not-a-list"})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request body"


class TestPremiumTier:

    def test_stream_with_failing_risk_stage(self, app, dependencies, analysis, store, premium_user):
        analysis.responses[StageId.RISK_ASSESSMENT] = AnalysisError("backend down")

        with TestClient(app) as client:
            response = client.post("/reports", headers=PREMIUM)
            drain_usage(client, dependencies)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/x-ndjson")
        assert response.headers["cache-control"] == "no-cache"
        assert response.headers["x-accel-buffering"] == "no"

        chunks = ndjson(response)
        assert [(c["type"], c.get("stage")) for c in chunks] == STREAM_ORDER

        risk = chunks[3]
        assert risk["error"] is True
        assert risk["data"] == {"highPriorityRisks": [], "overallRiskRating": "Moderate"}
        roadmap = chunks[4]
        assert "error" not in roadmap
        assert roadmap["data"]["personalizedMotivation"] == "At 32 you have time on your side."

        entitlement = store.entitlements["premium-user"]
        assert entitlement.reports_generated_this_month == 5
        assert entitlement.last_report_generated_at == NOW
        generation = store.generations[-1]
        assert generation.report_type == "comprehensive"
        assert generation.scenarios_included == ["scn-primary", "scn-commute"]

    def test_failed_stream_does_not_consume_quota(self, app, dependencies, store, premium_user):
        dependencies.service.orchestrator.stages[StageId.ROADMAP] = broken_stage(StageId.ROADMAP)

        with TestClient(app) as client:
            response = client.post("/reports", headers=PREMIUM)
            drain_usage(client, dependencies)

        chunks = ndjson(response)
        assert response.status_code == 200
        assert chunks[-1] == {"type": "error", "message": FATAL_STREAM_MESSAGE}
        assert {"type": "complete"} not in chunks

        entitlement = store.entitlements["premium-user"]
        assert entitlement.reports_generated_this_month == 4
        assert store.generations == []

    def test_numeric_strings_in_body(self, app, premium_user):
        body = {"scenarioData": {"primary": {"data": {
            "inputs": {"salary": "52000", "pensionPercent": "5"},
            "results": {"taxBreakdown": {"netSalary": "39000"}},
        }}}}

        with TestClient(app) as client:
            response = client.post("/reports", headers=PREMIUM, json=body)

        chunks = ndjson(response)
        assert response.status_code == 200
        income = chunks[0]["data"]["userData"]["income"]
        assert income["grossAnnualSalary"] == 52000
        assert income["monthlyTakeHome"] == pytest.approx(3250)
        assert income["pensionContributions"]["employee"] == pytest.approx(2600)
        assert chunks[-1] == {"type": "complete"}

    def test_computed_chunk(self, app, premium_user):
        with TestClient(app) as client:
            chunks = ndjson(client.post("/reports", headers=PREMIUM))

        computed = chunks[0]["data"]
        assert computed["isPremium"] is True
        assert computed["userName"] == "alex"
        assert computed["userData"]["commute"]["hasCommute"] is True
        assert computed["generatedAt"].startswith("20")

    def test_monthly_limit(self, app, analysis, store, premium_user):
        store.entitlements["premium-user"].reports_generated_this_month = 5

        with TestClient(app) as client:
            response = client.post("/reports", headers=PREMIUM)

        assert response.status_code == 429
        body = response.json()
        assert body["reportsUsed"] == 5
        assert body["limit"] == 5
        assert analysis.calls == []

    def test_counter_from_previous_month(self, app, dependencies, store, premium_user):
        entitlement = store.entitlements["premium-user"]
        entitlement.reports_generated_this_month = 5
        entitlement.last_report_generated_at = datetime(2025, 2, 28, 18, 0, tzinfo=timezone.utc)

        with TestClient(app) as client:
            response = client.post("/reports", headers=PREMIUM)
            drain_usage(client, dependencies)

        assert response.status_code == 200
        assert ndjson(response)[-1] == {"type": "complete"}
        assert store.entitlements["premium-user"].reports_generated_this_month == 1

    def test_legacy_scenario_fallback(self, app, store, analysis):
        store.put_entitlement(premium_entitlement(user_id="premium-user"))
        store.add_legacy_scenario(make_legacy(user_id="premium-user"))

        with TestClient(app) as client:
            chunks = ndjson(client.post("/reports", headers=PREMIUM))

        assert chunks[0]["data"]["userData"]["income"]["grossAnnualSalary"] == 42000
        assert chunks[-1] == {"type": "complete"}

    def test_request_id_echoed(self, app, premium_user):
        with TestClient(app) as client:
            response = client.post("/reports", headers={**PREMIUM, "X-Request-ID": "req-42"})

        assert response.headers["x-request-id"] == "req-42"


class TestEligibility:

    def test_new_free_user_without_scenario(self, app):
        with TestClient(app) as client:
            body = client.get("/reports/eligibility", headers=FREE).json()

        assert body["eligible"] is False
        assert body["needsCalculation"] is True
        assert body["tier"] == "free"

    def test_free_user_with_scenario(self, app, free_user):
        with TestClient(app) as client:
            body = client.get("/reports/eligibility", headers=FREE).json()

        assert body["eligible"] is True
        assert body["remaining"] == 1
        assert body["hasComparisons"] is False

    def test_free_user_after_preview(self, app, store, free_user):
        with TestClient(app) as client:
            client.portal.call(store.mark_preview_generated, "free-user", NOW)
            body = client.get("/reports/eligibility", headers=FREE).json()

        assert body["eligible"] is False
        assert body["upgradeRequired"] is True
        assert body["reason"].startswith("You have used your free report")

    def test_premium_user(self, app, premium_user):
        with TestClient(app) as client:
            body = client.get("/reports/eligibility", headers=PREMIUM).json()

        assert body["eligible"] is True
        assert body["isPremium"] is True
        assert body["reportsUsed"] == 4
        assert body["remaining"] == 1
        assert body["comparisonCount"] == 1


class TestHealth:

    def test_health(self, app, settings):
        with TestClient(app) as client:
            response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "version": settings.version}
        assert response.headers["x-request-id"]


class TestReportClient:

    def make_client(self, app, token):
        transport = httpx.ASGITransport(app=app)
        http = httpx.AsyncClient(transport=transport, base_url="http://testserver")
        return ReportClient("http://testserver", token, client=http)

    @pytest.mark.asyncio
    async def test_premium_stream_decoded(self, app, dependencies, analysis, store, premium_user):
        analysis.responses[StageId.RISK_ASSESSMENT] = AnalysisError("backend down")
        phases = []

        result = await self.make_client(app, "premium-token").generate(on_phase=phases.append)
        await dependencies.recorder.drain()

        assert result.is_premium is True
        assert result.risk_assessment.overall_risk_rating == "Moderate"
        assert result.roadmap.personalized_motivation == "At 32 you have time on your side."
        assert phases == [ReportPhase.OPTIMIZING, ReportPhase.BUILDING_ROADMAP, ReportPhase.COMPLETE]
        assert store.entitlements["premium-user"].reports_generated_this_month == 5

    @pytest.mark.asyncio
    async def test_free_preview_json(self, app, free_user):
        result = await self.make_client(app, "free-token").generate()

        assert result.is_premium is False
        assert result.optimization_analysis.quick_wins == []

    @pytest.mark.asyncio
    async def test_denied(self, app, store):
        store.put_entitlement(premium_entitlement(user_id="premium-user", used=5))

        with pytest.raises(ReportRequestError) as exc_info:
            await self.make_client(app, "premium-token").generate()

        assert exc_info.value.status_code == 429
        assert not exc_info.value.upgrade_required
        assert exc_info.value.body["limit"] == 5

    @pytest.mark.asyncio
    async def test_eligibility(self, app, premium_user):
        async with self.make_client(app, "premium-token") as client:
            body = await client.eligibility()
        assert body["reportsUsed"] == 4

    @pytest.mark.asyncio
    async def test_injected_client_without_base_url(self, app, premium_user):
        http = httpx.AsyncClient(transport=httpx.ASGITransport(app=app))

        async with ReportClient("http://testserver", "premium-token", client=http) as client:
            body = await client.eligibility()
        await http.aclose()

        assert str(http.base_url) == "http://testserver/"
        assert body["eligible"] is True

    @pytest.mark.asyncio
    async def test_injected_client_with_other_base_url(self):
        http = httpx.AsyncClient(base_url="http://elsewhere")

        with pytest.raises(ValueError, match="elsewhere"):
            ReportClient("http://testserver", "premium-token", client=http)
        await http.aclose()
