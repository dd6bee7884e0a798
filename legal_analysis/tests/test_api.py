"""
Tests for the Legal Analysis API
================================

Runs against a temporary SQLite store with the provider and settings
dependencies overridden.
"""

import pytest
from fastapi.testclient import TestClient

import legal_analysis.api as api_module
from legal_analysis.api import app, get_app_settings, get_provider, get_store
from legal_analysis.config import Settings
from legal_analysis.errors import StoreError
from legal_analysis.store import JobStore


class UnavailableStore(JobStore):
    def get_job(self, case_id):
        raise StoreError("connection refused")


@pytest.fixture
def settings():
    return Settings(run_inline=True)


@pytest.fixture
def client(sqlalchemy_db, fake_provider, settings):
    app.dependency_overrides[get_store] = lambda: JobStore()
    app.dependency_overrides[get_provider] = lambda: fake_provider
    app.dependency_overrides[get_app_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


def _url(case_id):
    return f"/api/v1/cases/{case_id}/legal-analysis"


# =============================================================================
# Service endpoints
# =============================================================================

class TestServiceEndpoints:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "llm_mode" in data
        assert "timestamp" in data

    def test_jurisdictions(self, client):
        response = client.get("/api/v1/jurisdictions")
        assert response.status_code == 200
        assert {"code": "US-CA", "name": "California"} in response.json()["jurisdictions"]


# =============================================================================
# Start analysis
# =============================================================================

class TestStartAnalysis:
    """POST /api/v1/cases/{case_id}/legal-analysis"""

    def test_inline_run_with_input(self, client, contract_input):
        response = client.post(
            _url(contract_input.case_id),
            json={"input": contract_input.model_dump(mode="json")},
        )
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "completed"
        assert data["phase"] == "completed"
        assert data["progress"] == 100
        assert data["legal_issues"][0]["category"] == "breach_of_contract"
        assert data["damages_calculation"]["supported_total"] == 3750
        assert data["damages_calculation"]["recommended_total"] > 3750
        assert data["award_recommendation"]["prevailing_party"] == "split"
        assert data["metadata"]["fallbacks"]["issue_classification"] is True

    def test_stored_input_used_when_body_omitted(self, client, store, goods_input):
        store.save_input(goods_input)
        response = client.post(_url(goods_input.case_id))

        assert response.status_code == 200
        assert response.json()["damages_calculation"]["recommended_total"] >= 1000

    def test_provider_closed_after_inline_run(self, client, fake_provider, contract_input):
        client.post(_url(contract_input.case_id), json={"input": contract_input.model_dump(mode="json")})
        assert fake_provider.closed is True

    def test_missing_input(self, client):
        response = client.post(_url("case-unknown"))
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "input_unavailable"

    def test_case_id_mismatch(self, client, contract_input):
        response = client.post(_url("other-case"), json={"input": contract_input.model_dump(mode="json")})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "bad_request"

    def test_invalid_input(self, client):
        response = client.post(_url("case-1"), json={"input": {"case_id": "case-1"}})
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "validation_error"

    def test_completed_analysis_returned_without_rerun(self, client, fake_provider, contract_input):
        first = client.post(_url(contract_input.case_id), json={"input": contract_input.model_dump(mode="json")})
        calls = len(fake_provider.calls)

        second = client.post(_url(contract_input.case_id))

        assert second.status_code == 200
        assert second.json()["job_id"] == first.json()["job_id"]
        assert len(fake_provider.calls) == calls

    def test_force_reruns(self, client, fake_provider, contract_input):
        client.post(_url(contract_input.case_id), json={"input": contract_input.model_dump(mode="json")})
        calls = len(fake_provider.calls)

        response = client.post(_url(contract_input.case_id), json={"force": True})

        assert response.status_code == 200
        assert len(fake_provider.calls) == calls + 4

    def test_conflict_while_processing(self, client, store, contract_input):
        store.save_input(contract_input)
        store.start_job(contract_input.case_id)

        response = client.post(_url(contract_input.case_id))
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "conflict"

    def test_queued_when_not_inline(self, client, settings, monkeypatch, contract_input):
        enqueued = []

        def fake_enqueue(func, *args, **kwargs):
            enqueued.append((func, args, kwargs))
            return {"job_id": kwargs["job_id"], "status": "queued"}

        monkeypatch.setattr(api_module, "enqueue_job", fake_enqueue)
        settings.run_inline = False

        response = client.post(_url(contract_input.case_id), json={"input": contract_input.model_dump(mode="json")})

        assert response.status_code == 202
        assert response.json()["status"] == "pending"
        func, args, kwargs = enqueued[0]
        assert func is api_module.task_run_legal_analysis
        assert args == (contract_input.case_id,)
        assert kwargs["job_id"] == f"legal-analysis-{contract_input.case_id}"
        assert kwargs["force"] is False


# =============================================================================
# Status
# =============================================================================

class TestGetAnalysis:

    def test_not_found(self, client):
        response = client.get(_url("case-unknown"))
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "not_found"

    def test_status_after_run(self, client, contract_input):
        client.post(_url(contract_input.case_id), json={"input": contract_input.model_dump(mode="json")})

        response = client.get(_url(contract_input.case_id))
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert data["tokens_used"] == 0
        assert len(data["conclusions_of_law"]) == 2

    def test_store_unavailable(self, client):
        app.dependency_overrides[get_store] = lambda: UnavailableStore()
        response = client.get(_url("case-1"))
        assert response.status_code == 503
        assert response.json()["error"]["code"] == "store_unavailable"
