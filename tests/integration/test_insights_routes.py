from datetime import date

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from zlatko.features.last_contact.domain import ProspectContact
from zlatko.routes import insights
from zlatko.services.insights_service import EngagementInsights, InsightsError


class StubProspects:
    prospects: dict[str, ProspectContact] = {}

    @classmethod
    async def get_prospect(cls, user_id, prospect_id):
        prospect = cls.prospects.get(prospect_id)
        if prospect and prospect.user_id == user_id:
            return prospect
        return None


class StubInsights:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.inputs = []

    async def generate_insights(self, data, prospect_id=None):
        self.inputs.append(data)
        if self.error:
            raise self.error
        return EngagementInsights(
            insights="Highly engaged buyer.",
            sentiment="positive",
            risk_level="low",
            engagement_score=96,
            recommended_action="Send proposal",
            health="Active",
            days_since_contact=2,
        )


@pytest.fixture
def client(apply_auth_override, monkeypatch):
    StubProspects.prospects = {
        "p-1": ProspectContact(
            id="p-1", user_id="user-123", company="Acme", last_contact_date=date(2024, 5, 30)
        )
    }
    monkeypatch.setattr("zlatko.routes.insights.ProspectRepository", StubProspects)
    app = FastAPI()
    apply_auth_override(app)
    app.include_router(insights.router)
    return TestClient(app)


def test_insights_use_stored_recency(client, monkeypatch):
    service = StubInsights()
    monkeypatch.setattr("zlatko.routes.insights.insights_service", service)

    response = client.post(
        "/prospects/p-1/insights", json={"status": "Qualified", "dealValue": 12000}
    )

    assert response.status_code == 200
    assert response.json()["health"] == "Active"
    [data] = service.inputs
    assert data.company == "Acme"
    assert data.last_contact_date == date(2024, 5, 30)
    assert data.deal_value == 12000


def test_insights_unknown_prospect(client, monkeypatch):
    monkeypatch.setattr("zlatko.routes.insights.insights_service", StubInsights())

    assert client.post("/prospects/p-404/insights", json={}).status_code == 404


def test_insights_generation_failure_is_502(client, monkeypatch):
    monkeypatch.setattr(
        "zlatko.routes.insights.insights_service",
        StubInsights(error=InsightsError("Failed to generate insights: timeout")),
    )

    response = client.post("/prospects/p-1/insights", json={})

    assert response.status_code == 502
    assert response.json()["error"] == "Failed to generate insights"
