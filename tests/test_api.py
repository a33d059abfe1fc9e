import pytest
from fastapi.testclient import TestClient

from agenda_scheduler import main
from agenda_scheduler.main import app
from agenda_scheduler.storage.job_store import RedisJobStore

from conftest import FakeRedis


@pytest.fixture
def client():
    # Entering the context runs startup, which creates the tables
    with TestClient(app) as test_client:
        yield test_client


def project_payload(project_id, **settings):
    return {
        "id": project_id,
        "title": "Plant Rollout",
        "settings": {
            "startDate": "2024-01-01",
            "endDate": "2024-03-29",
            "startOfDayTime": "09:00",
            "endOfDayTime": "17:00",
            "lunchTime": "12:00-13:00",
            "workingDays": ["monday", "tuesday", "wednesday", "thursday", "friday"],
            **settings,
        },
        "groups": [
            {
                "id": 1,
                "name": "Group A",
                "colorTag": "#4CAF50",
                "participants": [
                    {"id": 11, "name": "Ana", "roleId": 10},
                    {"id": 12, "name": "Ben"},
                ],
                "curricula": [
                    {
                        "curriculum": {
                            "id": 100,
                            "title": "Core",
                            "courses": [{"id": 1, "title": "Hydraulics", "duration": 120}],
                        },
                        "isActive": True,
                    }
                ],
            }
        ],
    }


def plan_payload(plan_id):
    return {
        "id": plan_id,
        "title": "Onboarding",
        "days": [
            {
                "dayNumber": 1,
                "modules": [
                    {"order": 1, "courseId": 100, "course": {"id": 100, "title": "Safety Basics", "duration": 120}},
                    {
                        "order": 2,
                        "supportActivityId": 500,
                        "supportActivity": {"id": 500, "title": "Site Walk", "duration": 60},
                    },
                ],
            }
        ],
    }


def seed(client, project_id, plan_id):
    assert client.put(f"/api/v1/projects/{project_id}", json=project_payload(project_id)).status_code == 200
    assert client.put(f"/api/v1/training-plans/{plan_id}", json=plan_payload(plan_id)).status_code == 200


class TestAgendaImportEndpoints:
    """Kickoff and polling of training-plan imports."""

    def test_import_runs_to_completion(self, client):
        seed(client, 101, 201)

        response = client.post("/api/v1/agenda/imports", json={"projectId": 101, "trainingPlanId": 201})
        assert response.status_code == 202
        body = response.json()
        assert body["success"] is True
        job_id = body["jobId"]

        # TestClient runs background tasks before returning the response
        status = client.get(f"/api/v1/agenda/imports/{job_id}").json()
        assert status["status"] == "completed"
        assert status["processed"] == status["total"] == 2
        assert status["warningCount"] == 0
        assert [e["title"] for e in status["events"]] == ["Safety Basics - Group A", "Site Walk"]

        events = client.get("/api/v1/projects/101/events").json()
        assert len(events) == 2
        course = events[0]
        assert course["groupId"] == 1
        assert sorted(course["participantIds"]) == [11, 12]
        assert course["start"].startswith("2024-01-01T09:00:00")
        assert events[1]["participantIds"] == []

    def test_second_import_respects_existing_events(self, client):
        seed(client, 102, 202)
        client.post("/api/v1/agenda/imports", json={"projectId": 102, "trainingPlanId": 202})
        client.post("/api/v1/agenda/imports", json={"projectId": 102, "trainingPlanId": 202})

        events = client.get("/api/v1/projects/102/events").json()
        assert len(events) == 4
        assert events[2]["start"].startswith("2024-01-01T12:00:00")

    def test_unknown_project_fails_job(self, client):
        response = client.post("/api/v1/agenda/imports", json={"projectId": 9999, "trainingPlanId": 1})
        assert response.status_code == 202

        status = client.get(f"/api/v1/agenda/imports/{response.json()['jobId']}").json()
        assert status["status"] == "failed"
        assert status["error"] == "Project not found"

    def test_unknown_job(self, client):
        assert client.get("/api/v1/agenda/imports/not-a-job").status_code == 404

    def test_missing_training_plan_id(self, client):
        assert client.post("/api/v1/agenda/imports", json={"projectId": 1}).status_code == 422


class TestProjectEndpoints:
    def test_id_mismatch_rejected(self, client):
        assert client.put("/api/v1/projects/5", json=project_payload(6)).status_code == 400

    def test_invalid_working_day_rejected(self, client):
        response = client.put("/api/v1/projects/7", json=project_payload(7, workingDays=["funday"]))
        assert response.status_code == 422


class TestCurriculumImportEndpoint:
    def test_curriculum_import(self, client):
        seed(client, 103, 203)

        response = client.post("/api/v1/curriculum/imports", json={"projectId": 103})
        assert response.status_code == 201
        body = response.json()
        assert body["importedCount"] == 2
        assert body["totalCourses"] == 1
        assert [e["title"] for e in body["events"]] == ["Hydraulics - Group A", "Lunch"]

    def test_unknown_project(self, client):
        assert client.post("/api/v1/curriculum/imports", json={"projectId": 9998}).status_code == 404

    def test_end_date_before_start(self, client):
        payload = project_payload(104, startDate="2024-01-06", endDate="2024-01-07")
        assert client.put("/api/v1/projects/104", json=payload).status_code == 200

        response = client.post("/api/v1/curriculum/imports", json={"projectId": 104})
        assert response.status_code == 400
        assert "Cannot schedule courses" in response.json()["detail"]


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["jobStore"] == {"backend": "memory", "status": "ok"}

    def test_unreachable_redis_reports_degraded(self, client, monkeypatch):
        store = RedisJobStore(client=FakeRedis(reachable=False), ttl_seconds=60)
        monkeypatch.setattr(main, "get_job_store", lambda: store)

        body = client.get("/health").json()
        assert body["status"] == "degraded"
        assert body["jobStore"]["status"] == "unavailable"
