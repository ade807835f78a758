"""HTTP-level tests for the FastAPI app over a seeded in-memory database."""

import pytest
from fastapi.testclient import TestClient

from semspine.api.app import create_app
from semspine.api.deps import get_connection, get_llm_client
from semspine.api.settings import SemSpineAPISettings

API = "/api/v1"
LYRICS = "quux blorf zorp frob plugh"


@pytest.fixture
def client(conn, store, llm_client, tmp_path):
    app = create_app(settings=SemSpineAPISettings(database_url=":memory:", data_dir=tmp_path, chunk_size=4))

    def shared_connection():
        yield conn

    app.dependency_overrides[get_connection] = shared_connection
    app.dependency_overrides[get_llm_client] = lambda: llm_client
    return TestClient(app)


def _song(client, target="gaucho", lyrics=LYRICS):
    return client.post(f"{API}/songs", json={"target_id": target, "title": "Canção", "lyrics": lyrics})


def _start(client, target="gaucho"):
    return client.post(f"{API}/jobs", json={"target_id": target})


class TestHealth:
    def test_healthy(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["service"] == "semantic-spine"
        assert body["database"]["backend"] == "sqlite"

    def test_request_id_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"
        assert "X-Process-Time-Ms" in response.headers

    def test_request_id_generated(self, client):
        assert client.get("/health").headers["X-Request-ID"]


class TestTagsets:
    def test_list_active(self, client):
        response = client.get(f"{API}/tagsets", params={"status": "active"})
        assert response.status_code == 200
        body = response.json()
        codes = [t["code"] for t in body["data"]]
        assert "NC" in codes
        assert "SE.TRI" in codes
        assert body["page"]["total"] == len(codes)

    def test_get_unknown_is_404(self, client):
        response = client.get(f"{API}/tagsets/ZZ")
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_propose_then_approve(self, client):
        created = client.post(f"{API}/tagsets", json={"code": "SE.RAI", "name": "Raiva", "created_by": "ana"})
        assert created.status_code == 201
        assert created.json()["data"]["status"] == "pending"

        approved = client.post(f"{API}/tagsets/SE.RAI/approve", json={"reviewer": "bia"})
        assert approved.status_code == 200
        assert approved.json()["data"]["status"] == "active"
        assert approved.json()["data"]["approved_by"] == "bia"

    def test_propose_then_reject(self, client):
        client.post(f"{API}/tagsets", json={"code": "SE.RAI", "name": "Raiva"})
        rejected = client.post(f"{API}/tagsets/SE.RAI/reject", json={"reviewer": "bia", "reason": "duplicado"})
        assert rejected.json()["data"]["status"] == "rejected"
        assert rejected.json()["data"]["rejection_reason"] == "duplicado"

    def test_duplicate_is_409(self, client):
        response = client.post(f"{API}/tagsets", json={"code": "NA", "name": "Natureza"})
        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"

    def test_malformed_code_names_the_field(self, client):
        response = client.post(f"{API}/tagsets", json={"code": "natureza!", "name": "x"})
        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "VALIDATION_FAILED"
        assert body["errors"][0]["field"] == "code"

    def test_bad_status_filter(self, client):
        assert client.get(f"{API}/tagsets", params={"status": "maybe"}).status_code == 400


class TestJobs:
    def test_add_song_and_targets(self, client):
        response = _song(client)
        assert response.status_code == 201
        assert response.json()["data"]["target_id"] == "gaucho"
        targets = client.get(f"{API}/targets").json()["data"]
        assert [t["target_id"] for t in targets] == ["gaucho"]

    def test_start_and_inspect(self, client):
        _song(client)
        started = _start(client)
        assert started.status_code == 201
        job = started.json()["data"]
        assert job["status"] == "iniciado"
        assert job["total_words"] == 5
        assert job["chunk_size"] == 4

        detail = client.get(f"{API}/jobs/{job['id']}").json()["data"]
        assert detail["progress"]["job_id"] == job["id"]
        assert detail["progress"]["progress"] == 0.0

    def test_second_start_conflicts(self, client):
        _song(client)
        _start(client)
        response = _start(client)
        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"

    def test_target_without_words(self, client):
        response = _start(client, target="ninguem")
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_FAILED"

    def test_body_validation(self, client):
        assert client.post(f"{API}/jobs", json={"target_id": ""}).status_code == 422

    def test_unknown_job_is_404(self, client):
        assert client.get(f"{API}/jobs/nope").status_code == 404

    def test_tick_and_song_progress(self, client):
        _song(client)
        job_id = _start(client).json()["data"]["id"]

        tick = client.post(f"{API}/jobs/{job_id}/tick")
        assert tick.status_code == 200
        data = tick.json()["data"]
        assert data["outcome"] == "advanced"
        assert data["words"] == 4
        assert data["job"]["processed_words"] == 4

        songs = client.get(f"{API}/jobs/{job_id}/songs").json()["data"]
        assert songs[0]["processed_words"] == 4
        assert songs[0]["status"] == "processing"

    def test_lifecycle(self, client):
        _song(client)
        job_id = _start(client).json()["data"]["id"]

        assert client.post(f"{API}/jobs/{job_id}/pause").json()["data"]["status"] == "pausado"
        assert client.post(f"{API}/jobs/{job_id}/resume").json()["data"]["status"] == "processando"
        assert client.post(f"{API}/jobs/{job_id}/cancel").json()["data"]["status"] == "cancelado"

        again = client.post(f"{API}/jobs/{job_id}/resume")
        assert again.status_code == 409

    def test_list_filters(self, client):
        _song(client, target="a")
        _song(client, target="b")
        first = _start(client, target="a").json()["data"]["id"]
        _start(client, target="b")
        client.post(f"{API}/jobs/{first}/cancel")

        cancelled = client.get(f"{API}/jobs", params={"status": "cancelado"}).json()
        assert [j["id"] for j in cancelled["data"]] == [first]
        assert client.get(f"{API}/jobs", params={"target_id": "b"}).json()["page"]["total"] == 1
        assert client.get(f"{API}/jobs", params={"status": "rodando"}).status_code == 400


class TestCache:
    def test_curate_then_list(self, client):
        curated = client.post(
            f"{API}/cache/curate",
            json={"word": "saudade", "context_hash": "h", "tag_code": "se.tri", "curator": "ana"},
        )
        assert curated.status_code == 200
        entry = curated.json()["data"]
        assert entry["tag_code"] == "SE.TRI"
        assert entry["source"] == "curation"
        assert entry["confidence"] == 1.0

        entries = client.get(f"{API}/cache/entries", params={"tag_code": "SE.TRI"}).json()["data"]
        assert [e["word"] for e in entries] == ["saudade"]
        assert client.get(f"{API}/cache/stats").json()["data"]["total_entries"] == 1

    def test_curate_unknown_tag(self, client):
        response = client.post(
            f"{API}/cache/curate",
            json={"word": "saudade", "context_hash": "h", "tag_code": "ZZ.NOPE", "curator": "ana"},
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "tag_code"

    def test_evict(self, client):
        assert client.post(f"{API}/cache/evict").json()["data"]["evicted"] == 0

    def test_reclassify_bad_mode(self, client):
        response = client.post(f"{API}/cache/reclassify-common", json={"mode": "maybe"})
        assert response.status_code == 400


class TestAnomalies:
    def test_sweep_on_quiet_system(self, client):
        response = client.post(f"{API}/anomalies/sweep")
        assert response.status_code == 200
        assert response.json()["data"]["anomalies"] == []
        listed = client.get(f"{API}/anomalies", params={"state": "all"}).json()
        assert listed["page"]["total"] == 0

    def test_unknown_is_404(self, client):
        assert client.get(f"{API}/anomalies/nope").status_code == 404
        assert client.post(f"{API}/anomalies/nope/resolve").status_code == 404

    def test_bad_state_filter(self, client):
        assert client.get(f"{API}/anomalies", params={"state": "closed"}).status_code == 400
