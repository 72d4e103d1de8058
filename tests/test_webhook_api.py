from fastapi.testclient import TestClient

from categorizer.jobs.queue import QueueStoppedError, SequentialTaskQueue
from categorizer.main import create_app

from conftest import FakeClassifier, FakeFirefly


def _jobs(client):
    response = client.get("/jobs")
    assert response.status_code == 200
    return response.json()


def test_valid_webhook_is_queued_and_processed(client, webhook_payload, firefly, wait_for):
    response = client.post("/webhook", json=webhook_payload())
    assert response.status_code == 200
    assert response.text == "Queued"
    assert response.headers["content-type"].startswith("text/plain")
    assert response.headers.get("X-Request-ID")

    assert wait_for(lambda: _jobs(client)[0]["status"] == "finished")
    job = _jobs(client)[0]
    assert job["data"]["destinationName"] == "Cafe"
    assert job["data"]["description"] == "coffee"
    assert job["data"]["category"] == "Coffee"
    assert firefly.commits[0][0] == "1"
    assert firefly.commits[0][2] == "2"


def test_invalid_webhook_returns_reason_and_creates_no_job(client, webhook_payload):
    response = client.post("/webhook", json=webhook_payload(type="deposit"))
    assert response.status_code == 400
    assert response.text == "content.transactions[0].type has to be 'withdrawal'. Transaction will be ignored."

    payload = webhook_payload()
    payload["content"]["transactions"] = []
    response = client.post("/webhook", json=payload)
    assert response.status_code == 400
    assert "No transactions are available" in response.text
    assert _jobs(client) == []


def test_non_json_body_is_rejected(client):
    response = client.post("/webhook", content=b"not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400
    assert _jobs(client) == []


def test_unmatched_classification_finishes_without_commit(webhook_payload, wait_for):
    firefly = FakeFirefly()
    app = create_app(firefly=firefly, classifier=FakeClassifier(answer="Something else"), queue_timeout_seconds=5)
    with TestClient(app) as client:
        assert client.post("/webhook", json=webhook_payload()).status_code == 200
        assert wait_for(lambda: _jobs(client)[0]["status"] == "finished")
        job = _jobs(client)[0]
    assert job["data"]["category"] is None
    assert job["data"]["response"] == "Something else"
    assert firefly.commits == []


def test_failed_processing_leaves_job_in_progress(webhook_payload, wait_for):
    firefly = FakeFirefly(error=ConnectionError("firefly unreachable"))
    app = create_app(firefly=firefly, classifier=FakeClassifier(), queue_timeout_seconds=5)
    with TestClient(app) as client:
        assert client.post("/webhook", json=webhook_payload()).status_code == 200
        assert wait_for(lambda: firefly.fetches == 1)
        assert wait_for(lambda: client.get("/health/detailed").json()["checks"]["queue"]["failed"] == 1)
        assert _jobs(client)[0]["status"] == "in_progress"


def test_websocket_streams_snapshot_then_job_events(client, webhook_payload):
    with client.websocket_connect("/ws") as websocket:
        snapshot = websocket.receive_json()
        assert snapshot == {"event": "jobs", "data": []}

        assert client.post("/webhook", json=webhook_payload()).status_code == 200

        messages = [websocket.receive_json() for _ in range(4)]

    assert [m["event"] for m in messages] == ["job created", "job updated", "job updated", "job updated"]
    assert [m["data"]["status"] for m in messages] == ["created", "in_progress", "in_progress", "finished"]
    assert len({m["data"]["id"] for m in messages}) == 1
    assert messages[0]["data"]["data"] == {"destinationName": "Cafe", "description": "coffee"}
    assert messages[2]["data"]["data"]["category"] == "Coffee"


def test_late_observer_gets_existing_jobs(client, webhook_payload, wait_for):
    client.post("/webhook", json=webhook_payload(destination_name="Bakery", description="bread"))
    assert wait_for(lambda: _jobs(client)[0]["status"] == "finished")

    with client.websocket_connect("/ws") as websocket:
        snapshot = websocket.receive_json()
    assert snapshot["event"] == "jobs"
    assert len(snapshot["data"]) == 1
    assert snapshot["data"][0]["data"]["destinationName"] == "Bakery"
    assert snapshot["data"][0]["status"] == "finished"


def test_jobs_are_processed_in_arrival_order(webhook_payload, wait_for):
    classifier = FakeClassifier(delay=0.02)
    app = create_app(firefly=FakeFirefly(), classifier=classifier, queue_timeout_seconds=5)
    with TestClient(app) as client:
        for i in range(3):
            assert client.post("/webhook", json=webhook_payload(destination_name=f"Shop {i}")).status_code == 200
        assert wait_for(lambda: [j["status"] for j in _jobs(client)] == ["finished"] * 3)
    assert [call[1] for call in classifier.calls] == ["Shop 0", "Shop 1", "Shop 2"]


def test_health_endpoints(client):
    basic = client.get("/health").json()
    assert basic["status"] == "healthy"

    detailed = client.get("/health/detailed").json()
    assert detailed["status"] == "healthy"
    assert detailed["checks"]["queue"]["concurrency"] == 1
    assert detailed["checks"]["queue"]["timeout_seconds"] == 5
    assert detailed["checks"]["jobs"]["total"] == 0


def test_queue_uses_thirty_second_timeout_by_default():
    app = create_app(firefly=FakeFirefly(), classifier=FakeClassifier())
    with TestClient(app) as client:
        queue = client.get("/health/detailed").json()["checks"]["queue"]
        assert queue["timeout_seconds"] == 30
        assert queue["stopped"] is False


def test_webhook_is_refused_once_queue_is_stopped(client, webhook_payload):
    client.portal.call(client.app.state.task_queue.stop)

    response = client.post("/webhook", json=webhook_payload())
    assert response.status_code == 503
    assert response.text == "Queue is not accepting jobs"
    assert _jobs(client) == []


class _ClosingQueue(SequentialTaskQueue):
    def push(self, work, *, name=None):
        raise QueueStoppedError("Queue stopped")


def test_job_is_finished_when_queue_stops_during_webhook(client, webhook_payload, classifier):
    client.app.state.task_queue = _ClosingQueue(timeout_seconds=1)

    response = client.post("/webhook", json=webhook_payload())
    assert response.status_code == 503
    jobs = _jobs(client)
    assert len(jobs) == 1
    assert jobs[0]["status"] == "finished"
    assert classifier.calls == []


def test_root_lists_endpoints_when_ui_disabled(client):
    body = client.get("/").json()
    assert body["webhook"] == "/webhook"
    assert body["events"] == "/ws"


def test_ui_is_served_when_enabled():
    app = create_app(firefly=FakeFirefly(), classifier=FakeClassifier(), enable_ui=True)
    with TestClient(app) as client:
        response = client.get("/")
        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert "/ws" in response.text
        # API routes still win over the static mount
        assert client.get("/jobs").json() == []
