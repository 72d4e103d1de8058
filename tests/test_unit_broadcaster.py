from categorizer.jobs.registry import JobRegistry
from categorizer.services.broadcaster import JobEventBroadcaster

SEED = {"destinationName": "Cafe", "description": "coffee"}


def _broadcaster():
    registry = JobRegistry()
    broadcaster = JobEventBroadcaster(registry)
    broadcaster.start()
    return registry, broadcaster


def test_new_observer_receives_snapshot_first():
    registry, broadcaster = _broadcaster()
    registry.create_job(SEED)
    registry.create_job(SEED)

    observer = broadcaster.connect()
    messages = observer.pending()
    assert len(messages) == 1
    assert messages[0]["event"] == "jobs"
    assert messages[0]["data"] == [job.to_dict() for job in registry.get_jobs()]


def test_events_are_relayed_in_order_to_every_observer():
    registry, broadcaster = _broadcaster()
    first = broadcaster.connect()
    second = broadcaster.connect()

    job = registry.create_job(SEED)
    registry.set_job_in_progress(job.id)
    registry.update_job_data(job.id, {**SEED, "category": "Coffee"})
    registry.set_job_finished(job.id)

    for observer in (first, second):
        messages = observer.pending()
        assert [m["event"] for m in messages] == ["jobs", "job created", "job updated", "job updated", "job updated"]
        assert [m["data"]["status"] for m in messages[1:]] == ["created", "in_progress", "in_progress", "finished"]
        assert messages[3]["data"]["data"]["category"] == "Coffee"


def test_observer_connecting_mid_job_sees_current_state_then_updates():
    registry, broadcaster = _broadcaster()
    job = registry.create_job(SEED)
    registry.set_job_in_progress(job.id)

    observer = broadcaster.connect()
    registry.set_job_finished(job.id)

    snapshot, update = observer.pending()
    assert snapshot["data"][0]["status"] == "in_progress"
    assert update == {"event": "job updated", "data": registry.get_job(job.id).to_dict()}


def test_disconnected_observer_receives_nothing_more():
    registry, broadcaster = _broadcaster()
    observer = broadcaster.connect()
    observer.pending()
    broadcaster.disconnect(observer)
    registry.create_job(SEED)
    assert observer.pending() == []
    assert len(broadcaster) == 0


def test_stop_detaches_from_registry():
    registry, broadcaster = _broadcaster()
    observer = broadcaster.connect()
    observer.pending()
    broadcaster.stop()
    registry.create_job(SEED)
    assert observer.pending() == []
