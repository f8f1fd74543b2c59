import celery_app as worker


def test_tasks_are_registered():
    assert "tasks.refresh_cards" in worker.celery_app.tasks
    assert "tasks.ping" in worker.celery_app.tasks


def test_beat_schedule_follows_interval(make_settings):
    schedule = worker.beat_schedule(make_settings(refresh_interval_seconds=900))
    assert schedule == {"refresh-cards": {"task": "tasks.refresh_cards", "schedule": 900.0}}


def test_zero_interval_disables_beat(make_settings):
    assert worker.beat_schedule(make_settings(refresh_interval_seconds=0)) == {}


def test_create_celery_uses_settings(make_settings):
    app = worker.create_celery(make_settings(celery_task_default_queue="cards", refresh_interval_seconds=60))
    assert app.conf.task_default_queue == "cards"
    assert app.conf.beat_schedule["refresh-cards"]["schedule"] == 60.0


def test_refresh_cards_writes_into_out_dir(monkeypatch, mock_settings, tmp_path):
    monkeypatch.setattr(worker, "s", mock_settings)
    result = worker.refresh_cards.run(str(tmp_path / "beat"))
    assert result["ok"] is True
    assert len(result["written"]) == 6
    assert (tmp_path / "beat" / "github-stats.svg").exists()


def test_ping():
    assert worker.ping.run({"x": 1})["payload"] == {"x": 1}
