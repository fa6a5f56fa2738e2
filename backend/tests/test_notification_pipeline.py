# Overview: Pytest coverage for seen-set dedup, alerting and debounced refetch.

import logging

import pytest

from partner_portal.rowstore import EVENT_DELETE, EVENT_INSERT, EVENT_UPDATE, ChangeEvent
from partner_portal.services.notification_service import (
    NotificationPipeline,
    NotificationPlaybackFailure,
    SoundAlert,
)


def insert(row_id):
    return ChangeEvent(EVENT_INSERT, "restaurant_table_orders", {"id": row_id})


def update(row_id):
    return ChangeEvent(EVENT_UPDATE, "restaurant_table_orders", {"id": row_id})


class Recorder:
    def __init__(self, rows=None):
        self.rows = rows or []
        self.refetches = 0
        self.alerts = []

    def refetch(self):
        self.refetches += 1
        return list(self.rows)

    def alert(self, row):
        self.alerts.append(row["id"])


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def pipeline(recorder, scheduler):
    return NotificationPipeline(recorder.refetch, alert=recorder.alert, scheduler=scheduler, debounce_seconds=0.15)


class TestDedup:
    def test_duplicate_insert_alerts_once(self, pipeline, recorder):
        pipeline.on_change_event(insert("o-1"))
        pipeline.on_change_event(insert("o-1"))

        assert recorder.alerts == ["o-1"]
        assert pipeline.seen_ids == {"o-1"}
        assert pipeline.alerts_played == 1

    def test_primed_rows_never_alert(self, pipeline, recorder):
        pipeline.prime([{"id": "o-1"}, {"id": "o-2"}])
        pipeline.on_change_event(insert("o-2"))
        pipeline.on_change_event(insert("o-3"))

        assert recorder.alerts == ["o-3"]

    def test_updates_and_deletes_never_alert(self, pipeline, recorder, scheduler):
        pipeline.on_change_event(update("o-9"))
        pipeline.on_change_event(ChangeEvent(EVENT_DELETE, "restaurant_table_orders", {"id": "o-8"}))

        assert recorder.alerts == []
        assert "o-9" not in pipeline.seen_ids
        # Both still ask for a refresh
        assert len(scheduler.pending) == 1

    def test_ids_compared_as_strings(self, pipeline, recorder):
        pipeline.prime([{"id": 7}])
        pipeline.on_change_event(insert("7"))
        assert recorder.alerts == []

    def test_refetch_result_extends_seen_set(self, recorder, scheduler):
        recorder.rows = [{"id": "o-5"}]
        pipeline = NotificationPipeline(recorder.refetch, alert=recorder.alert, scheduler=scheduler)

        pipeline.refetch_now()
        pipeline.on_change_event(insert("o-5"))

        assert recorder.alerts == []


class TestDebounce:
    def test_burst_of_five_events_refetches_once(self, pipeline, recorder, scheduler):
        for i in range(5):
            pipeline.on_change_event(update(f"o-{i}"))

        assert len(scheduler.timers) == 5
        assert len(scheduler.pending) == 1
        assert scheduler.pending[0].delay == 0.15

        scheduler.run_pending()

        assert recorder.refetches == 1
        assert pipeline.refetch_count == 1

    def test_separate_windows_refetch_separately(self, pipeline, recorder, scheduler):
        pipeline.on_change_event(update("o-1"))
        scheduler.run_pending()
        pipeline.on_change_event(update("o-1"))
        scheduler.run_pending()

        assert recorder.refetches == 2

    def test_refetch_failure_is_logged_and_kept_quiet(self, scheduler, caplog):
        def broken():
            raise RuntimeError("backend down")

        pipeline = NotificationPipeline(broken, scheduler=scheduler)
        pipeline.prime([{"id": "o-1"}])
        pipeline.on_change_event(update("o-1"))

        with caplog.at_level(logging.ERROR, logger="partner_portal.services.notification_service"):
            scheduler.run_pending()

        assert pipeline.refetch_count == 0
        assert pipeline.seen_ids == {"o-1"}
        assert "Background refetch failed" in caplog.text


class TestAlertFailures:
    def test_playback_failure_swallowed_and_refetch_still_scheduled(self, recorder, scheduler):
        def locked(row):
            raise NotificationPlaybackFailure("audio locked")

        pipeline = NotificationPipeline(recorder.refetch, alert=locked, scheduler=scheduler)
        pipeline.on_change_event(insert("o-1"))

        assert pipeline.alerts_played == 0
        assert "o-1" in pipeline.seen_ids
        scheduler.run_pending()
        assert recorder.refetches == 1

    def test_unexpected_alert_error_is_logged(self, recorder, scheduler, caplog):
        def broken(row):
            raise RuntimeError("boom")

        pipeline = NotificationPipeline(recorder.refetch, alert=broken, scheduler=scheduler)
        with caplog.at_level(logging.ERROR, logger="partner_portal.services.notification_service"):
            pipeline.on_change_event(insert("o-1"))

        assert "Alert playback failed" in caplog.text
        assert len(scheduler.pending) == 1


class TestLifecycle:
    def test_close_cancels_timers_and_ignores_events(self, pipeline, recorder, scheduler):
        pipeline.on_change_event(update("o-1"))
        pipeline.close()

        assert pipeline.closed
        assert scheduler.pending == []

        pipeline.on_change_event(insert("o-2"))
        assert recorder.alerts == []
        assert scheduler.pending == []

    def test_polling_rearms_itself(self, recorder, scheduler):
        pipeline = NotificationPipeline(
            recorder.refetch, scheduler=scheduler, debounce_seconds=0.1, poll_interval_seconds=10
        )
        pipeline.start_polling()
        pipeline.start_polling()
        assert [t.delay for t in scheduler.pending] == [10]

        scheduler.run_pending()
        # Poll tick queued a debounced refetch and the next poll
        assert sorted(t.delay for t in scheduler.pending) == [0.1, 10]

        pipeline.close()
        assert scheduler.pending == []

    def test_polling_disabled_by_zero_interval(self, recorder, scheduler):
        pipeline = NotificationPipeline(recorder.refetch, scheduler=scheduler, poll_interval_seconds=0)
        pipeline.start_polling()
        assert scheduler.pending == []


class TestSoundAlert:
    def test_locked_until_user_gesture(self):
        alert = SoundAlert("/sound.wav")
        with pytest.raises(NotificationPlaybackFailure):
            alert.play({"id": "o-1"})

        alert.unlock()
        alert.play({"id": "o-1"})

        assert alert.drain() == [{"type": "sound", "url": "/sound.wav", "row_id": "o-1"}]
        assert alert.drain() == []

    def test_missing_asset(self):
        alert = SoundAlert(None)
        alert.unlock()
        with pytest.raises(NotificationPlaybackFailure):
            alert.play({"id": "o-1"})

    def test_toasts_queue_with_sounds(self):
        alert = SoundAlert("/sound.wav")
        alert.toast("Order updated", "T-001 is now READY")
        alert.toast("Update failed", "backend down", kind="error")

        kinds = [n["kind"] for n in alert.drain()]
        assert kinds == ["success", "error"]

    def test_queue_is_bounded(self):
        alert = SoundAlert("/sound.wav", max_queued=3)
        alert.unlock()
        for i in range(5):
            alert.play({"id": f"o-{i}"})

        assert [n["row_id"] for n in alert.drain()] == ["o-2", "o-3", "o-4"]
