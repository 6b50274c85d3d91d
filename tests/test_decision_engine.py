"""Tests for the decision engine: threshold, cooldown, relay and provenance."""

import queue
import threading

import numpy as np
import pytest

from taptic.decision_engine import (
    DecisionEngine, DetectionResult, FrameUpdate, NotificationIdAllocator
)


def drain(q):
    items = []
    while True:
        try:
            items.append(q.get_nowait())
        except queue.Empty:
            return items


@pytest.fixture
def engine(app_config, fake_sender, clock):
    return DecisionEngine(app_config, broadcast_sender=fake_sender, clock=clock)


class TestLocalFrames:
    """Test cases for on_local_frame."""

    def test_returns_top3_results(self, engine, labels):
        scores = np.array([0.1, 0.6, 0.05, 0.3, 0.2], dtype=np.float32)
        results = engine.on_local_frame(scores, labels, 0.5)

        assert [r.label for r in results] == ["Dog", "Doorbell", "Music"]
        assert results[0].score == pytest.approx(0.6)
        assert all(isinstance(r, DetectionResult) for r in results)

    def test_display_not_gated_by_threshold(self, engine, labels):
        scores = np.array([0.01, 0.02, 0.03, 0.04, 0.05], dtype=np.float32)
        results = engine.on_local_frame(scores, labels, 0.02)

        assert len(results) == 3
        assert engine.notification_queue.empty()

    def test_empty_scores_produce_nothing(self, engine, labels):
        assert engine.on_local_frame(None, labels) == []
        assert engine.on_local_frame(np.zeros(0), labels) == []
        assert engine.notification_queue.empty()

    def test_all_zero_scores_are_no_detections(self, engine, app_config, fake_sender, labels):
        app_config.set_notify_threshold(0.0)
        app_config.set_broadcast_send_enabled("Speech", True)

        results = engine.on_local_frame(np.zeros(len(labels)), labels, 0.02)

        assert results == []
        assert engine.notification_queue.empty()
        assert fake_sender.sent == []

    def test_nonzero_scores_notify_at_zero_threshold(self, engine, app_config, labels):
        app_config.set_notify_threshold(0.0)
        scores = np.array([0.0, 0.0, 0.0, 0.001, 0.0], dtype=np.float32)
        results = engine.on_local_frame(scores, labels)
        assert results[0].label == "Doorbell"
        assert "Doorbell" in [e.label for e in drain(engine.notification_queue)]

    def test_emergency_flag(self, engine, labels):
        scores = np.array([0.0, 0.0, 0.9, 0.0, 0.0], dtype=np.float32)
        results = engine.on_local_frame(scores, labels)
        assert results[0].label == "Smoke alarm"
        assert results[0].is_emergency
        assert not results[1].is_emergency

    def test_missing_label_falls_back_to_class_index(self, engine):
        scores = np.array([0.1, 0.2, 0.9], dtype=np.float32)
        results = engine.on_local_frame(scores, ("Speech",))
        assert results[0].label == "class_2"

    def test_every_result_is_considered(self, engine, labels):
        scores = np.array([0.5, 0.4, 0.3, 0.0, 0.0], dtype=np.float32)
        engine.on_local_frame(scores, labels)
        events = drain(engine.notification_queue)
        assert [e.label for e in events] == ["Speech", "Dog", "Smoke alarm"]
        assert all(e.is_local and e.origin_host is None for e in events)

    def test_frame_updates_published(self, app_config, clock, labels):
        frames = queue.Queue(maxsize=2)
        engine = DecisionEngine(app_config, frame_queue=frames, clock=clock)
        for level in (0.1, 0.2, 0.3):
            engine.on_local_frame(np.zeros(len(labels)), labels, level)

        updates = drain(frames)
        assert all(isinstance(u, FrameUpdate) for u in updates)
        assert all(u.results == [] for u in updates)
        # Oldest update dropped when the consumer falls behind
        assert [u.level for u in updates] == [0.2, 0.3]


class TestThreshold:
    """Test cases for the confidence threshold."""

    def test_below_threshold_discarded(self, engine):
        assert not engine.maybe_notify("Dog", 0.19, False, True, None)
        assert engine.notification_queue.empty()
        assert engine.last_notify_time("Dog") is None

    def test_at_threshold_notifies(self, engine):
        assert engine.maybe_notify("Dog", 0.20, False, True, None)

    def test_threshold_read_from_config(self, engine, app_config):
        app_config.set_notify_threshold(0.8)
        assert not engine.maybe_notify("Dog", 0.7, False, True, None)
        assert engine.maybe_notify("Dog", 0.85, False, True, None)

    def test_never_notifies_below_threshold(self, engine, clock):
        for i, score in enumerate(np.linspace(0.0, 0.199, 50)):
            clock.advance(10000)
            assert not engine.maybe_notify(f"Label {i}", float(score), False, True, None)
        assert engine.notification_queue.empty()


class TestCooldown:
    """Test cases for the per-label cooldown."""

    def test_alarm_scenario(self, engine, clock):
        assert engine.maybe_notify("Alarm", 0.35, True, True, None)

        clock.now = 2000
        assert not engine.maybe_notify("Alarm", 0.50, True, True, None)

        clock.now = 6000
        assert engine.maybe_notify("Alarm", 0.40, True, True, None)

        events = drain(engine.notification_queue)
        assert [e.score for e in events] == [0.35, 0.40]
        assert [e.timestamp_ms for e in events] == [0, 6000]

    def test_boundary_is_exactly_5000ms(self, engine, clock):
        engine.maybe_notify("Dog", 0.9, False, True, None)
        clock.now = 4999
        assert not engine.maybe_notify("Dog", 0.9, False, True, None)
        clock.now = 5000
        assert engine.maybe_notify("Dog", 0.9, False, True, None)

    def test_suppressed_call_does_not_extend_window(self, engine, clock):
        engine.maybe_notify("Dog", 0.9, False, True, None)
        clock.now = 3000
        engine.maybe_notify("Dog", 0.9, False, True, None)
        assert engine.last_notify_time("Dog") == 0

    def test_cooldown_keyed_on_normalized_label(self, engine, clock):
        assert engine.maybe_notify("Smoke Alarm", 0.9, True, True, None)
        clock.now = 1000
        assert not engine.maybe_notify("  smoke alarm ", 0.9, True, True, None)

    def test_labels_have_independent_cooldowns(self, engine):
        assert engine.maybe_notify("Dog", 0.9, False, True, None)
        assert engine.maybe_notify("Cat", 0.9, False, True, None)

    def test_remote_and_local_share_cooldown(self, engine, clock):
        assert engine.on_remote_event("Smoke alarm", "Kitchen Pi")
        clock.now = 1000
        assert not engine.maybe_notify("Smoke alarm", 0.9, True, True, None)
        clock.now = 5000
        assert engine.maybe_notify("Smoke alarm", 0.9, True, True, None)

    def test_concurrent_producers_notify_once(self, app_config):
        engine = DecisionEngine(app_config, clock=lambda: 0)
        barrier = threading.Barrier(8)

        def worker(i):
            barrier.wait()
            if i % 2:
                engine.on_remote_event("Siren", f"peer-{i}")
            else:
                engine.maybe_notify("Siren", 0.9, True, True, None)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(drain(engine.notification_queue)) == 1


class TestRelayAndProvenance:
    """Test cases for relay sending and notification contents."""

    def test_local_detection_relayed_when_enabled(self, engine, app_config, fake_sender):
        app_config.set_broadcast_send_enabled("Doorbell", True)
        engine.maybe_notify("Doorbell", 0.9, False, True, None)
        assert fake_sender.sent == ["Doorbell"]

    def test_local_detection_not_relayed_when_disabled(self, engine, fake_sender):
        engine.maybe_notify("Doorbell", 0.9, False, True, None)
        assert fake_sender.sent == []

    def test_remote_detection_never_relayed(self, engine, app_config, fake_sender):
        app_config.set_broadcast_send_enabled("Doorbell", True)
        engine.on_remote_event("Doorbell", "Hall Pi")
        assert fake_sender.sent == []

    def test_suppressed_detection_not_relayed(self, engine, app_config, fake_sender, clock):
        app_config.set_broadcast_send_enabled("Doorbell", True)
        engine.maybe_notify("Doorbell", 0.9, False, True, None)
        clock.now = 100
        engine.maybe_notify("Doorbell", 0.9, False, True, None)
        assert fake_sender.sent == ["Doorbell"]

    def test_remote_event_contents(self, engine):
        engine.on_remote_event("Smoke Alarm", "Kitchen Pi")
        event = engine.notification_queue.get_nowait()
        assert event.label == "Smoke Alarm"
        assert event.score == 1.0
        assert event.is_emergency
        assert not event.is_local
        assert event.origin_host == "Kitchen Pi"

    def test_remote_event_ignores_threshold_below_one(self, engine, app_config):
        app_config.set_notify_threshold(1.0)
        assert engine.on_remote_event("Dog", "Hall Pi")

    def test_notification_ids_increase(self, engine):
        engine.maybe_notify("Dog", 0.9, False, True, None)
        engine.maybe_notify("Cat", 0.9, False, True, None)
        events = drain(engine.notification_queue)
        assert [e.notification_id for e in events] == [1000, 1001]


class TestNotificationIdAllocator:

    def test_starts_at_base_and_increments(self):
        allocator = NotificationIdAllocator(start=5)
        assert [allocator.next_id() for _ in range(3)] == [5, 6, 7]
