"""Tests for the per-session notification cooldown."""

from hookwatch.lib.classifier import NotificationCategory
from hookwatch.lib.cooldown import NotificationCooldown


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestNotificationCooldown:
    def test_first_notification_allowed(self):
        cooldown = NotificationCooldown(window=30.0, clock=FakeClock())
        assert cooldown.allow("s1", NotificationCategory.STOP) is True

    def test_repeat_within_window_suppressed(self):
        clock = FakeClock()
        cooldown = NotificationCooldown(window=30.0, clock=clock)
        cooldown.allow("s1", NotificationCategory.STOP)
        clock.now += 10
        assert cooldown.allow("s1", NotificationCategory.STOP) is False

    def test_allowed_again_after_window(self):
        clock = FakeClock()
        cooldown = NotificationCooldown(window=30.0, clock=clock)
        cooldown.allow("s1", NotificationCategory.STOP)
        clock.now += 31
        assert cooldown.allow("s1", NotificationCategory.STOP) is True

    def test_suppressed_call_does_not_extend_window(self):
        clock = FakeClock()
        cooldown = NotificationCooldown(window=30.0, clock=clock)
        cooldown.allow("s1", NotificationCategory.IDLE_PROMPT)
        clock.now += 20
        assert cooldown.allow("s1", NotificationCategory.IDLE_PROMPT) is False
        clock.now += 11
        assert cooldown.allow("s1", NotificationCategory.IDLE_PROMPT) is True

    def test_permission_prompt_bypasses(self):
        cooldown = NotificationCooldown(window=30.0, clock=FakeClock())
        for _ in range(3):
            assert cooldown.allow("s1", NotificationCategory.PERMISSION_PROMPT) is True
        assert len(cooldown) == 0

    def test_sessions_and_categories_independent(self):
        cooldown = NotificationCooldown(window=30.0, clock=FakeClock())
        assert cooldown.allow("s1", NotificationCategory.STOP)
        assert cooldown.allow("s2", NotificationCategory.STOP)
        assert cooldown.allow("s1", NotificationCategory.IDLE_PROMPT)

    def test_zero_window_disables(self):
        cooldown = NotificationCooldown(window=0, clock=FakeClock())
        assert cooldown.allow("s1", NotificationCategory.STOP)
        assert cooldown.allow("s1", NotificationCategory.STOP)

    def test_expired_buckets_pruned(self):
        clock = FakeClock()
        cooldown = NotificationCooldown(window=30.0, clock=clock)
        cooldown.allow("s1", NotificationCategory.STOP)
        cooldown.allow("s2", NotificationCategory.STOP)
        assert len(cooldown) == 2
        clock.now += 60
        cooldown.allow("s3", NotificationCategory.STOP)
        assert len(cooldown) == 1

    def test_check_does_not_record(self):
        cooldown = NotificationCooldown(window=30.0, clock=FakeClock())
        assert cooldown.check("s1", NotificationCategory.STOP)
        assert cooldown.check("s1", NotificationCategory.STOP)
        assert len(cooldown) == 0

    def test_record_starts_window(self):
        clock = FakeClock()
        cooldown = NotificationCooldown(window=30.0, clock=clock)
        cooldown.record("s1", NotificationCategory.STOP)
        assert not cooldown.check("s1", NotificationCategory.STOP)
        clock.now += 31
        assert cooldown.check("s1", NotificationCategory.STOP)

    def test_record_ignores_high_priority(self):
        cooldown = NotificationCooldown(window=30.0, clock=FakeClock())
        cooldown.record("s1", NotificationCategory.PERMISSION_PROMPT)
        assert len(cooldown) == 0
