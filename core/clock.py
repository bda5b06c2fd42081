from datetime import timedelta

from django.utils import timezone


class SystemClock:
    """Wall clock backed by django.utils.timezone."""

    def now(self):
        return timezone.now()


class FixedClock:
    """A clock that only moves when told to. Used by tests and dry runs."""

    def __init__(self, now=None):
        self._now = now or timezone.now()

    def now(self):
        return self._now

    def set(self, now):
        self._now = now

    def advance(self, **kwargs):
        self._now = self._now + timedelta(**kwargs)
        return self._now


default_clock = SystemClock()


def resolve(clock=None):
    return clock or default_clock
