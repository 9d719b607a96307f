from datetime import datetime, timezone


class SystemClock:
    """Wall clock used outside of tests."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """
    Clock pinned to a moment that only moves when told to.
    Used by tests and by tooling that replays checks at a given time.
    """

    def __init__(self, moment: datetime):
        self.moment = moment

    def now(self) -> datetime:
        return self.moment

    def advance(self, delta) -> datetime:
        self.moment = self.moment + delta
        return self.moment
