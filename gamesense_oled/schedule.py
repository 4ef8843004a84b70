from dataclasses import dataclass


@dataclass(frozen=True)
class PageSchedule:
    """Which page is on screen and since when.

    ``advance`` never mutates; the controller keeps the returned value for the
    next tick. Times are seconds from a monotonic clock, durations are ms.
    """

    index: int = 0
    last_switch_at: float = 0.0
    first_tick: bool = True

    def advance(self, now: float, pages) -> "PageSchedule":
        if self.first_tick:
            return PageSchedule(index=self.index, last_switch_at=now, first_tick=False)
        elapsed_ms = (now - self.last_switch_at) * 1000.0
        if elapsed_ms >= pages[self.index].duration_ms:
            return PageSchedule(index=(self.index + 1) % len(pages), last_switch_at=now, first_tick=False)
        return self
