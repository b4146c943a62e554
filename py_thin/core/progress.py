"""Progress and counter reporting for thinning runs."""

from typing import Callable, Optional

import structlog

logger = structlog.get_logger()


class ProgressReporter:
    """
    Emits percent-complete events while anchors are processed.

    Only crossing a multiple of `step` percent produces an event, so long
    runs do not flood the log. An optional callback receives the same
    percent, e.g. to update a stored job record.
    """

    def __init__(
        self,
        total: int,
        step: int = 10,
        label: str = "thinning",
        callback: Optional[Callable[[int], None]] = None,
    ):
        self.total = total
        self.step = max(1, step)
        self.label = label
        self._callback = callback
        self._last_percent: Optional[int] = None

    @property
    def last_percent(self) -> Optional[int]:
        return self._last_percent

    def update(self, done: int, removed: int) -> None:
        if self.total <= 0:
            return

        percent = min(100, done * 100 // self.total)
        bucket = percent - percent % self.step
        if self._last_percent is not None and bucket <= self._last_percent:
            return

        self._last_percent = bucket
        logger.info(
            "Progress",
            label=self.label,
            percent=bucket,
            anchors_done=done,
            anchors_total=self.total,
            removed=removed,
        )
        if self._callback is not None:
            self._callback(bucket)
