import threading
from collections import Counter, deque
from datetime import datetime, timezone

from enhanced_qr_server.config import config
from enhanced_qr_server.schemas import ContentType, ContentTypeCount, GenerationResult, StatisticsSnapshot

TOP_CONTENT_TYPES = 5


def _mean(values: deque) -> float:
    return sum(values) / len(values) if values else 0.0


class StatisticsAccumulator:
    """Process-wide generation counters with bounded rolling windows.

    Averages are computed from the windows on every snapshot and never stored.
    """

    def __init__(self, window_size: int = config.statistics.window_size):
        self.window_size = window_size
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self.total_generated = 0
            self.by_format: Counter[str] = Counter()
            self.by_template: Counter[str] = Counter()
            self.by_content_type: Counter[str] = Counter()
            self.generation_times: deque[float] = deque(maxlen=self.window_size)
            self.sizes: deque[int] = deque(maxlen=self.window_size)
            self.last_generated: str | None = None

    def record(
        self,
        result: GenerationResult,
        elapsed_ms: float,
        content_type: ContentType = ContentType.TEXT,
    ) -> None:
        with self._lock:
            self.total_generated += 1
            self.by_format[result.format] += 1
            self.by_content_type[ContentType(content_type).value] += 1
            self.generation_times.append(elapsed_ms)
            self.sizes.append(result.size_bytes)
            self.last_generated = datetime.now(timezone.utc).isoformat()

    def record_template(self, name: str) -> None:
        with self._lock:
            self.by_template[name] += 1

    def snapshot(self) -> StatisticsSnapshot:
        with self._lock:
            return StatisticsSnapshot(
                total_generated=self.total_generated,
                by_format=dict(self.by_format),
                by_template=dict(self.by_template),
                average_size=_mean(self.sizes),
                average_generation_time=_mean(self.generation_times),
                top_content_types=[
                    ContentTypeCount(type=kind, count=count)
                    for kind, count in self.by_content_type.most_common(TOP_CONTENT_TYPES)
                ],
                last_generated=self.last_generated,
            )
