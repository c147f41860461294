# structengine/kernel/profiling.py
"""Wall-clock profiler for the analysis pipeline stages."""

import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator


@dataclass
class OperationStats:
    count: int = 0
    total_time: float = 0.0  # seconds

    @property
    def average_time(self) -> float:
        return self.total_time / self.count if self.count else 0.0


class Profiler:
    """
    Accumulates call counts and elapsed time per named operation.

    >>> profiler = Profiler()
    >>> with profiler.time('assemble'):
    ...     pass
    >>> profiler.stats()['assemble'].count
    1
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._operations: Dict[str, OperationStats] = {}

    @contextmanager
    def time(self, name: str) -> Iterator[None]:
        if not self.enabled:
            yield
            return
        start = time.perf_counter()
        try:
            yield
        finally:
            stats = self._operations.setdefault(name, OperationStats())
            stats.count += 1
            stats.total_time += time.perf_counter() - start

    def stats(self) -> Dict[str, OperationStats]:
        return dict(self._operations)

    def reset(self) -> None:
        self._operations.clear()

    def report(self) -> str:
        lines = ["Sparse Matrix Performance Report:", "=" * 32]
        for name, s in self._operations.items():
            lines.append(
                f"{name}: {s.count} calls, avg: {s.average_time * 1e3:.3f}ms, "
                f"total: {s.total_time * 1e3:.3f}ms"
            )
        return "\n".join(lines)
