"""
Per-item results for commands that walk many tenants
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional, TypeVar
import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass
class ItemResult:
    """Outcome of one tenant in a batch"""

    key: str
    ok: bool
    detail: Optional[str] = None
    error: Optional[str] = None
    skipped: bool = False
    data: Any = None


@dataclass
class BatchReport:
    items: List[ItemResult] = field(default_factory=list)

    def add(self, item: ItemResult) -> ItemResult:
        self.items.append(item)
        return item

    @property
    def succeeded(self) -> int:
        return sum(1 for item in self.items if item.ok and not item.skipped)

    @property
    def skipped(self) -> int:
        return sum(1 for item in self.items if item.skipped)

    @property
    def failed(self) -> int:
        return sum(1 for item in self.items if not item.ok)

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0


def run_batch(items: Iterable[T], key: Callable[[T], str], fn: Callable[[T], Optional[str]]) -> BatchReport:
    """
    Apply fn to every item in order. An exception from one item is recorded
    as a failure and the loop moves on to the next.
    """
    report = BatchReport()
    for item in items:
        name = key(item)
        try:
            detail = fn(item)
        except Exception as exc:
            logger.error("Batch item failed", item=name, error=str(exc), exc_info=True)
            report.add(ItemResult(key=name, ok=False, error=str(exc)))
            continue
        report.add(ItemResult(key=name, ok=True, detail=detail))
    return report
