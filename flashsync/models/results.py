from typing import List, Optional
from dataclasses import dataclass, field


@dataclass
class SyncOutcome:
    source: str
    table: str
    rows_extracted: int = 0
    rows_skipped: int = 0
    loaded: bool = False
    error: Optional[BaseException] = None
    cancelled: bool = False

    @property
    def succeeded(self) -> bool:
        return self.error is None and not self.cancelled

    @property
    def status(self) -> str:
        if self.cancelled:
            return "cancelled"
        return "failed" if self.error is not None else "succeeded"


@dataclass
class RunResult:
    outcomes: List[SyncOutcome] = field(default_factory=list)
    error: Optional[BaseException] = None
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None

    def outcome(self, source: str, table: str) -> Optional[SyncOutcome]:
        for item in self.outcomes:
            if item.source == source and item.table == table:
                return item
        return None
