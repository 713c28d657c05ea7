"""
In-memory trade history, newest first
"""

from collections import deque
from typing import Deque, List, Optional

from .models import TradeRecord
from ..constants import TRADE_HISTORY_SIZE


class TradeHistory:
    """Bounded ring buffer of completed trades; not persisted across restarts"""

    def __init__(self, max_size: int = TRADE_HISTORY_SIZE):
        self.max_size = max_size
        self._records: Deque[TradeRecord] = deque(maxlen=max_size)

    def append(self, record: TradeRecord):
        # appendleft on a bounded deque drops the oldest entry from the right
        self._records.appendleft(record)

    def recent(self, limit: Optional[int] = None) -> List[TradeRecord]:
        records = list(self._records)
        return records if limit is None else records[:limit]

    @property
    def latest(self) -> Optional[TradeRecord]:
        return self._records[0] if self._records else None

    def clear(self):
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self):
        return iter(list(self._records))
