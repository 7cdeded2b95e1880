# src/aggregator/dedup.py
from collections.abc import Hashable
from itertools import islice


class TradeDeduplicator:
    """有界的已处理成交 ID 集合

    超过容量时按插入顺序批量淘汰最早的一批, 淘汰顺序不作保证。
    """

    def __init__(self, max_size: int = 10_000, evict_batch: int = 1_000):
        self.max_size = max_size
        self.evict_batch = max(1, evict_batch)
        # dict 保持插入顺序, 作为有序集合使用
        self._seen: dict[Hashable, None] = {}

    def admit(self, trade_id: Hashable) -> bool:
        if trade_id in self._seen:
            return False

        self._seen[trade_id] = None
        if len(self._seen) > self.max_size:
            for old in list(islice(self._seen, self.evict_batch)):
                del self._seen[old]
        return True

    def __contains__(self, trade_id: object) -> bool:
        return trade_id in self._seen

    def __len__(self) -> int:
        return len(self._seen)
