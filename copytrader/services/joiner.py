from typing import Dict, Iterable, List
from copytrader.core.models import EnrichedSwap, RawBlock, RawLog, RawTransaction


class EventJoiner:
    """
    將同一批次的 logs 與 transactions 以 transaction hash 配對。
    HyperSync 即使開了 join，logs 與 transactions 仍是分開的陣列，需要手動 join。
    """

    @staticmethod
    def join(
        logs: Iterable[RawLog],
        transactions: Iterable[RawTransaction],
        blocks: Iterable[RawBlock] = (),
    ) -> List[EnrichedSwap]:
        tx_map: Dict[str, RawTransaction] = {}
        for tx in transactions:
            if tx.hash:
                tx_map[tx.hash.lower()] = tx

        timestamps = {block.number: block.timestamp for block in blocks}

        enriched = []
        for log in logs:
            tx_hash = (log.transaction_hash or "").lower()
            enriched.append(EnrichedSwap(
                log=log,
                # 部分結果的回應可能缺交易，視為來源未知
                transaction=tx_map.get(tx_hash) if tx_hash else None,
                block_number=log.block_number,
                timestamp=timestamps.get(log.block_number, 0),
            ))
        return enriched
