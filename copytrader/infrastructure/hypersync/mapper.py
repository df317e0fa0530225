from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional
from copytrader.core.models import RawBlock, RawLog, RawTransaction


@dataclass(frozen=True)
class QueryResponse:
    logs: List[RawLog] = field(default_factory=list)
    transactions: List[RawTransaction] = field(default_factory=list)
    blocks: List[RawBlock] = field(default_factory=list)
    next_block: Optional[int] = None
    archive_height: Optional[int] = None

    @property
    def has_data(self) -> bool:
        return bool(self.logs or self.transactions or self.blocks) or self.next_block is not None


def parse_quantity(value: Any) -> Optional[int]:
    """HyperSync 的數值欄位可能是 int，也可能是 0x 開頭的 hex 字串。"""
    if value is None or value == "":
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip().lower()
    if text.startswith("0x"):
        return int(text, 16)
    return int(text)


class HypersyncMapper:
    """
    負責將 HyperSync JSON 回應轉換為核心 Domain Models。
    """

    @staticmethod
    def to_log(raw: Dict[str, Any]) -> RawLog:
        topics = raw.get("topics")
        if topics is None:
            topics = [raw.get(f"topic{i}") for i in range(4)]
        # 去掉尾端空的 topic，保留位置順序
        cleaned = [str(t).lower() if t else "" for t in topics]
        while cleaned and not cleaned[-1]:
            cleaned.pop()
        return RawLog(
            address=str(raw.get("address") or "").lower(),
            topics=tuple(cleaned),
            data=str(raw.get("data") or "0x"),
            transaction_hash=str(raw.get("transaction_hash") or raw.get("transactionHash") or "").lower(),
            block_number=parse_quantity(raw.get("block_number", raw.get("blockNumber"))) or 0,
        )

    @staticmethod
    def to_transaction(raw: Dict[str, Any]) -> RawTransaction:
        return RawTransaction(
            hash=str(raw.get("hash") or "").lower(),
            sender=str(raw.get("from") or raw.get("from_") or "").lower(),
        )

    @staticmethod
    def to_block(raw: Dict[str, Any]) -> RawBlock:
        return RawBlock(
            number=parse_quantity(raw.get("number")) or 0,
            timestamp=parse_quantity(raw.get("timestamp")) or 0,
        )

    @classmethod
    def to_response(cls, raw: Optional[Dict[str, Any]]) -> QueryResponse:
        """
        `data` 可能是一個物件，也可能是多個批次物件的 list，這裡一律攤平。
        """
        if not raw:
            return QueryResponse()

        data = raw.get("data")
        if data is None:
            batches: Iterable[Dict[str, Any]] = []
        elif isinstance(data, dict):
            batches = [data]
        else:
            batches = data

        logs, transactions, blocks = [], [], []
        for batch in batches:
            logs.extend(cls.to_log(item) for item in batch.get("logs") or [])
            transactions.extend(cls.to_transaction(item) for item in batch.get("transactions") or [])
            blocks.extend(cls.to_block(item) for item in batch.get("blocks") or [])

        return QueryResponse(
            logs=logs,
            transactions=transactions,
            blocks=blocks,
            next_block=parse_quantity(raw.get("next_block", raw.get("nextBlock"))),
            archive_height=parse_quantity(raw.get("archive_height", raw.get("archiveHeight"))),
        )
