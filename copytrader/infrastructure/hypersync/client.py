import requests
from typing import Any, Dict, List, Optional
from copytrader.config.logging import logger
from copytrader.core.exceptions import ProviderError
from .mapper import HypersyncMapper, QueryResponse

BLOCK_FIELDS = ["number", "timestamp"]
LOG_FIELDS = [
    "address", "data", "topic0", "topic1", "topic2", "topic3",
    "transaction_hash",  # 關鍵：需要這個欄位來關聯 transaction
    "block_number",
]
TRANSACTION_FIELDS = ["from", "hash"]


def build_query(from_block: int, topic0: str, addresses: Optional[List[str]] = None) -> Dict[str, Any]:
    """
    組出 HyperSync query。addresses 為空代表不限池子 (搜尋所有 Uniswap V3 池)。
    預設 join mode 會把 log 所屬的 transaction 與 block 一併帶回。
    """
    log_selection: Dict[str, Any] = {"topics": [[topic0]]}
    if addresses:
        log_selection["address"] = list(addresses)
    return {
        "from_block": from_block,
        "logs": [log_selection],
        "field_selection": {
            "block": BLOCK_FIELDS,
            "log": LOG_FIELDS,
            "transaction": TRANSACTION_FIELDS,
        },
    }


class HypersyncClient:
    """
    HyperSync JSON API 客戶端。
    負責處理認證、請求與錯誤，並將資料交給 Mapper 轉換。
    """

    def __init__(self, url: str, bearer_token: str, timeout: float = 30.0, session: Optional[requests.Session] = None):
        self.base_url = url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {bearer_token}",
            "Content-Type": "application/json",
        })

    def _request(self, method: str, endpoint: str, payload: Optional[Dict] = None) -> Dict:
        url = f"{self.base_url}{endpoint}"
        try:
            response = self.session.request(method, url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            return response.json() if response.content else {}
        except requests.exceptions.RequestException as e:
            logger.error(f"HyperSync Connection Error: {e}")
            raise ProviderError(f"Failed to query HyperSync {endpoint}: {e}") from e
        except ValueError as e:
            raise ProviderError(f"HyperSync returned invalid JSON for {endpoint}: {e}") from e

    def get_height(self) -> int:
        data = self._request("GET", "/height")
        height = data.get("height")
        if height is None:
            raise ProviderError(f"HyperSync height response missing 'height': {data}")
        return int(height)

    def get(self, query: Dict[str, Any]) -> QueryResponse:
        raw = self._request("POST", "/query", query)
        return HypersyncMapper.to_response(raw)

    def close(self):
        self.session.close()
