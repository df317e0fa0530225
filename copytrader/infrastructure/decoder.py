from copytrader.core.exceptions import DecodeError
from copytrader.core.models import DecodedSwap, RawLog

SWAP_SIGNATURE = (
    "Swap(address indexed sender, address indexed recipient, int256 amount0, "
    "int256 amount1, uint160 sqrtPriceX96, uint128 liquidity, int24 tick)"
)
# keccak256("Swap(address,address,int256,int256,uint160,uint128,int24)")
SWAP_TOPIC0 = "0xc42079f94a6350d7e6235f29174924f928cc2ac818eb64fed8004e115fbcca67"

WORD_SIZE = 32
BODY_WORDS = 5


def _strip_hex(value: str) -> str:
    value = (value or "").strip().lower()
    return value[2:] if value.startswith("0x") else value


def _topic_address(topic: str) -> str:
    raw = _strip_hex(topic)
    if len(raw) != 64:
        raise DecodeError(f"indexed topic must be 32 bytes, got {len(raw) // 2}")
    return "0x" + raw[-40:]


def _signed(word: bytes, bits: int) -> int:
    value = int.from_bytes(word, "big", signed=True)
    if not -(1 << (bits - 1)) <= value < (1 << (bits - 1)):
        raise DecodeError(f"value out of int{bits} range")
    return value


def _unsigned(word: bytes, bits: int) -> int:
    value = int.from_bytes(word, "big", signed=False)
    if value >= 1 << bits:
        raise DecodeError(f"value out of uint{bits} range")
    return value


class SwapEventDecoder:
    """
    Uniswap V3 Swap event 解碼器。
    indexed: [sender, recipient] 取自 topic1 / topic2，
    body: [amount0, amount1, sqrtPriceX96, liquidity, tick] 為 5 個 32-byte word。
    任何格式錯誤都以 DecodeError 回報，不讓例外往外炸。
    """

    signature = SWAP_SIGNATURE
    topic0 = SWAP_TOPIC0

    def decode(self, log: RawLog) -> DecodedSwap:
        topics = log.topics or ()
        if len(topics) < 3:
            raise DecodeError(f"expected 3 topics, got {len(topics)}")
        if (topics[0] or "").lower() != self.topic0:
            raise DecodeError(f"topic0 {topics[0]} is not a Swap event")

        try:
            payload = bytes.fromhex(_strip_hex(log.data))
        except ValueError as e:
            raise DecodeError(f"data is not valid hex: {e}") from e
        if len(payload) != WORD_SIZE * BODY_WORDS:
            raise DecodeError(f"expected {WORD_SIZE * BODY_WORDS} data bytes, got {len(payload)}")

        words = [payload[i:i + WORD_SIZE] for i in range(0, len(payload), WORD_SIZE)]
        return DecodedSwap(
            sender=_topic_address(topics[1]),
            recipient=_topic_address(topics[2]),
            amount0=_signed(words[0], 256),
            amount1=_signed(words[1], 256),
            sqrt_price_x96=_unsigned(words[2], 160),
            liquidity=_unsigned(words[3], 128),
            tick=_signed(words[4], 24),
        )
