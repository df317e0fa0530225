from typing import Dict, Optional, Union
from copytrader.config.logging import logger
from copytrader.core.exceptions import DecodeError
from copytrader.core.models import DecodeFailure, EnrichedSwap, PoolConfig, Side, Trade
from copytrader.core.price_math import price_from_sqrt_x96, price_token1_per_token0, scale_integer
from copytrader.infrastructure.decoder import SwapEventDecoder

ClassifyResult = Union[Trade, DecodeFailure, None]


class SwapClassifier:
    """
    將 EnrichedSwap 解碼成 Trade。

    Uniswap V3 的 amount 是池子的角度：
    base delta < 0 代表池子付出 base asset，也就是交易者買入 (BUY)；
    base delta > 0 代表池子收到 base asset，交易者賣出 (SELL)。
    """

    def __init__(
        self,
        pool_configs: Optional[Dict[str, PoolConfig]] = None,
        default_pool: PoolConfig = PoolConfig(),
        decoder: Optional[SwapEventDecoder] = None,
    ):
        self.pool_configs = {k.lower(): v for k, v in (pool_configs or {}).items()}
        self.default_pool = default_pool
        self.decoder = decoder or SwapEventDecoder()

    def pool_config(self, pool_address: str) -> PoolConfig:
        return self.pool_configs.get(pool_address.lower(), self.default_pool)

    def classify(self, swap: EnrichedSwap) -> ClassifyResult:
        log = swap.log
        if not log.topics or (log.topics[0] or "").lower() != self.decoder.topic0:
            return None

        pool = (log.address or "").lower()
        try:
            decoded = self.decoder.decode(log)
            cfg = self.pool_config(pool)

            if cfg.base_is_token0:
                base_raw, quote_raw = decoded.amount0, decoded.amount1
                price = price_token1_per_token0(decoded.sqrt_price_x96, cfg.base_decimals, cfg.quote_decimals)
            else:
                base_raw, quote_raw = decoded.amount1, decoded.amount0
                price = price_from_sqrt_x96(decoded.sqrt_price_x96, cfg.quote_decimals, cfg.base_decimals)
        except (DecodeError, ValueError, ArithmeticError) as e:
            logger.debug(f"Skipping undecodable swap {log.transaction_hash}: {e}")
            return DecodeFailure(tx_hash=log.transaction_hash, pool_address=pool, reason=str(e))

        return Trade(
            side=Side.BUY if base_raw < 0 else Side.SELL,
            base_quantity=scale_integer(base_raw, cfg.base_decimals),
            quote_quantity=scale_integer(quote_raw, cfg.quote_decimals),
            price=price,
            origin_address=swap.origin_address,
            pool_address=pool,
            tx_hash=log.transaction_hash,
            block_number=swap.block_number,
            timestamp=swap.timestamp,
        )
