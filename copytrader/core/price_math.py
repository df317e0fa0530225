"""
Uniswap V3 價格與數量換算。純函式，不持有狀態。

sqrtPriceX96 = sqrt(token1 / token0) * 2^96 (以最小單位計)，
平方與精度縮放全程使用 Python int，最後一次除法才交給 Decimal。
"""
from decimal import Context, Decimal

Q192 = 2 ** 192

# 60 位有效數字足以容納 uint160 平方後的比值
_CTX = Context(prec=60)


def price_token1_per_token0(sqrt_price_x96: int, decimals0: int, decimals1: int) -> Decimal:
    """以人類可讀單位表示的 token1 / token0。"""
    if sqrt_price_x96 <= 0:
        raise ValueError(f"sqrtPriceX96 must be positive, got {sqrt_price_x96}")
    numerator = sqrt_price_x96 * sqrt_price_x96 * 10 ** decimals0
    denominator = Q192 * 10 ** decimals1
    return _CTX.divide(Decimal(numerator), Decimal(denominator))


def price_from_sqrt_x96(sqrt_price_x96: int, decimals0: int, decimals1: int) -> Decimal:
    """
    token0 / token1，也就是 USDC/WETH 池中每顆 ETH 的 USDC 價格。
    """
    numerator = Q192 * 10 ** decimals1
    if sqrt_price_x96 <= 0:
        raise ValueError(f"sqrtPriceX96 must be positive, got {sqrt_price_x96}")
    denominator = sqrt_price_x96 * sqrt_price_x96 * 10 ** decimals0
    return _CTX.divide(Decimal(numerator), Decimal(denominator))


def scale_integer(raw: int, decimals: int) -> Decimal:
    """|raw| / 10^decimals，以字串補零後插入小數點，不經過浮點數。"""
    if decimals < 0:
        raise ValueError(f"decimals must be >= 0, got {decimals}")
    digits = str(abs(int(raw)))
    if decimals == 0:
        return Decimal(digits)
    digits = digits.rjust(decimals + 1, "0")
    return Decimal(f"{digits[:-decimals]}.{digits[-decimals:]}")
