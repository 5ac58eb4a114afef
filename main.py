"""
V3 Liquidity Adapter CLI

Команды только на чтение:
    python main.py pool <token_a> <token_b> 500
    python main.py price <token_in> <token_out> 500
    python main.py quote <token_in> <token_out> 500 1000000000000000000
    python main.py positions <owner>
    python main.py ticks <token_a> <token_b> 500 600 700

Настройки берутся из .env (см. v3_adapter.config.load_config).
"""

import argparse
import logging
import sys
from decimal import Decimal, InvalidOperation

from dotenv import load_dotenv

from v3_adapter import AdapterError, LiquidityAdapter, load_config
from v3_adapter.math.prices import PRICE_SCALE, tick_range_to_prices
from v3_adapter.ordering import canonicalize_pair

load_dotenv()

logger = logging.getLogger("v3_adapter")


def setup_logging(verbose: bool = False):
    """Консольный handler для логгера пакета."""
    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(level)
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)


def parse_price(value: str) -> int:
    """'2500.5' -> 2500.5 * 10^18."""
    try:
        price = Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"invalid price: {value!r}")
    return int(price * PRICE_SCALE)


def format_price(price: int) -> str:
    return str(Decimal(price) / PRICE_SCALE)


def cmd_pool(adapter: LiquidityAdapter, args):
    pool = adapter.get_pool(args.token_a, args.token_b, args.fee, derive=args.derive)
    if pool is None:
        print("Pool not found")
        return 1

    print(f"Pool: {pool}")
    if args.derive:
        return 0

    snapshot = adapter.get_pool_snapshot(args.token_a, args.token_b, args.fee)
    print(f"  token0:       {snapshot.token0}")
    print(f"  token1:       {snapshot.token1}")
    print(f"  fee:          {snapshot.fee}")
    print(f"  tick spacing: {snapshot.tick_spacing}")
    print(f"  tick:         {snapshot.tick}")
    print(f"  sqrtPriceX96: {snapshot.sqrt_price_x96}")
    print(f"  liquidity:    {snapshot.liquidity}")
    print(f"  observations: {snapshot.observation_index + 1}/{snapshot.observation_cardinality}")
    return 0


def cmd_price(adapter: LiquidityAdapter, args):
    price = adapter.get_price(args.token_in, args.token_out, args.fee)
    print(f"1 {args.token_in} = {format_price(price)} {args.token_out}")
    return 0


def cmd_quote(adapter: LiquidityAdapter, args):
    amount_out = adapter.quote_amount_out(args.token_in, args.token_out, args.fee, args.amount_in)
    print(f"{args.amount_in} -> {amount_out}")
    return 0


def cmd_positions(adapter: LiquidityAdapter, args):
    positions = adapter.get_positions(args.owner)
    if not positions:
        print("No positions")
        return 0

    for pos in positions:
        print(
            f"#{pos.token_id}: {pos.token0}/{pos.token1} fee={pos.fee} "
            f"ticks=[{pos.tick_lower}, {pos.tick_upper}] liquidity={pos.liquidity} "
            f"owed=({pos.tokens_owed0}, {pos.tokens_owed1})"
        )
    return 0


def cmd_ticks(adapter: LiquidityAdapter, args):
    tick_range = adapter.preview_ticks(
        args.token_a, args.token_b, args.fee, args.price_lower, args.price_upper
    )
    print(f"Ticks: [{tick_range.tick_lower}, {tick_range.tick_upper}] (width {tick_range.width})")
    if tick_range.is_empty:
        print("WARNING: range collapsed after alignment, position manager will reject it")
        return 0

    pair = canonicalize_pair(args.token_a, args.token_b)
    lower, upper = tick_range_to_prices(
        tick_range,
        adapter.decimals_cache.get_decimals(pair.token0),
        adapter.decimals_cache.get_decimals(pair.token1),
        invert=pair.swapped
    )
    print(f"Aligned prices: {format_price(lower)} - {format_price(upper)}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Uniswap V3 liquidity adapter (read-only commands)")
    parser.add_argument("--chain-id", type=int, default=None, help="Chain ID (default: CHAIN_ID from .env)")
    parser.add_argument("--dex", default=None, help="DEX key, e.g. uniswap / pancakeswap")
    parser.add_argument("-v", "--verbose", action="store_true", help="DEBUG logging")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("pool", help="Resolve pool and show its state")
    p.add_argument("token_a")
    p.add_argument("token_b")
    p.add_argument("fee", type=int)
    p.add_argument("--derive", action="store_true", help="CREATE2 address only, no RPC")
    p.set_defaults(handler=cmd_pool)

    p = sub.add_parser("price", help="Spot/TWAP price of token_in in token_out")
    p.add_argument("token_in")
    p.add_argument("token_out")
    p.add_argument("fee", type=int)
    p.set_defaults(handler=cmd_price)

    p = sub.add_parser("quote", help="Quote exact input single-hop swap")
    p.add_argument("token_in")
    p.add_argument("token_out")
    p.add_argument("fee", type=int)
    p.add_argument("amount_in", type=int, help="Raw units")
    p.set_defaults(handler=cmd_quote)

    p = sub.add_parser("positions", help="List positions of owner")
    p.add_argument("owner")
    p.set_defaults(handler=cmd_positions)

    p = sub.add_parser("ticks", help="Preview aligned ticks for a price range")
    p.add_argument("token_a")
    p.add_argument("token_b")
    p.add_argument("fee", type=int)
    p.add_argument("price_lower", type=parse_price, help="token_b per token_a")
    p.add_argument("price_upper", type=parse_price, help="token_b per token_a")
    p.set_defaults(handler=cmd_ticks)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        config = load_config(chain_id=args.chain_id, dex=args.dex)
        adapter = LiquidityAdapter.from_config(config)
        return args.handler(adapter, args)
    except AdapterError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
