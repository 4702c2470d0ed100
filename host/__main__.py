import argparse
import asyncio
import logging

from holdem.models import TableConfig

from .server import TableHost

logging.basicConfig(level=logging.INFO)


def main() -> None:
    parser = argparse.ArgumentParser(description="Texas Hold'em table host")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8765)
    parser.add_argument("--table-id", default="T-1")
    parser.add_argument("--seats", type=int, default=6)
    parser.add_argument("--starting-stack", type=int, default=10_000)
    parser.add_argument("--sb", type=int, default=50)
    parser.add_argument("--bb", type=int, default=100)
    parser.add_argument("--move-time", type=int, default=15_000, help="Move time in milliseconds (0 disables)")
    parser.add_argument("--house-bots", type=int, default=1, help="House players seated before anyone joins")
    parser.add_argument("--bot-style", choices=["passive", "neutral", "aggressive"], default="neutral")
    parser.add_argument("--bot-seed", type=int, default=None)
    args = parser.parse_args()

    config = TableConfig(
        seats=args.seats,
        starting_stack=args.starting_stack,
        sb=args.sb,
        bb=args.bb,
        move_time_ms=args.move_time,
        house_bots=args.house_bots,
        bot_style=args.bot_style,
        table_id=args.table_id,
    )

    try:
        table = TableHost(config, bot_seed=args.bot_seed)
    except ValueError as exc:
        parser.error(str(exc))
    asyncio.run(table.start(host=args.host, port=args.port))


if __name__ == "__main__":
    main()
