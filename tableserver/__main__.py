import argparse
import asyncio
import logging

from holdem.models import TableConfig
from .server import TableServer


def main() -> None:
    parser = argparse.ArgumentParser(description="Texas Hold'em table server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=3000)
    parser.add_argument("--seats", type=int, default=6)
    parser.add_argument("--starting-stack", type=int, default=100)
    parser.add_argument("--sb", type=int, default=5)
    parser.add_argument("--bb", type=int, default=10)
    parser.add_argument(
        "--reset-delay-ms",
        type=int,
        default=3_000,
        help="Pause after a showdown before the next round is dealt (milliseconds)",
    )
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    args = parser.parse_args()

    logging.basicConfig(level=getattr(logging, args.log_level))

    if args.sb <= 0 or args.bb < args.sb:
        parser.error("blinds must satisfy 0 < sb <= bb")
    if not 2 <= args.seats <= 6:
        parser.error("--seats must be between 2 and 6")

    config = TableConfig(
        seats=args.seats,
        starting_stack=args.starting_stack,
        sb=args.sb,
        bb=args.bb,
        reset_delay_ms=args.reset_delay_ms,
    )

    server = TableServer(config)
    asyncio.run(server.start(host=args.host, port=args.port))


if __name__ == "__main__":
    main()
