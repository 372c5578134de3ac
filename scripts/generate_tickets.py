"""Generate a batch of tickets offline and write them as JSON.

Useful for printed games and for eyeballing the generator.

Usage:
  python scripts/generate_tickets.py --count 600 --seed 7 --out tickets.json
"""

from __future__ import annotations

import argparse
import json
import logging
import pathlib
import random
import sys
from collections.abc import Sequence

from tqdm import tqdm

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))

from tambola.errors import GenerationError  # noqa: E402
from tambola.services.ticket_engine import TicketEngine, validate_grid  # noqa: E402

logger = logging.getLogger("generate_tickets")


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Generate Tambola tickets as JSON")
    parser.add_argument("--count", type=int, default=6)
    parser.add_argument("--seed", type=int, default=None, help="Seed for a reproducible batch")
    parser.add_argument("--unsorted", action="store_true", help="Leave columns in draw order")
    parser.add_argument("--max-retries", dest="max_retries", type=int, default=1000)
    parser.add_argument("--out", type=str, default="-", help="Output file (default: stdout)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    if args.count < 1:
        raise SystemExit("--count must be >= 1")

    engine = TicketEngine(
        random.Random(args.seed),
        sort_columns=not args.unsorted,
        max_retries=args.max_retries,
    )

    tickets = []
    failures = 0
    for _ in tqdm(range(args.count), desc="Generating", disable=args.out == "-"):
        try:
            ticket = engine.generate_ticket()
        except GenerationError as exc:
            failures += 1
            logger.warning("Skipping ticket: %s", exc.message)
            continue
        problems = validate_grid(ticket.grid, require_sorted=not args.unsorted)
        if problems:
            raise SystemExit(f"Generator produced an invalid ticket: {problems}")
        tickets.append({"id": ticket.id, "grid": ticket.grid})

    payload = json.dumps({"count": len(tickets), "tickets": tickets}, indent=2)
    if args.out == "-":
        print(payload)
    else:
        pathlib.Path(args.out).write_text(payload + "\n", encoding="utf-8")
        logger.info("Wrote %s tickets to %s (%s failed)", len(tickets), args.out, failures)
    return 0 if failures == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
