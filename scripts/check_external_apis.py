#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import logging
import sys

from geeklogg_backend.integrations.external_media import ExternalMediaService
from geeklogg_backend.integrations.igdb.client import create_igdb_client_from_env
from geeklogg_backend.utils.env import load_env


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="check_external_apis",
        description="Report whether Google Books, TMDb and IGDB are reachable with the configured keys.",
    )
    parser.add_argument("--json", action="store_true", help="Print the result as JSON.")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv if argv is not None else sys.argv[1:])
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)
    load_env()

    service = ExternalMediaService(create_igdb_client_from_env())
    availability = service.check_api_availability()

    if args.json:
        print(json.dumps(availability, sort_keys=True))
    else:
        for name, ok in availability.items():
            print(f"{name}: {'ok' if ok else 'unavailable'}")

    down = [name for name, ok in availability.items() if not ok]
    if down:
        print(f"check_external_apis: unavailable={','.join(down)}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
