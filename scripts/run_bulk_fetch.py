"""
Run a bulk fetch job from the CLI and stream its events as JSON lines.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict

from bulkfetch.errors import BulkFetchError
from bulkfetch.jobs.events import TERMINAL_EVENT_KINDS
from bulkfetch.services import build_bulk_fetch_service


def _parse_brand(value: str) -> tuple[str, str]:
    name, separator, url = value.partition("=")
    if not name.strip():
        raise argparse.ArgumentTypeError(f"Expected NAME=URL, got {value!r}")
    return name.strip(), url.strip() if separator else ""


async def _run(args: argparse.Namespace) -> int:
    async with build_bulk_fetch_service() as service:
        try:
            if args.all_brands:
                created = await service.start_all_brands_job(args.target, args.owner)
            else:
                created = await service.start_job(dict(args.brands), args.target, args.owner)
        except BulkFetchError as exc:
            print(json.dumps({"error": type(exc).__name__, "message": str(exc)}), file=sys.stderr)
            return 2

        subscription = service.subscribe(created.job_id)
        print(json.dumps({"event": "created", **created.model_dump()}))
        async for event in subscription:
            payload = asdict(event)
            if not args.include_products:
                payload.pop("products", None)
            print(json.dumps(payload, default=str, ensure_ascii=False))
            if event.kind in TERMINAL_EVENT_KINDS:
                break
        service.unsubscribe(subscription)

        snapshot = service.get_job_status(created.job_id, args.owner)
        if not args.include_products:
            snapshot = snapshot.model_copy(update={"products": []})
        print(snapshot.model_dump_json(indent=2))
        return 0 if snapshot.failed_brands == 0 else 1


def main() -> int:
    parser = argparse.ArgumentParser(description="Run a bulk brand product fetch.")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument(
        "--brand",
        dest="brands",
        action="append",
        type=_parse_brand,
        help="Brand to fetch as NAME=URL; an empty URL looks the brand up by name. Repeatable.",
    )
    target.add_argument(
        "--all-brands",
        action="store_true",
        help="Fetch every brand listed in the brand directory.",
    )
    parser.add_argument("--target", required=True, help="Target store identifier.")
    parser.add_argument("--owner", default="cli", help="Owner id recorded on the job.")
    parser.add_argument(
        "--include-products",
        action="store_true",
        help="Include full product lists in streamed events and the final snapshot.",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level.")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
