"""CLI entry point for the receipt scanner."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from .camera import ReceiptCamera
from .commit import CommitPipeline
from .config import load_config
from .db import InventoryDB, UsageDB
from .errors import ScanError
from .flow import ScanFlow
from .image import load_image_file
from .models import RESOURCE_INVENTORY_ITEMS, RESOURCE_RECEIPT_SCANS, UNLIMITED
from .ocr import ENGINE_NAMES, create_engine
from .ocr.recognizer import TextRecognizer
from .parser import LineItemParser
from .plans import PLANS, RESOURCE_EXCEL_IMPORTS, PlanQuota


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="stocktrack-receipts",
        description="Scan a receipt and stage its line items for the inventory",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="Path to the configuration file (TOML)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )

    sub = parser.add_subparsers(dest="command")

    # engines
    sub.add_parser("engines", help="List OCR engines")

    # cameras
    sub.add_parser("cameras", help="List available cameras")

    # scan
    scan_parser = sub.add_parser("scan", help="Recognize a receipt and list its items")
    source = scan_parser.add_mutually_exclusive_group()
    source.add_argument("--image", type=str, help="Use an existing image file")
    source.add_argument(
        "--camera", type=int, default=None, metavar="INDEX",
        help="Capture from this camera instead of the configured one",
    )
    scan_parser.add_argument(
        "--crop", type=str, default=None, metavar="X,Y,W,H",
        help="Region to scan, in display coordinates",
    )
    scan_parser.add_argument(
        "--display", type=str, default=None, metavar="W,H",
        help="Size of the display the crop was drawn on (default: native size)",
    )
    scan_parser.add_argument(
        "--engine", type=str, choices=ENGINE_NAMES, default=None,
        help="Override the configured OCR engine",
    )
    scan_parser.add_argument("--owner", type=str, default=None, help="Owner key")
    scan_parser.add_argument(
        "--commit", action="store_true", help="Add the items to the inventory"
    )
    scan_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # items
    items_parser = sub.add_parser("items", help="List inventory items")
    items_parser.add_argument("--owner", type=str, default=None, help="Owner key")
    items_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # plans
    plans_parser = sub.add_parser("plans", help="Show plan limits and remaining allowance")
    plans_parser.add_argument("--owner", type=str, default=None, help="Owner key")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    config = load_config(args.config)

    try:
        match args.command:
            case "engines":
                _cmd_engines(config)
            case "cameras":
                _cmd_cameras()
            case "scan":
                asyncio.run(_cmd_scan(config, args))
            case "items":
                _cmd_items(config, args)
            case "plans":
                asyncio.run(_cmd_plans(config, args))
    except ScanError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2 if e.retryable else 1)


def _parse_numbers(value: str, count: int, flag: str) -> tuple[float, ...]:
    parts = [p.strip() for p in value.split(",")]
    if len(parts) != count:
        raise SystemExit(f"{flag} expects {count} comma-separated numbers, got {value!r}")
    try:
        return tuple(float(p) for p in parts)
    except ValueError:
        raise SystemExit(f"{flag} expects numbers, got {value!r}") from None


def _cmd_engines(config) -> None:
    for name in ENGINE_NAMES:
        mark = " (configured)" if name == config.ocr.backend else ""
        print(f"  {name}{mark}")


def _cmd_cameras() -> None:
    cameras = ReceiptCamera.list_cameras()
    if not cameras:
        print("No cameras found.")
        return
    print(f"Available cameras: {len(cameras)}")
    for idx in cameras:
        print(f"  camera {idx}")


def _open_stores(config) -> tuple[InventoryDB, UsageDB, PlanQuota]:
    inventory = InventoryDB(config.store.db_path)
    usage = UsageDB(config.store.db_path)
    quota = PlanQuota(config.plan.plan_id, inventory, usage)
    return inventory, usage, quota


async def _cmd_scan(config, args) -> None:
    owner = args.owner or config.plan.owner_key
    inventory, usage, quota = _open_stores(config)
    try:
        flow = ScanFlow(owner, LineItemParser.from_config(config.parser), quota=quota)

        # Get image
        if args.image:
            flow.use_image(load_image_file(args.image))
        else:
            flow.begin_capture()
            camera = ReceiptCamera(
                camera_index=config.camera.index,
                save_dir=config.camera.save_dir or None,
            )
            print("Capturing...", file=sys.stderr)
            capture = camera.capture(args.camera)
            flow.use_image(capture.image)

        if args.crop:
            rect = _parse_numbers(args.crop, 4, "--crop")
            dims = _parse_numbers(args.display, 2, "--display") if args.display else None
            region = flow.select_region(rect, dims)
            print(f"Region: {region.as_tuple()}", file=sys.stderr)

        if args.engine:
            config.ocr.backend = args.engine
        engine = create_engine(config)

        def show_progress(percent: int) -> None:
            print(f"\rRecognizing... {percent:3d}%", end="", file=sys.stderr, flush=True)

        async with TextRecognizer(engine, config.ocr.language) as recognizer:
            try:
                draft = await flow.recognize(recognizer, on_progress=show_progress)
            finally:
                print(file=sys.stderr)

        result = None
        if args.commit:
            pipeline = CommitPipeline(
                inventory,
                quota,
                concurrency=config.commit.concurrency,
                category=config.commit.category,
            )
            result = await flow.commit(pipeline)

        if args.json:
            data = {
                "items": [item.to_dict() for item in draft],
                "total": str(draft.total()),
            }
            if result is not None:
                data["committed"] = [r.to_dict() for r in result.succeeded]
                data["failed"] = [
                    {"index": f.index, "name": f.item.name, "reason": f.reason}
                    for f in result.failed
                ]
            print(json.dumps(data, ensure_ascii=False, indent=2))
        else:
            print(f"Items found: {len(draft)}")
            for item in draft:
                print(f"  {item.name:<30} x{item.quantity:<3} {item.unit_price:>9}")
            print(f"  {'Total':<30}      {draft.total():>9}")
            if result is not None:
                print(result.summary())
    finally:
        inventory.close()
        usage.close()


def _cmd_items(config, args) -> None:
    owner = args.owner or config.plan.owner_key
    inventory = InventoryDB(config.store.db_path)
    try:
        records = inventory.get_items(owner)
    finally:
        inventory.close()

    if args.json:
        print(json.dumps([r.to_dict() for r in records], ensure_ascii=False, indent=2))
        return
    if not records:
        print("No inventory items.")
        return
    for r in records:
        print(f"  #{r.id:<4} {r.name:<30} {r.quantity:>4}  {r.unit_price:>9}  {r.status}")


async def _cmd_plans(config, args) -> None:
    owner = args.owner or config.plan.owner_key
    for plan in PLANS.values():
        mark = " (current)" if plan.id == config.plan.plan_id else ""
        print(f"{plan.name} - £{plan.monthly_price}/month{mark}")
        for resource, limit in plan.limits.items():
            shown = "unlimited" if limit == UNLIMITED else str(limit)
            print(f"  {resource:<16} {shown}")

    inventory, usage, quota = _open_stores(config)
    try:
        print(f"\nRemaining for {owner}:")
        for resource in (RESOURCE_INVENTORY_ITEMS, RESOURCE_RECEIPT_SCANS, RESOURCE_EXCEL_IMPORTS):
            left = await quota.remaining_allowance(owner, resource)
            shown = "unlimited" if left == UNLIMITED else str(left)
            print(f"  {resource:<16} {shown}")
    finally:
        inventory.close()
        usage.close()


if __name__ == "__main__":
    main()
