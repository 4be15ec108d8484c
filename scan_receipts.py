#!/usr/bin/env python3
"""
Scan local receipt files through the extraction pipeline.

Runs the same pipeline as POST /receipts/scan, without blob storage or
quota accounting. Requires ANTHROPIC_API_KEY (in the environment or .env).

Usage:
    python scan_receipts.py ./receipts/lunch.jpg ./receipts/hotel.pdf
    python scan_receipts.py --json ./receipts/hotel.pdf
"""
import argparse
import asyncio
import mimetypes
from pathlib import Path
from src.core.errors import ScanError
from src.core.logging import setup_logging
from src.services.confidence import is_total_usable
from src.services.scan_pipeline import ReceiptScanPipeline
from src.services.vision_extractor import VisionExtractor


def guess_content_type(path: Path) -> str:
    content_type, _ = mimetypes.guess_type(path.name)
    if content_type is None and path.suffix.lower() == ".heic":
        return "image/heic"
    return content_type or "application/octet-stream"


async def scan_file(pipeline: ReceiptScanPipeline, path: Path, show_json: bool):
    """Scan one file and print a summary line"""
    try:
        outcome = await pipeline.scan(path.read_bytes(), guess_content_type(path))
    except ScanError as e:
        print(f"❌ {path.name}: {e.message}")
        return None

    result = outcome.result
    total = result.total
    icon = "✅" if is_total_usable(result) else "⚠️ "
    print(
        f"{icon} {path.name}: {result.vendor.value or 'Unknown vendor'} | "
        f"date {result.date.value or 'N/A'} | total {total.value} ({total.confidence:.0%}) | "
        f"{outcome.attempts} model call(s)"
    )
    if show_json:
        print(result.model_dump_json(by_alias=True, indent=2))
    return outcome


async def run(paths: list[Path], show_json: bool):
    pipeline = ReceiptScanPipeline(extractor=VisionExtractor.from_settings())
    for path in paths:
        if not path.exists():
            print(f"⚠️  File not found: {path}")
            continue
        await scan_file(pipeline, path, show_json)


def main():
    parser = argparse.ArgumentParser(description="Scan receipt images or PDFs")
    parser.add_argument("files", nargs="+", type=Path, help="Receipt files (JPEG, PNG, WebP, HEIC or PDF)")
    parser.add_argument("--json", action="store_true", help="Print the full extraction as JSON")
    parser.add_argument("--log-level", default="WARNING", help="Log level (default: WARNING)")
    args = parser.parse_args()

    setup_logging(args.log_level)

    print("=" * 70)
    print("Receipt Scan")
    print("=" * 70)

    try:
        asyncio.run(run(args.files, args.json))
    except ScanError as e:
        # ExtractorNotConfigured is raised before any file is read
        print(f"❌ {e.message}. Set ANTHROPIC_API_KEY to scan receipts.")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
