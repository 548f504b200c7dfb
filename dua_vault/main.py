"""
CLI entry point for the dua capture pipeline.

Usage:
    # OCR an image and clean up the text
    python -m dua_vault dua.jpg

    # OCR, then translate and categorize (quota-gated)
    python -m dua_vault dua.jpg --translate --user alice

    # Let the AI read the image directly
    python -m dua_vault dua.jpg --ai-image

    # Extract a dua from a web page
    python -m dua_vault https://example.com/dua --url

    # Machine-readable output
    python -m dua_vault dua.jpg --translate --json
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from dua_vault import __version__
from dua_vault.config import (
    AIBackend,
    AIConfig,
    OCRConfig,
    OCREngine,
    PipelineConfig,
    QuotaConfig,
)
from dua_vault.pipeline import DuaCapturePipeline
from dua_vault.utils import setup_logging


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="dua-vault",
        description=(
            "DuaVault capture: extract Arabic text from a photographed dua, "
            "then translate and categorize it."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s dua.jpg
  %(prog)s dua.jpg --translate --user alice --limit 3
  %(prog)s dua.jpg --ai-image --backend claude
  %(prog)s https://example.com/morning-duas --url --json

Environment variables for API keys:
  GEMINI_API_KEY     - Google Gemini API key (also GOOGLE_API_KEY, API_KEY)
  ANTHROPIC_API_KEY  - Anthropic Claude API key
        """,
    )

    parser.add_argument("source", type=str, help="Image path, or a URL with --url")

    # Mode
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--ai-image",
        action="store_true",
        help="Skip OCR and let the AI read the image directly",
    )
    mode.add_argument(
        "--url",
        action="store_true",
        help="Treat SOURCE as a web page URL",
    )

    # OCR options
    parser.add_argument(
        "--engine",
        type=str,
        choices=[e.value for e in OCREngine],
        default=OCREngine.TESSERACT.value,
        help="OCR engine (default: tesseract)",
    )
    parser.add_argument(
        "--tessdata-dir",
        type=str,
        default=None,
        help="Directory holding Tesseract language packs",
    )
    parser.add_argument(
        "--no-cleanup",
        action="store_true",
        help="Skip the AI cleanup pass on OCR output",
    )

    # Translation options
    parser.add_argument(
        "--translate",
        action="store_true",
        help="Translate and categorize the extracted text",
    )
    parser.add_argument(
        "--backend",
        type=str,
        choices=[b.value for b in AIBackend],
        default=AIBackend.GEMINI.value,
        help="Generative backend (default: gemini)",
    )
    parser.add_argument("--gemini-key", type=str, help="Gemini API key")
    parser.add_argument("--anthropic-key", type=str, help="Anthropic API key")

    # Quota options
    parser.add_argument("--user", type=str, default="local", help="User id for quota accounting")
    parser.add_argument("--premium", action="store_true", help="Bypass the monthly quota")
    parser.add_argument(
        "--limit",
        type=int,
        default=QuotaConfig.monthly_limit,
        help="Free monthly translation limit (default: %(default)s)",
    )

    # Misc
    parser.add_argument("--json", action="store_true", help="Print JSON output")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> PipelineConfig:
    return PipelineConfig(
        ocr=OCRConfig(engine=OCREngine(args.engine), tessdata_dir=args.tessdata_dir),
        ai=AIConfig(
            backend=AIBackend(args.backend),
            gemini_api_key=args.gemini_key,
            anthropic_api_key=args.anthropic_key,
        ),
        quota=QuotaConfig(monthly_limit=args.limit),
        cleanup_after_ocr=not args.no_cleanup,
    )


def _print_record(outcome) -> None:
    print("=" * 70)
    print("ARABIC")
    print("=" * 70)
    print(outcome.record.arabic)
    if outcome.record.translation:
        print()
        print("=" * 70)
        print("TRANSLATION")
        print("=" * 70)
        print(outcome.record.translation)
    print()
    print(f"  Category:   {outcome.record.category.value}")
    if outcome.quota and not outcome.quota.unlimited:
        print(f"  Quota:      {outcome.quota.used}/{outcome.quota.limit} used this month")
    for warning in outcome.warnings:
        print(f"  Warning:    {warning}")


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.WARNING)

    if not args.url and not Path(args.source).exists():
        print(f"Error: image not found: {args.source}", file=sys.stderr)
        return 1

    config = build_config(args)
    needs_ai = args.url or args.ai_image or args.translate or config.cleanup_after_ocr
    if needs_ai and not config.ai.get_api_key():
        print(
            f"Error: no API key configured for the {config.ai.backend.value} backend.\n"
            "Set GEMINI_API_KEY or ANTHROPIC_API_KEY, pass --gemini-key / --anthropic-key,\n"
            "or use --no-cleanup for OCR only.",
            file=sys.stderr,
        )
        return 1

    pipeline = DuaCapturePipeline(config)

    if not args.json:
        print(f"DuaVault capture v{__version__}")
        print(f"Source: {args.source}")
        print()

    if args.url or args.ai_image:
        if args.url:
            outcome = pipeline.from_url(args.source, args.user, premium=args.premium)
        else:
            outcome = pipeline.from_image_with_ai(
                args.source, args.user, include_translation=True, premium=args.premium
            )
        if args.json:
            print(json.dumps(outcome.to_dict(), ensure_ascii=False, indent=2))
        elif outcome.is_successful:
            _print_record(outcome)
        if not outcome.is_successful:
            print(f"Error: {outcome.error.user_message}", file=sys.stderr)
            return 1
        return 0

    capture = pipeline.extract_text(args.source)
    if not capture.is_successful:
        if args.json:
            print(json.dumps({"capture": capture.to_dict()}, ensure_ascii=False, indent=2))
        print(f"Error: {capture.error.user_message}", file=sys.stderr)
        return 1

    if not args.translate:
        if args.json:
            print(json.dumps({"capture": capture.to_dict()}, ensure_ascii=False, indent=2))
        else:
            print(capture.arabic)
            for warning in capture.warnings:
                print(f"  Warning:    {warning}")
        return 0

    outcome = pipeline.translate(args.user, capture.arabic, premium=args.premium)
    if args.json:
        print(json.dumps(
            {"capture": capture.to_dict(), "translation": outcome.to_dict()},
            ensure_ascii=False,
            indent=2,
        ))
    elif outcome.is_successful:
        _print_record(outcome)

    if not outcome.is_successful:
        print(f"Error: {outcome.error.user_message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
