"""Command line entry point.

Usage:
  quote-reel --quote "人生如梦，一尊还酹江月" --author "苏轼" --final-output out/quote.mp4
"""
from __future__ import annotations

import argparse
import logging
import sys

from .config import ANIMATIONS, DEFAULT_FONT, DEFAULT_TEXT_COLOR, load_settings
from .errors import QuoteReelError
from .pipeline import QuoteVideoRequest, render_quote_video

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="quote-reel", description="Render an animated quote video.")
    parser.add_argument("--quote", default="", help="The quote text")
    parser.add_argument("--author", default="", help="The author text")
    parser.add_argument("--tmp", default="./tmp", help="The output directory for frames")
    parser.add_argument("--final-output", required=True, help="The final video output path")
    parser.add_argument("--font", default=DEFAULT_FONT, help="The font path")
    parser.add_argument("--color", default=DEFAULT_TEXT_COLOR, help="The text color")
    parser.add_argument("--bg-color", default=None, help="The background color")
    parser.add_argument("--animation", choices=ANIMATIONS, default=None, help="The animation type")
    parser.add_argument("--hide-qrcode", action="store_true", help="Hide QR code")
    parser.add_argument("--force", action="store_true", help="Overwrite existing output file")
    parser.add_argument("--fps", type=int, default=None)
    parser.add_argument("--speed", type=float, default=None, help="Seconds between character reveals")
    parser.add_argument("--workers", type=int, default=1, help="Independent renderers sampling in parallel")
    parser.add_argument("--verbose", action="store_true")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(format=LOG_FORMAT, level=logging.DEBUG if args.verbose else logging.INFO)
    logger = logging.getLogger("quote_reel")

    try:
        settings = load_settings(fps=args.fps, unit_speed=args.speed)
        request = QuoteVideoRequest(
            quote=args.quote,
            author=args.author,
            output_path=args.final_output,
            tmp_dir=args.tmp,
            overwrite=args.force,
            hide_qrcode=args.hide_qrcode,
            animation=args.animation,
            bg_color=args.bg_color,
            color=args.color,
            font_path=args.font or None,
            workers=args.workers,
        )
        result = render_quote_video(request, settings)
    except QuoteReelError as exc:
        logger.error("%s", exc)
        return exc.exit_code

    print(result.output_path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
