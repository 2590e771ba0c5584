from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from . import converter
from .errors import Md2DocError
from .style_config import default_style_config, load_style_config
from .utils import configure_logging, read_markdown, resolve_output_path, write_output


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="md2doc",
        description="Convert Markdown with LaTeX math into a DOCX document.",
    )
    parser.add_argument("input", type=str, help="Path to Markdown file")
    parser.add_argument("-o", "--output", type=str, help="Output DOCX path")
    parser.add_argument("--style", type=str, help="YAML file overriding the default styles")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(verbose=args.verbose)
    input_path = Path(args.input).expanduser()
    if not input_path.exists():
        raise FileNotFoundError(f"Input file not found: {input_path}")
    output_path = resolve_output_path(input_path, args.output)
    config = load_style_config(args.style) if args.style else default_style_config()

    logging.info("Reading %s", input_path)
    markdown_text = read_markdown(input_path)
    logging.debug("Markdown length: %d chars", len(markdown_text))

    logging.info("Converting to DOCX...")
    try:
        data = converter.convert_markdown_sync(markdown_text, config=config)
    except Md2DocError as exc:
        logging.error("Conversion failed: %s", exc)
        return 1

    write_output(output_path, data)
    logging.info("Done. Saved to %s", output_path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
