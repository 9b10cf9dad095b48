"""Entry point: ``pdf-stamper [input.pdf] [-s sign.png ...]``."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .errors import EditorError
from .logging_utils import configure_logging
from .session import EditorSession

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pdf-stamper",
        description="Place signature images on a PDF and save a stamped copy.",
    )
    parser.add_argument("pdf", nargs="?", help="PDF to open")
    parser.add_argument("-s", "--signature", action="append", default=[], metavar="IMAGE",
                        help="PNG/JPEG signature to add (repeatable)")
    parser.add_argument("-o", "--output", help="output file for --no-gui (default: <name>-edit.pdf)")
    parser.add_argument("--rotation", type=float, default=0.0, help="rotation in degrees for --no-gui")
    parser.add_argument("--opacity", type=float, default=1.0, help="opacity 0-1 for --no-gui")
    parser.add_argument("--no-gui", action="store_true", help="stamp at the default position and exit")
    parser.add_argument("--debug", action="store_true", help="verbose logging to the console")
    parser.add_argument("--log-file", help="log file path (default: ./logs/pdf_stamper.log)")
    return parser


def stamp(pdf, signatures, output=None, rotation=0.0, opacity=1.0) -> Path:
    """Headless stamping: every signature centred on every page."""
    session = EditorSession()
    meta = session.open_document(pdf)
    for image in signatures:
        item = session.add_signature(image)
        if rotation:
            session.store.rotate_item(item.id, rotation)
        if opacity != 1.0:
            session.store.set_opacity(item.id, opacity)
    out = Path(output) if output else Path(pdf).with_name(session.default_export_name)
    session.export_to(out)
    print(f"Saved: {out} ({meta.page_count} pages, {len(signatures)} signature(s))")
    return out


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(debug=args.debug, log_path=args.log_file)

    if args.no_gui:
        if not args.pdf or not args.signature:
            parser.error("--no-gui needs a PDF and at least one --signature")
        try:
            stamp(args.pdf, args.signature, args.output, args.rotation, args.opacity)
        except EditorError as e:
            logger.error("%s", e)
            print(f"Error: {e}", file=sys.stderr)
            return 1
        return 0

    from .app import run
    run(args.pdf, args.signature)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
