import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from quotex.errors import ChunkExtractionError, NoUsableSheetsError
from quotex.logger import set_level
from quotex.pipeline import extract_workbook


def write_json_output(result: Dict[str, Any], output_path: str) -> str:
    """Write *result* as JSON to *output_path* and return the resolved path."""
    path = Path(output_path).expanduser().resolve()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(result, f, ensure_ascii=False, indent=2, default=str)
    return str(path)


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Extract a structured quotation from a spreadsheet workbook."
    )
    parser.add_argument("workbook", help="Path to the .xlsx, .xls or .csv file.")
    parser.add_argument(
        "--output",
        default="result.json",
        help="Output JSON path (default: result.json).",
    )
    parser.add_argument(
        "--allow-partial",
        action="store_true",
        help="Record failed chunks and keep going instead of aborting.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable DEBUG logging.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[list] = None) -> int:
    args = parse_args(argv)
    if args.verbose:
        set_level(logging.DEBUG)

    workbook = Path(args.workbook).expanduser()
    if not workbook.is_file():
        print(f"[error] workbook not found: {args.workbook}", file=sys.stderr)
        return 1

    try:
        document = extract_workbook(
            str(workbook),
            progress_callback=lambda msg: print(f"[progress] {msg}", file=sys.stderr),
            fail_fast=not args.allow_partial,
        )
    except NoUsableSheetsError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return 1
    except ChunkExtractionError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        if exc.preview:
            print(f"[error] response preview: {exc.preview!r}", file=sys.stderr)
        return 2

    json_path = write_json_output(document.to_dict(), args.output)
    print("JSON:", json_path)
    if document.failures:
        print(f"[warn] {len(document.failures)} chunk(s) failed", file=sys.stderr)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
