"""Export the MCQ collection as JSON, CSV or a plain-text listing.

Example usage:

    python -m mcq_dedup.export --format csv --output exports/mcqs.csv
    python -m mcq_dedup.export --format readable --id 12
"""

from __future__ import annotations

import argparse
import csv
import io
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .collection import DEFAULT_COLLECTION, CollectionError, get_record, load_collection


FORMATS = ("json", "csv", "readable")
CSV_COLUMNS = ["id", "question", "options", "correctAnswer", "explanation", "difficulty"]
SEPARATOR = "-" * 50


def to_csv(records: Sequence[Dict[str, Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for record in records:
        writer.writerow([
            record.get("id"),
            record.get("question") or "",
            json.dumps(record.get("options") or {}, ensure_ascii=False),
            record.get("correctAnswer") or "",
            record.get("explanation") or "",
            record.get("difficulty") or "",
        ])
    return buffer.getvalue()


def to_readable(records: Sequence[Dict[str, Any]]) -> str:
    lines: List[str] = []
    for record in records:
        lines.append("")
        lines.append(f"MCQ #{record.get('id')}:")
        lines.append(f"Q: {record.get('question') or ''}")
        lines.append("Options:")
        options = record.get("options") or {}
        if isinstance(options, dict):
            for label, text in options.items():
                lines.append(f"  {label}: {text}")
        lines.append(f"Answer: {record.get('correctAnswer')}")
        if record.get("explanation"):
            lines.append(f"Explanation: {record['explanation']}")
        lines.append(SEPARATOR)
    return "\n".join(lines) + "\n" if lines else ""


def format_records(records: Sequence[Dict[str, Any]], fmt: str = "json") -> str:
    fmt = fmt.lower()
    if fmt == "json":
        return json.dumps(list(records), indent=2, ensure_ascii=False)
    if fmt == "csv":
        return to_csv(records)
    if fmt == "readable":
        return to_readable(records)
    raise ValueError(f"Unsupported export format: {fmt}")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Export the MCQ collection")
    parser.add_argument("--input", type=Path, default=DEFAULT_COLLECTION, help="MCQ collection JSON file")
    parser.add_argument("--format", choices=FORMATS, default="json")
    parser.add_argument("--output", type=Path, help="Write to this path instead of stdout")
    parser.add_argument("--id", type=int, help="Export a single MCQ by id")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s | %(message)s")

    try:
        records = load_collection(args.input)
    except CollectionError as exc:
        logging.error("Export failed: %s", exc)
        return 1

    if args.id is not None:
        record = get_record(records, args.id)
        if record is None:
            logging.error("No MCQ with id %d in %s", args.id, args.input)
            return 1
        records = [record]

    content = format_records(records, args.format)
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(content, encoding="utf-8")
        logging.info("Exported %d MCQs to %s", len(records), args.output)
    else:
        sys.stdout.write(content)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
