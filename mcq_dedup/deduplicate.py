"""Detect and collapse near-duplicate MCQs in the shared collection.

The extraction pipeline appends every MCQ it parses to ``output/mcqs.json``.
Re-running the same scans (or paraphrased copies of them) gradually fills the
collection with near-duplicates.  This tool clusters similar questions, keeps
the record with the best explanation from each cluster, folds the other
explanations into it, and renumbers the survivors ``1..N``.

Example usage:

    # Report duplicate groups without touching the collection
    python -m mcq_dedup.deduplicate preview --collection output/mcqs.json

    # Collapse duplicates, keep a backup and write a JSON report
    python -m mcq_dedup.deduplicate run \
        --collection output/mcqs.json \
        --backup \
        --report reports/dedup.json

    # Append freshly extracted MCQs (ids continue from the current maximum)
    python -m mcq_dedup.deduplicate append --input data/extracted/batch_07.json

Run logs are written to ``artifacts/logs/dedup/``.
"""

from __future__ import annotations

import argparse
import copy
import json
import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .clustering import group_similar, question_text
from .collection import (
    DEFAULT_COLLECTION,
    CollectionError,
    append_records,
    backup_collection,
    load_collection,
    renumber,
    save_collection,
    sort_by_id,
)
from .explanation_quality import DISPLAY_MAX_SCORE, score_explanation
from .representative import GroupResolution, resolve_group
from .text_similarity import calculate_similarity


DEFAULT_LOG_DIR = Path("artifacts/logs/dedup")
RULE = "=" * 70
GROUP_PREVIEW_WIDTH = 60
PREVIEW_WIDTH = 80
REMOVED_PREVIEW_WIDTH = 70


@dataclass
class PreviewReport:
    total: int
    groups: List[List[Dict[str, Any]]]
    duplicate_groups: List[List[Dict[str, Any]]]

    @property
    def duplicate_count(self) -> int:
        return sum(len(group) - 1 for group in self.duplicate_groups)

    @property
    def estimated_final_count(self) -> int:
        return self.total - self.duplicate_count


@dataclass
class DedupSummary:
    before: int
    records: List[Dict[str, Any]]
    resolutions: List[GroupResolution] = field(default_factory=list)

    @property
    def after(self) -> int:
        return len(self.records)

    @property
    def removed(self) -> List[Dict[str, Any]]:
        return [record for resolution in self.resolutions for record in resolution.removed]

    @property
    def merged(self) -> List[GroupResolution]:
        return [resolution for resolution in self.resolutions if resolution.merged]


def configure_logging(log_dir: Path, verbose: bool = False) -> Path:
    log_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_path = log_dir / f"dedup_{timestamp}.log"
    handlers = [logging.StreamHandler(sys.stdout), logging.FileHandler(log_path, encoding="utf-8")]
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s | %(levelname)s | %(message)s",
        handlers=handlers,
    )
    logging.info("Logging to %s", log_path)
    return log_path


def truncate(text: str, width: int) -> str:
    return f"{text[:width]}..."


def format_score(score: int) -> str:
    return f"{score}/{DISPLAY_MAX_SCORE}"


def preview_duplicates(records: Sequence[Dict[str, Any]], progress: bool = False) -> PreviewReport:
    ordered = sort_by_id(records)
    groups = group_similar(ordered, progress=progress)
    return PreviewReport(
        total=len(ordered),
        groups=groups,
        duplicate_groups=[group for group in groups if len(group) > 1],
    )


def deduplicate_records(records: Sequence[Dict[str, Any]], progress: bool = False) -> DedupSummary:
    """Collapse each similarity group to one record and renumber the survivors.

    The input is left untouched; the returned summary holds deep copies.
    """
    working = sort_by_id(copy.deepcopy(list(records)))
    groups = group_similar(working, progress=progress)

    survivors: List[Dict[str, Any]] = []
    resolutions: List[GroupResolution] = []
    for group in groups:
        resolution = resolve_group(group)
        survivors.append(resolution.kept)
        if len(group) > 1:
            resolutions.append(resolution)

    return DedupSummary(before=len(working), records=renumber(survivors), resolutions=resolutions)


def log_preview(report: PreviewReport) -> None:
    logging.info(RULE)
    logging.info("MCQ DUPLICATE PREVIEW")
    logging.info(RULE)
    logging.info("Current collection: %d MCQs", report.total)

    for group in report.duplicate_groups:
        logging.info("Group (%d similar MCQs):", len(group))
        seed_question = question_text(group[0])
        for position, record in enumerate(group, start=1):
            logging.info("  %d. ID %s:", position, record.get("id"))
            logging.info("     Q: %s", truncate(question_text(record), PREVIEW_WIDTH))
            if position > 1:
                similarity = calculate_similarity(seed_question, question_text(record))
                logging.info("     Similarity: %d%%", round(similarity.combined * 100))
            logging.info(
                "     Explanation score: %s", format_score(score_explanation(record.get("explanation")))
            )

    logging.info(RULE)
    logging.info("PREVIEW SUMMARY")
    logging.info(RULE)
    logging.info("Total MCQs: %d", report.total)
    logging.info("Duplicates to remove: %d", report.duplicate_count)
    logging.info("Estimated final count: %d", report.estimated_final_count)
    if report.duplicate_count == 0:
        logging.info("No duplicates found.")
    else:
        logging.info("Run the 'run' command to remove these duplicates.")


def log_group_resolution(resolution: GroupResolution, group: Sequence[Dict[str, Any]]) -> None:
    logging.info("Found %d similar MCQs:", len(group))
    for record in group:
        logging.info(
            "  ID %s: %s (explanation score: %s)",
            record.get("id"),
            truncate(question_text(record), GROUP_PREVIEW_WIDTH),
            format_score(resolution.member_scores.get(record.get("id"), 0)),
        )
    logging.info(
        "  Keeping ID %s (score: %s)",
        resolution.kept_id,
        format_score(score_explanation(resolution.kept.get("explanation"))),
    )
    logging.info("  Removing IDs: %s", ", ".join(str(record.get("id")) for record in resolution.removed))
    if resolution.merged:
        logging.info("  Merged explanations from IDs: %s", ", ".join(str(i) for i in resolution.source_ids))


def quality_metrics(records: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    explained = [
        record for record in records
        if isinstance(record.get("explanation"), str) and record.get("explanation")
    ]
    total_words = sum(len(record["explanation"].split()) for record in explained)
    average = total_words / len(records) if records else 0.0
    return {
        "average_explanation_words": round(average),
        "with_explanation": len(explained),
        "total": len(records),
    }


def log_run_summary(summary: DedupSummary) -> None:
    logging.info(RULE)
    logging.info("DEDUPLICATION SUMMARY")
    logging.info(RULE)
    logging.info("Before: %d MCQs", summary.before)
    logging.info("After : %d MCQs", summary.after)
    logging.info("Removed: %d duplicates", summary.before - summary.after)
    if summary.after:
        logging.info("New ID range: 1 - %d", summary.after)

    removed = summary.removed
    if removed:
        logging.info("Removed duplicates:")
        for position, record in enumerate(removed, start=1):
            logging.info(
                "  %d. ID %s: %s",
                position,
                record.get("id"),
                truncate(question_text(record), REMOVED_PREVIEW_WIDTH),
            )

    merged = summary.merged
    if merged:
        logging.info("Enhanced explanations:")
        for resolution in merged:
            logging.info(
                "  MCQ #%s, was #%s (merged from IDs: %s)",
                resolution.kept.get("id"),
                resolution.kept_id,
                ", ".join(str(source_id) for source_id in resolution.source_ids),
            )

    metrics = quality_metrics(summary.records)
    logging.info("Quality metrics:")
    logging.info("  Average explanation length: %d words", metrics["average_explanation_words"])
    logging.info("  MCQs with explanations: %d/%d", metrics["with_explanation"], metrics["total"])


def build_report_dict(summary: DedupSummary) -> Dict[str, Any]:
    return {
        "before": summary.before,
        "after": summary.after,
        "removed": summary.before - summary.after,
        "groups": [
            {
                "kept_id": resolution.kept_id,
                "new_id": resolution.kept.get("id"),
                "removed_ids": [record.get("id") for record in resolution.removed],
                "explanation_scores": {
                    str(record_id): score for record_id, score in resolution.member_scores.items()
                },
                "merged_explanation": resolution.merged,
            }
            for resolution in summary.resolutions
        ],
        "quality": quality_metrics(summary.records),
    }


def create_markdown_report(summary: DedupSummary) -> str:
    lines = [
        "# Deduplication Report",
        "",
        f"- Before: {summary.before}",
        f"- After: {summary.after}",
        f"- Removed: {summary.before - summary.after}",
        f"- Duplicate groups: {len(summary.resolutions)}",
        f"- Merged explanations: {len(summary.merged)}",
    ]
    if summary.resolutions:
        lines.extend(["", "## Groups"])
        for resolution in summary.resolutions:
            removed_ids = ", ".join(str(record.get("id")) for record in resolution.removed)
            suffix = " (explanations merged)" if resolution.merged else ""
            lines.append(
                f"- Kept #{resolution.kept_id} as #{resolution.kept.get('id')}; removed {removed_ids}{suffix}"
            )
    return "\n".join(lines) + "\n"


def write_text_report(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    logging.info("Report written to %s", path)


def preview_collection(collection_path: Path, progress: bool = False) -> bool:
    try:
        records = load_collection(collection_path)
    except CollectionError as exc:
        logging.error("Preview failed: %s", exc)
        return False
    log_preview(preview_duplicates(records, progress=progress))
    return True


def deduplicate_collection(
    collection_path: Path,
    backup: bool = False,
    report_path: Optional[Path] = None,
    summary_md_path: Optional[Path] = None,
    progress: bool = False,
) -> bool:
    """Load, deduplicate and rewrite the collection; ``False`` if anything failed."""
    logging.info(RULE)
    logging.info("MCQ DEDUPLICATION ENGINE")
    logging.info(RULE)

    try:
        records = load_collection(collection_path)
    except CollectionError as exc:
        logging.error("Deduplication aborted: %s", exc)
        return False

    logging.info("Initial collection: %d MCQs", len(records))
    logging.info("Analysing similarities...")
    summary = deduplicate_records(records, progress=progress)
    logging.info("Found %d unique question groups", summary.after)
    logging.info("Identified %d potential duplicates", summary.before - summary.after)

    by_id: Dict[Any, Dict[str, Any]] = {record.get("id"): record for record in sort_by_id(records)}
    for resolution in summary.resolutions:
        group = [by_id[source_id] for source_id in resolution.source_ids if source_id in by_id]
        log_group_resolution(resolution, group)

    try:
        if backup:
            backup_collection(collection_path)
        save_collection(collection_path, summary.records)
    except CollectionError as exc:
        logging.error("Deduplication not saved: %s", exc)
        return False

    log_run_summary(summary)

    try:
        if report_path:
            write_text_report(report_path, json.dumps(build_report_dict(summary), indent=2))
        if summary_md_path:
            write_text_report(summary_md_path, create_markdown_report(summary))
    except OSError as exc:
        logging.error("Collection saved but report could not be written: %s", exc)
        return False

    logging.info("Deduplication complete; collection at %s", collection_path)
    return True


def append_collection(collection_path: Path, input_path: Path) -> bool:
    try:
        candidates = load_collection(input_path)
        append_records(collection_path, candidates)
    except CollectionError as exc:
        logging.error("Append failed: %s", exc)
        return False
    return True


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Detect and collapse near-duplicate MCQs")
    parser.add_argument("--collection", type=Path, default=DEFAULT_COLLECTION, help="MCQ collection JSON file")
    parser.add_argument("--log-dir", type=Path, default=DEFAULT_LOG_DIR, help="Directory for run logs")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--progress", action="store_true", help="Show a progress bar while clustering")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("preview", help="Report duplicate groups without modifying the collection")

    for name in ("run", "deduplicate"):
        run_parser = subparsers.add_parser(name, help="Remove duplicates and renumber the collection")
        run_parser.add_argument(
            "--backup",
            action="store_true",
            help="Copy the collection to <name>.before_dedup.json before overwriting it",
        )
        run_parser.add_argument("--report", type=Path, help="Write a JSON report of the run")
        run_parser.add_argument("--summary-md", type=Path, help="Write a Markdown summary of the run")

    append_parser = subparsers.add_parser("append", help="Append extracted MCQs with fresh ids")
    append_parser.add_argument("--input", type=Path, required=True, help="JSON array of extracted MCQs")

    subparsers.add_parser("help", help="Show this help")
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    command = args.command or "run"

    if command == "help":
        build_parser().print_help()
        return 0

    configure_logging(args.log_dir, verbose=args.verbose)

    if command == "preview":
        ok = preview_collection(args.collection, progress=args.progress)
    elif command in ("run", "deduplicate"):
        ok = deduplicate_collection(
            args.collection,
            backup=getattr(args, "backup", False),
            report_path=getattr(args, "report", None),
            summary_md_path=getattr(args, "summary_md", None),
            progress=args.progress,
        )
    elif command == "append":
        ok = append_collection(args.collection, args.input)
    else:
        raise ValueError(f"Unsupported command: {command}")
    return 0 if ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
