"""Read, write and renumber the persisted MCQ collection.

The collection is a single JSON array of MCQ objects (``output/mcqs.json`` by
default).  It is always read and written whole: callers load everything,
process in memory and write the result back in one atomic replace, so a failed
run never leaves a truncated file behind.
"""

from __future__ import annotations

import json
import logging
import re
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence


DEFAULT_COLLECTION = Path("output/mcqs.json")
BACKUP_SUFFIX = ".before_dedup.json"
DEFAULT_DIFFICULTY = "medium"

LOOSE_PUNCTUATION_RE = re.compile(r"[^\w\s]")
WHITESPACE_RE = re.compile(r"\s+")


class CollectionError(Exception):
    """The collection file could not be read or written."""


@dataclass
class AppendResult:
    added: List[Dict[str, Any]] = field(default_factory=list)
    skipped: int = 0
    total: int = 0


def reject_constant(name: str) -> Any:
    raise ValueError(f"non-finite number {name} is not allowed")


def load_collection(path: Path) -> List[Dict[str, Any]]:
    if not path.exists():
        raise CollectionError(f"Collection not found: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise CollectionError(f"Could not read {path}: {exc}") from exc
    try:
        data = json.loads(text, parse_constant=reject_constant)
    except ValueError as exc:
        raise CollectionError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, list):
        raise CollectionError(f"Expected a JSON array of MCQs in {path}, got {type(data).__name__}")
    for position, record in enumerate(data, start=1):
        if not isinstance(record, dict):
            raise CollectionError(f"Entry {position} in {path} is not a JSON object")
    return data


def save_collection(path: Path, records: Sequence[Dict[str, Any]]) -> None:
    """Write the whole collection via a temp file and ``Path.replace``."""
    temp_path: Optional[Path] = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w",
            suffix=".json",
            dir=path.parent,
            delete=False,
            encoding="utf-8",
        ) as stream:
            temp_path = Path(stream.name)
            json.dump(list(records), stream, indent=2, ensure_ascii=False)
        temp_path.replace(path)
    except (OSError, TypeError, ValueError) as exc:
        if temp_path is not None and temp_path.exists():
            temp_path.unlink()
        raise CollectionError(f"Could not write {path}: {exc}") from exc
    logging.debug("Wrote %d MCQs to %s", len(records), path)


def backup_collection(path: Path) -> Path:
    backup_path = path.with_name(path.stem + BACKUP_SUFFIX)
    try:
        shutil.copy2(path, backup_path)
    except OSError as exc:
        raise CollectionError(f"Could not back up {path}: {exc}") from exc
    logging.info("Created backup: %s", backup_path)
    return backup_path


def sort_key(record: Dict[str, Any]) -> int:
    try:
        return int(record.get("id"))
    except (TypeError, ValueError, OverflowError):
        return 0


def sort_by_id(records: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(records, key=sort_key)


def renumber(records: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Sort by original id, then assign ids ``1..N`` in place."""
    ordered = sort_by_id(records)
    for new_id, record in enumerate(ordered, start=1):
        record["id"] = new_id
    return ordered


def get_record(records: Iterable[Dict[str, Any]], record_id: int) -> Optional[Dict[str, Any]]:
    for record in records:
        if record.get("id") == record_id:
            return record
    return None


def next_id(records: Iterable[Dict[str, Any]]) -> int:
    ids = [sort_key(record) for record in records]
    return max(ids) + 1 if ids else 1


def loose_fingerprint(question: Optional[str]) -> str:
    if not isinstance(question, str):
        return ""
    text = LOOSE_PUNCTUATION_RE.sub("", question.lower())
    return WHITESPACE_RE.sub(" ", text).strip()


def standardise_record(candidate: Dict[str, Any]) -> Dict[str, Any]:
    """Map an extracted candidate onto the collection schema (id left unset)."""
    return {
        "id": None,
        "question": candidate.get("question") or candidate.get("text") or "",
        "options": candidate.get("options") or {},
        "correctAnswer": (
            candidate.get("correctAnswer")
            or candidate.get("answer")
            or candidate.get("correct_option")
            or None
        ),
        "explanation": candidate.get("explanation") or candidate.get("explanation_text") or None,
        "difficulty": candidate.get("difficulty") or DEFAULT_DIFFICULTY,
        "tags": candidate.get("tags") or [],
    }


def append_records(path: Path, candidates: Sequence[Dict[str, Any]]) -> AppendResult:
    """Append new MCQs with the next unused ids, skipping exact question repeats.

    A missing collection file is treated as empty; any other load failure
    propagates so an unreadable collection is never overwritten.
    """
    existing: List[Dict[str, Any]] = load_collection(path) if path.exists() else []
    seen = {loose_fingerprint(record.get("question")) for record in existing}

    result = AppendResult()
    new_id = next_id(existing)
    for candidate in candidates:
        record = standardise_record(candidate)
        fingerprint = loose_fingerprint(record["question"])
        if fingerprint in seen:
            result.skipped += 1
            continue
        seen.add(fingerprint)
        record["id"] = new_id
        new_id += 1
        result.added.append(record)

    combined = existing + result.added
    save_collection(path, combined)
    result.total = len(combined)

    logging.info("New MCQs found: %d", len(candidates))
    logging.info("Duplicates skipped: %d", result.skipped)
    logging.info("New MCQs added: %d", len(result.added))
    logging.info("Total MCQs in collection: %d", result.total)
    return result
