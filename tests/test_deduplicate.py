from __future__ import annotations

import copy
import json
import logging
import pathlib

from mcq_dedup import deduplicate


def build_record(record_id, question, **overrides):
    base = {
        "id": record_id,
        "question": question,
        "options": {"A": "One", "B": "Two", "C": "Three", "D": "Four"},
        "correctAnswer": "A",
        "explanation": None,
        "difficulty": "medium",
        "tags": [],
    }
    base.update(overrides)
    return base


def sample_collection():
    # Deliberately out of id order; the engine sorts before clustering.
    return [
        build_record(
            4,
            "What is the boiling point of water at sea level?",
            explanation="Water boils at 100 degrees Celsius at one atmosphere.",
        ),
        build_record(1, "What is the powerhouse of the cell?", explanation="Mitochondria."),
        build_record(
            3,
            "The organelle known as the powerhouse of the cell is the:",
            explanation=(
                "The mitochondrion generates ATP through cellular respiration, "
                "specifically oxidative phosphorylation (Krebs cycle)."
            ),
            difficulty="hard",
            tags=["biology", "cells"],
        ),
        build_record(
            2,
            "Which gas do plants absorb during photosynthesis?",
            explanation="Carbon dioxide is absorbed because plants fix it into sugars.",
        ),
    ]


def test_empty_collection_is_a_clean_noop():
    summary = deduplicate.deduplicate_records([])
    assert summary.before == 0
    assert summary.records == []
    assert summary.resolutions == []


def test_single_record_is_renumbered_to_one():
    summary = deduplicate.deduplicate_records([build_record(7, "Which planet is largest?")])
    assert [record["id"] for record in summary.records] == [1]
    assert summary.resolutions == []


def test_duplicates_collapse_to_best_record_with_dense_ids():
    summary = deduplicate.deduplicate_records(sample_collection())

    assert summary.before == 4
    assert summary.after == 3
    assert [record["id"] for record in summary.records] == [1, 2, 3]
    assert [record["question"] for record in summary.records] == [
        "Which gas do plants absorb during photosynthesis?",
        "The organelle known as the powerhouse of the cell is the:",
        "What is the boiling point of water at sea level?",
    ]

    kept = summary.records[1]
    assert kept["difficulty"] == "hard"
    assert kept["tags"] == ["biology", "cells"]
    assert kept["explanation"].startswith("Mitochondria. The mitochondrion generates ATP")

    assert [record["id"] for record in summary.removed] == [1]
    assert [resolution.kept_id for resolution in summary.merged] == [3]


def test_group_completeness():
    records = sample_collection()
    summary = deduplicate.deduplicate_records(records)
    assert summary.after + len(summary.removed) == len(records)


def test_input_collection_is_not_mutated():
    records = sample_collection()
    snapshot = copy.deepcopy(records)
    deduplicate.deduplicate_records(records)
    assert records == snapshot


def test_deduplication_is_idempotent():
    first = deduplicate.deduplicate_records(sample_collection())
    second = deduplicate.deduplicate_records(first.records)
    assert second.records == first.records
    assert second.resolutions == []


def test_malformed_records_survive_as_singletons():
    records = sample_collection() + [{"id": 9}, {"id": 8, "question": "", "options": {}}]
    summary = deduplicate.deduplicate_records(records)
    assert summary.after == 5
    assert summary.records[-2:] == [
        {"id": 4, "question": "", "options": {}},
        {"id": 5},
    ]


def test_preview_reports_duplicate_groups():
    report = deduplicate.preview_duplicates(sample_collection())
    assert report.total == 4
    assert [[record["id"] for record in group] for group in report.duplicate_groups] == [[1, 3]]
    assert report.duplicate_count == 1
    assert report.estimated_final_count == 3


def test_quality_metrics():
    metrics = deduplicate.quality_metrics([
        build_record(1, "a", explanation="one two three four"),
        build_record(2, "b", explanation=None),
    ])
    assert metrics == {"average_explanation_words": 2, "with_explanation": 1, "total": 2}


def test_deduplicate_collection_rewrites_file_and_reports(tmp_path):
    path = tmp_path / "mcqs.json"
    path.write_text(json.dumps(sample_collection()), encoding="utf-8")
    report_path = tmp_path / "reports" / "dedup.json"
    summary_path = tmp_path / "reports" / "dedup.md"

    ok = deduplicate.deduplicate_collection(
        path, backup=True, report_path=report_path, summary_md_path=summary_path
    )

    assert ok is True
    saved = json.loads(path.read_text(encoding="utf-8"))
    assert [record["id"] for record in saved] == [1, 2, 3]
    assert (tmp_path / "mcqs.before_dedup.json").exists()

    report = json.loads(report_path.read_text(encoding="utf-8"))
    assert report["before"] == 4
    assert report["after"] == 3
    assert report["groups"][0]["kept_id"] == 3
    assert report["groups"][0]["new_id"] == 2
    assert report["groups"][0]["removed_ids"] == [1]
    assert report["groups"][0]["explanation_scores"] == {"1": 0, "3": 5}
    assert "Kept #3 as #2; removed 1 (explanations merged)" in summary_path.read_text(encoding="utf-8")


def test_deduplicate_collection_missing_file_reports_failure(tmp_path, caplog):
    path = tmp_path / "mcqs.json"
    with caplog.at_level(logging.ERROR):
        ok = deduplicate.deduplicate_collection(path)
    assert ok is False
    assert "Collection not found" in caplog.text
    assert not path.exists()


def test_deduplicate_collection_leaves_invalid_file_untouched(tmp_path, caplog):
    path = tmp_path / "mcqs.json"
    path.write_text("[{broken", encoding="utf-8")
    with caplog.at_level(logging.ERROR):
        ok = deduplicate.deduplicate_collection(path)
    assert ok is False
    assert "Invalid JSON" in caplog.text
    assert path.read_text(encoding="utf-8") == "[{broken"


def test_deduplicate_collection_rejects_non_finite_ids(tmp_path, caplog):
    path = tmp_path / "mcqs.json"
    original = (
        '[{"id": Infinity, "question": "What is the powerhouse of the cell?", "options": {}},'
        ' {"id": 2, "question": "Powerhouse of the cell", "options": {}}]'
    )
    path.write_text(original, encoding="utf-8")
    with caplog.at_level(logging.ERROR):
        ok = deduplicate.deduplicate_collection(path)
    assert ok is False
    assert "Invalid JSON" in caplog.text
    assert path.read_text(encoding="utf-8") == original


def test_deduplicate_collection_write_failure_keeps_original(tmp_path, caplog, monkeypatch):
    path = tmp_path / "mcqs.json"
    original = json.dumps(sample_collection())
    path.write_text(original, encoding="utf-8")

    def failing_replace(self, target):
        raise OSError("disk full")

    monkeypatch.setattr(pathlib.Path, "replace", failing_replace)
    with caplog.at_level(logging.ERROR):
        ok = deduplicate.deduplicate_collection(path)

    assert ok is False
    assert "Deduplication not saved" in caplog.text
    assert "disk full" in caplog.text
    assert path.read_text(encoding="utf-8") == original
    assert [item.name for item in tmp_path.iterdir()] == ["mcqs.json"]


def test_deduplicate_collection_report_failure_after_save(tmp_path, caplog):
    path = tmp_path / "mcqs.json"
    path.write_text(json.dumps(sample_collection()), encoding="utf-8")
    report_path = tmp_path / "reports"
    report_path.mkdir()

    with caplog.at_level(logging.ERROR):
        ok = deduplicate.deduplicate_collection(path, report_path=report_path)

    assert ok is False
    assert "Collection saved but report could not be written" in caplog.text
    saved = json.loads(path.read_text(encoding="utf-8"))
    assert [record["id"] for record in saved] == [1, 2, 3]


def test_preview_collection_does_not_write(tmp_path, caplog):
    path = tmp_path / "mcqs.json"
    original = json.dumps(sample_collection())
    path.write_text(original, encoding="utf-8")
    with caplog.at_level(logging.INFO):
        ok = deduplicate.preview_collection(path)
    assert ok is True
    assert path.read_text(encoding="utf-8") == original
    assert "Duplicates to remove: 1" in caplog.text
    assert "Explanation score: 5/15" in caplog.text


def test_main_preview_and_run_exit_codes(tmp_path):
    path = tmp_path / "mcqs.json"
    path.write_text(json.dumps(sample_collection()), encoding="utf-8")
    common = ["--collection", str(path), "--log-dir", str(tmp_path / "logs")]

    assert deduplicate.main(common + ["preview"]) == 0
    assert len(json.loads(path.read_text(encoding="utf-8"))) == 4

    assert deduplicate.main(common + ["run"]) == 0
    assert len(json.loads(path.read_text(encoding="utf-8"))) == 3

    missing = ["--collection", str(tmp_path / "missing.json"), "--log-dir", str(tmp_path / "logs")]
    assert deduplicate.main(missing + ["run"]) == 1


def test_main_append_command(tmp_path):
    path = tmp_path / "mcqs.json"
    path.write_text(json.dumps(sample_collection()), encoding="utf-8")
    batch = tmp_path / "batch.json"
    batch.write_text(json.dumps([{"question": "Which planet is largest?", "options": {"A": "Jupiter"}}]), encoding="utf-8")

    code = deduplicate.main(
        ["--collection", str(path), "--log-dir", str(tmp_path / "logs"), "append", "--input", str(batch)]
    )
    assert code == 0
    saved = json.loads(path.read_text(encoding="utf-8"))
    assert saved[-1]["id"] == 5
    assert saved[-1]["question"] == "Which planet is largest?"


def test_main_help_returns_zero(capsys):
    assert deduplicate.main(["help"]) == 0
    assert "preview" in capsys.readouterr().out
