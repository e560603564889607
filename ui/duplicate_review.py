"""Streamlit UI for inspecting duplicate MCQ groups side-by-side.

Read-only: it clusters the collection in memory and shows what ``run`` would
keep, remove and merge, but never writes the collection.

    streamlit run ui/duplicate_review.py
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, List

import streamlit as st

from mcq_dedup.collection import DEFAULT_COLLECTION, CollectionError, load_collection
from mcq_dedup.deduplicate import format_score, preview_duplicates
from mcq_dedup.explanation_quality import score_explanation
from mcq_dedup.representative import resolve_group
from mcq_dedup.text_similarity import calculate_similarity


def render_record(record: Dict[str, Any], seed_question: str, is_kept: bool) -> None:
    heading = f"### ID {record.get('id')}"
    if is_kept:
        heading += " (kept)"
    st.markdown(heading)
    st.markdown(f"**Question**: {record.get('question')}")
    options = record.get("options") or {}
    if isinstance(options, dict):
        for label, text in options.items():
            st.markdown(f"- **{label}.** {text}")
    st.markdown(f"**Answer:** {record.get('correctAnswer')}")
    st.markdown(f"**Explanation:** {record.get('explanation')}")
    st.markdown(f"**Explanation score:** {format_score(score_explanation(record.get('explanation')))}")
    if record.get("question") != seed_question:
        similarity = calculate_similarity(seed_question, record.get("question"))
        st.caption(
            f"Similarity to first: {round(similarity.combined * 100)}% | "
            f"keywords={similarity.keyword_score:.2f} | contains={similarity.contains} | "
            f"chars={similarity.char_score:.2f}"
        )


def main() -> None:
    st.set_page_config(page_title="MCQ Duplicate Review", layout="wide")
    st.title("MCQ Duplicate Review")

    collection_path = Path(st.sidebar.text_input("Collection path", str(DEFAULT_COLLECTION.resolve())))

    try:
        records = load_collection(collection_path)
    except CollectionError as exc:
        st.error(str(exc))
        return

    report = preview_duplicates(records)
    st.sidebar.metric("Total MCQs", report.total)
    st.sidebar.metric("Duplicates to remove", report.duplicate_count)
    st.sidebar.metric("Estimated final count", report.estimated_final_count)

    groups: List[List[Dict[str, Any]]] = report.duplicate_groups
    if not groups:
        st.success("No duplicate groups found.")
        return

    if "group_index" not in st.session_state:
        st.session_state.group_index = 0

    index = st.session_state.group_index % len(groups)
    group = groups[index]
    st.subheader(f"Group {index + 1} of {len(groups)} ({len(group)} similar MCQs)")

    resolution = resolve_group(copy.deepcopy(group))
    seed_question = group[0].get("question")
    cols = st.columns(len(group))
    for col, record in zip(cols, group):
        with col:
            render_record(record, seed_question, record.get("id") == resolution.kept_id)

    if resolution.merged:
        st.markdown("#### Merged explanation")
        st.write(resolution.kept.get("explanation"))

    col_prev, col_next = st.columns([1, 1])
    with col_prev:
        if st.button("Previous"):
            st.session_state.group_index = (st.session_state.group_index - 1) % len(groups)
            st.rerun()
    with col_next:
        if st.button("Next"):
            st.session_state.group_index += 1
            st.rerun()


if __name__ == "__main__":
    main()
