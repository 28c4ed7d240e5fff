"""
Career Compass – Streamlit frontend.
No business logic in layout; matching is done by the pipeline layer.
"""

from typing import Optional, Tuple

import streamlit as st

from career_compass.config import (
    ACCEPTED_QUOTA,
    OPENAI_API_KEY,
    PREFERENCE_QUESTIONS,
    RESUME_MAX_CHARS,
    RESUME_MIN_CHARS,
)
from career_compass.errors import ErrorCode, PipelineError
from career_compass.pipeline.orchestrator import MatchPipeline
from career_compass.schemas.match import MatchResult, RankedMatch
from career_compass.utils.logger import get_logger

logger = get_logger(__name__)


@st.cache_resource
def _get_pipeline() -> MatchPipeline:
    """Corpus + FAISS indexes are built once per process and shared across sessions."""
    return MatchPipeline.from_artifact()


def _error_message(error: PipelineError) -> str:
    """User-facing text that tells 'fix your input' apart from 'try again' and 'misconfigured'."""
    if error.code is ErrorCode.INVALID_INPUT:
        lines = [f"- **{d['field']}**: {d['message']}" for d in error.details] or [error.message]
        return "Please fix your input:\n" + "\n".join(lines)
    if error.code is ErrorCode.RATE_LIMITED:
        return "The AI service is busy right now. Please try again in a minute."
    if error.code is ErrorCode.INTERNAL_ERROR:
        return f"The matching service is not available ({error.stage.value}): {error.message}"
    return f"Matching failed during {error.stage.value}: {error.message}. Please try again."


def _run_match(
    pipeline: MatchPipeline, resume_text: str, answers: dict
) -> Tuple[Optional[MatchResult], Optional[str]]:
    """Run one match; returns (result, error message). Never raises into the page."""
    try:
        return pipeline.run_match_sync(resume_text, answers), None
    except PipelineError as e:
        return None, _error_message(e)
    except Exception as e:
        logger.exception("Career match failed unexpectedly")
        return None, f"Matching failed: {str(e)}"


def _render_match(rank: int, match: RankedMatch, pipeline: MatchPipeline) -> None:
    with st.container():
        st.markdown("---")
        col_a, col_b = st.columns([3, 1])
        with col_a:
            st.markdown(f"### {rank}. {match.title or match.slug}")
            st.caption(f"**Category:** {match.category or '—'} · **AI resilience:** {match.ai_resilience}")
            st.markdown(match.rationale)
            if match.skills_gap:
                st.markdown("**Skills to build:** " + " ".join(f"`{s}`" for s in match.skills_gap))
        with col_b:
            st.metric("Match", f"{match.match_score}%")
            if match.median_pay:
                st.caption(f"Median pay: ${match.median_pay:,.0f}")
            if match.transition_timeline:
                st.caption(f"Timeline: {match.transition_timeline}")
            if match.typical_education:
                st.caption(f"Education: {match.typical_education}")
        related = pipeline.related_careers(match.slug, top_k=3)
        if related:
            titles = []
            for c in related:
                career = pipeline.corpus.get(c.slug)
                titles.append(career.title if career else c.slug)
            st.caption("Related careers: " + ", ".join(titles))


def render_layout() -> None:
    """Streamlit page layout."""
    st.set_page_config(page_title="Career Compass", layout="wide")
    st.title("Career Compass")
    st.markdown(f"*Paste your resume, answer five questions, get up to {ACCEPTED_QUOTA} matched careers.*")
    st.divider()

    try:
        pipeline: Optional[MatchPipeline] = _get_pipeline()
    except PipelineError as e:
        pipeline = None
        st.error(_error_message(e))

    resume_text = st.text_area(
        "Resume",
        height=260,
        key="resume_text",
        help=f"Plain text, {RESUME_MIN_CHARS}-{RESUME_MAX_CHARS:,} characters.",
    )
    answers = {}
    for key, q in PREFERENCE_QUESTIONS.items():
        answers[key] = st.text_area(q["prompt"], height=80, key=f"answer_{key}")
    match_clicked = st.button("Find my careers", type="primary", key="match_btn", disabled=pipeline is None)

    if "result" not in st.session_state:
        st.session_state["result"] = None
    if "error" not in st.session_state:
        st.session_state["error"] = None

    if match_clicked and pipeline is not None:
        if not OPENAI_API_KEY:
            st.session_state["error"] = "OPENAI_API_KEY is not set. Add it to your .env file."
            st.session_state["result"] = None
        else:
            with st.spinner("Analyzing your resume and ranking careers…"):
                outcome, message = _run_match(pipeline, resume_text, answers)
                st.session_state["result"] = outcome
                st.session_state["error"] = message

    if st.session_state.get("error"):
        st.error(st.session_state["error"])

    result: Optional[MatchResult] = st.session_state.get("result")
    if result is None or pipeline is None:
        return
    st.subheader("Your matches")
    meta = result.metadata
    st.caption(
        f"{meta.total_candidates} candidates · {meta.evaluated_count} evaluated · "
        f"{meta.final_match_count} matches · {meta.timings.get('total', 0) / 1000:.1f}s"
    )
    if not result.matches:
        st.warning("No strong matches found. Try broadening your goals or industry interests.")
    for rank, match in enumerate(result.matches, start=1):
        _render_match(rank, match, pipeline)


if __name__ == "__main__":
    render_layout()
