"""
Prompt construction for the collective analysis pipeline.

Every function here is pure: it only turns structured inputs into prompt text.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from .errors import InvalidInputError
from .models import Analysis


SYNTHESIS_ROLE: str = "Collective Synthesis"

TRANSCRIPT_DELIMITER: str = "=" * 50

FIRST_PERSPECTIVE_MARKER: str = "You are contributing the first perspective to this collective analysis."

BASE_CONTEXT: str = (
    "You are participating in a structured analysis process in which several analysts examine the same "
    "question from specialized perspectives, one after another. Each analyst focuses on an assigned area "
    "of expertise so that the combined analysis covers the question comprehensively.\n\n"
    "Every perspective has equal standing. Contribute your assigned perspective in service of the shared "
    "analysis, build on what earlier analysts have written, and consider everyone who may be affected by "
    "the question."
)

BUILD_ON_INSTRUCTION: str = (
    "Your task: Add your perspective to this collective analysis, building on what has been shared "
    "while contributing what only your function can."
)

SYNTHESIS_INSTRUCTION: str = (
    "Your task: Integrate all perspectives into one coherent analysis that honors each contribution, "
    "resolves tensions between them where possible, and serves everyone affected by this question."
)


def _require(value: str, name: str) -> str:
    if not value or not value.strip():
        raise InvalidInputError(f"{name} must be a non-empty string.")
    return value


def _transcript_entry(analysis: Analysis) -> str:
    return f"{analysis.role.upper()}:\n{analysis.text}\n\n{TRANSCRIPT_DELIMITER}\n\n"


def _render_transcript(analyses: Sequence[Analysis], max_context_chars: Optional[int]) -> str:
    """Render prior analyses verbatim, oldest first.

    With a bound, whole entries are dropped oldest-first until the rest fits;
    the remaining entries are never cut.  The most recent entry is always
    kept, even when it alone exceeds the bound.
    """
    entries = [_transcript_entry(analysis) for analysis in analyses]
    if max_context_chars is None:
        return "".join(entries)

    kept: List[str] = []
    size = 0
    for entry in reversed(entries):
        if kept and size + len(entry) > max_context_chars:
            break
        kept.append(entry)
        size += len(entry)
    kept.reverse()

    omitted = len(entries) - len(kept)
    notice = ""
    if omitted:
        notice = f"[{omitted} earlier perspective(s) omitted to respect the context limit]\n\n"
    return notice + "".join(kept)


def build_specialist_prompt(
    role: str,
    query: str,
    prior_analyses: Sequence[Analysis] = (),
    *,
    max_context_chars: Optional[int] = None,
) -> str:
    """Return the prompt for one specialist, embedding every earlier analysis of the run."""

    _require(role, "Role")
    _require(query, "Query")

    prompt = f"{BASE_CONTEXT}\n\nQUERY: {query}\n\nYOUR FUNCTION: {role}\n\n"
    if prior_analyses:
        prompt += "COMPLETE COLLECTIVE ANALYSIS SO FAR:\n\n"
        prompt += _render_transcript(prior_analyses, max_context_chars)
        prompt += BUILD_ON_INSTRUCTION + "\n"
    else:
        prompt += FIRST_PERSPECTIVE_MARKER + "\n"
    return prompt


def build_synthesis_prompt(
    query: str,
    analyses: Sequence[Analysis],
    *,
    max_context_chars: Optional[int] = None,
) -> str:
    """Return the integration prompt over every specialist analysis of a run."""

    _require(query, "Query")
    if not analyses:
        raise InvalidInputError("Synthesis requires at least one analysis.")

    return (
        f"{BASE_CONTEXT}\n\nQUERY: {query}\n\n"
        f"YOUR FUNCTION: {SYNTHESIS_ROLE} - integrating all perspectives into a single analysis\n\n"
        "COMPLETE COLLECTIVE ANALYSIS TO SYNTHESIZE:\n\n"
        f"{_render_transcript(analyses, max_context_chars)}"
        f"{SYNTHESIS_INSTRUCTION}\n"
    )


def build_role_design_prompt(query: str, context: str = "") -> str:
    """Return the prompt asking the model to design specialist roles for a query."""

    _require(query, "Query")
    return (
        f"{BASE_CONTEXT}\n\n"
        "YOUR FUNCTION: Role Designer - designing the set of perspectives for this collective analysis\n\n"
        f"QUERY: {query}\nCONTEXT: {context}\n\n"
        "Your task: Design 3-5 specialist roles that would provide the most valuable, complementary "
        "perspectives for this question. Consider:\n\n"
        "1. Which specialized viewpoints would reveal different essential aspects?\n"
        "2. Which perspectives would identify impacts on the different parties involved?\n"
        "3. What combination best serves everyone affected?\n"
        "4. How can we make sure no important consideration is overlooked?\n\n"
        "Design roles with clear focus areas that do not overlap. "
        "Return your analysis followed by clear role definitions."
    )
