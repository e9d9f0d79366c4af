"""
Data model for orchestration runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Tuple
from uuid import uuid4


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class Role:
    """A named analytical perspective with a persistent usage counter."""

    name: str
    definition: str
    usage_count: int = 0


@dataclass(frozen=True, slots=True)
class Analysis:
    """One specialist's contribution within a single run."""

    role: str
    query: str
    text: str
    produced_at: datetime
    prompt_size: int


@dataclass(frozen=True, slots=True)
class Synthesis(Analysis):
    """The integrative analysis produced over every specialist in a run."""

    input_analyses: int = 0


@dataclass(frozen=True, slots=True)
class RoleSelection:
    """Outcome of the role-selection phase."""

    roles: Tuple[str, ...]
    role_design: str = ""


@dataclass(frozen=True, slots=True)
class RunMetadata:
    total_analyses: int
    total_characters: int
    synthesis_length: int
    total_context_length: int
    completed_at: datetime


@dataclass(frozen=True, slots=True)
class Run:
    """One end-to-end orchestration.  Immutable once built."""

    query: str
    role_design: str
    analyses: Tuple[Analysis, ...]
    synthesis: Synthesis
    metadata: RunMetadata
    context: str = ""
    run_id: str = field(default_factory=lambda: uuid4().hex)

    @property
    def roles(self) -> List[str]:
        return [analysis.role for analysis in self.analyses]


@dataclass(slots=True)
class RepositoryStatus:
    """Snapshot of the accounting state owned by an orchestrator."""

    conversations: int
    roles: List[Role]
    total_analyses: int
