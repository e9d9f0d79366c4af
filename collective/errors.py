"""
Exception hierarchy raised by the orchestration core.

Every failure surfaces to the caller of ``Orchestrator.run_query`` with the
phase that failed and, where relevant, the role involved.  The underlying
model-client exception is always chained as ``__cause__``.
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence


class OrchestrationError(Exception):
    """Base class for all orchestration failures."""

    phase: str = "orchestration"

    def __init__(self, message: str, *, phase: Optional[str] = None) -> None:
        super().__init__(message)
        if phase is not None:
            self.phase = phase


class InvalidInputError(OrchestrationError, ValueError):
    """Raised for malformed calls such as an empty query or nothing to synthesize."""

    phase = "input"


class RoleSelectionError(OrchestrationError):
    """The role-selection phase could not produce a usable role list."""

    phase = "role_selection"


class SpecialistCallError(OrchestrationError):
    """A specialist's model call failed."""

    phase = "specialist"

    def __init__(self, *, role_index: int, role: str, reason: str) -> None:
        super().__init__(f"Specialist at index {role_index} ({role}) failed: {reason}")
        self.role_index = role_index
        self.role = role


class SynthesisError(OrchestrationError):
    """The synthesis call failed after every specialist succeeded."""

    phase = "synthesis"

    def __init__(self, *, reason: str, analyses: Sequence[Any] = ()) -> None:
        super().__init__(f"Synthesis failed after {len(analyses)} analyses: {reason}")
        self.analyses: List[Any] = list(analyses)
