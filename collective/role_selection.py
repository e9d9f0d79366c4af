"""
Role-selection strategies.

A policy turns a query (and optional situational context) into the ordered
list of role labels the orchestrator runs.  Policies are injected into the
orchestrator, so tests and callers can swap them freely.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol, Sequence, Tuple, runtime_checkable

from .errors import InvalidInputError, RoleSelectionError
from .model_client import ModelClient
from .models import RoleSelection
from .prompts import build_role_design_prompt
from .settings import OrchestratorSettings

logger = logging.getLogger(__name__)

DEFAULT_STATIC_ROLES: Tuple[str, ...] = (
    "systems_analyst",
    "ethics_guardian",
    "practical_implementer",
    "risk_assessor",
)

# Scanned in this order; emission order follows this table, not the reply.
KEYWORD_ROLES: Tuple[Tuple[str, str], ...] = (
    ("economic", "Economic Impact Analyst focusing on financial and resource implications"),
    ("social", "Social Impact Specialist examining effects on communities and relationships"),
    ("technical", "Technical Feasibility Expert analyzing implementation and engineering aspects"),
    ("psycholog", "Behavioral Psychology Specialist examining human motivations and responses"),
    ("environment", "Environmental Impact Assessor focusing on ecological and sustainability aspects"),
    ("legal", "Legal and Governance Expert examining regulatory and policy implications"),
    ("cultural", "Cultural Sensitivity Advisor analyzing cross-cultural impacts and considerations"),
)

CRITICAL_RISK_ROLE: str = "Critical Risk Evaluator identifying potential harms to everyone affected"


@runtime_checkable
class RoleSelectionPolicy(Protocol):
    async def select_roles(self, query: str, context: str = "") -> RoleSelection:
        ...


class StaticRolePolicy:
    """Returns the same role table for every query."""

    def __init__(self, roles: Sequence[str] = DEFAULT_STATIC_ROLES, *, role_design: str = "") -> None:
        cleaned = tuple(role.strip() for role in roles if role and role.strip())
        if not cleaned:
            raise InvalidInputError("StaticRolePolicy requires at least one role.")
        self._roles = cleaned
        self._role_design = role_design

    @property
    def roles(self) -> Tuple[str, ...]:
        return self._roles

    async def select_roles(self, query: str, context: str = "") -> RoleSelection:
        return RoleSelection(roles=self._roles, role_design=self._role_design)


def roles_from_design(role_design: str, max_roles: int = 4) -> Tuple[str, ...]:
    """Map a free-text role design onto canonical role descriptions.

    Always appends the critical-risk role before truncating to ``max_roles``,
    so a design matching four or more keywords pushes the risk role out.
    """

    text = role_design.lower()
    roles = [role for keyword, role in KEYWORD_ROLES if keyword in text]
    roles.append(CRITICAL_RISK_ROLE)
    return tuple(roles[:max_roles])


class KeywordRolePolicy:
    """Asks the model to design roles, then maps its reply onto a fixed vocabulary."""

    def __init__(self, model_client: ModelClient, *, max_roles: int = 4) -> None:
        if max_roles < 1:
            raise InvalidInputError("max_roles must be at least 1.")
        self._model_client = model_client
        self._max_roles = max_roles

    async def select_roles(self, query: str, context: str = "") -> RoleSelection:
        prompt = build_role_design_prompt(query, context)
        try:
            role_design = await self._model_client.complete(prompt)
        except Exception as exc:
            raise RoleSelectionError(f"Role design call failed: {exc}") from exc
        roles = roles_from_design(role_design, self._max_roles)
        logger.info("Role design matched %d role(s): %s", len(roles), ", ".join(roles))
        return RoleSelection(roles=roles, role_design=role_design)


def build_role_policy(
    settings: OrchestratorSettings,
    model_client: ModelClient,
    *,
    static_roles: Optional[Sequence[str]] = None,
) -> RoleSelectionPolicy:
    if settings.role_selection_strategy == "static":
        return StaticRolePolicy(static_roles or DEFAULT_STATIC_ROLES)
    return KeywordRolePolicy(model_client)
