"""
In-memory accounting owned by an orchestrator: known roles and completed runs.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Tuple

from .models import Role, Run

logger = logging.getLogger(__name__)

BASE_ROLES: Tuple[Tuple[str, str], ...] = (
    ("systems_analyst", "Systems thinking perspective examining interconnections and emergent properties"),
    ("ethics_guardian", "Ethical implications focusing on the wellbeing of everyone affected"),
    ("practical_implementer", "Practical implementation and real-world feasibility perspective"),
    ("risk_assessor", "Risk analysis and identification of potential harm across all affected parties"),
)

_WHITESPACE = re.compile(r"\s+")


def normalize_role_name(label: str) -> str:
    """Return the repository key for a role label: trimmed, lowercased, whitespace runs as ``_``."""

    return _WHITESPACE.sub("_", label.strip().lower())


class RoleRepository:
    """Mapping from normalized role name to :class:`Role`.

    Every method normalizes the name it is given, so ``"Risk Assessor"`` and
    ``"risk_assessor"`` address the same entry.
    """

    def __init__(self, seed: Optional[Iterable[Tuple[str, str]]] = BASE_ROLES) -> None:
        self._roles: Dict[str, Role] = {}
        self._lock = threading.Lock()
        for name, definition in seed or ():
            self.upsert(name, definition)

    def get(self, name: str) -> Optional[Role]:
        with self._lock:
            role = self._roles.get(normalize_role_name(name))
            return replace(role) if role else None

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        with self._lock:
            return normalize_role_name(name) in self._roles

    def __len__(self) -> int:
        return len(self._roles)

    def upsert(self, name: str, definition: str) -> Role:
        key = normalize_role_name(name)
        if not key:
            raise ValueError("Role name must be a non-empty string.")
        with self._lock:
            role = self._roles.get(key)
            if role is None:
                role = Role(name=key, definition=definition)
                self._roles[key] = role
                logger.debug("Registered role '%s'", key)
            else:
                role.definition = definition
            return replace(role)

    def increment_usage(self, name: str) -> int:
        key = normalize_role_name(name)
        with self._lock:
            if key not in self._roles:
                raise KeyError(f"Unknown role '{key}'")
            self._roles[key].usage_count += 1
            return self._roles[key].usage_count

    def record_usage(self, label: str) -> int:
        """Count one participation of ``label``, registering it as a new role if unseen."""

        key = normalize_role_name(label)
        with self._lock:
            role = self._roles.get(key)
            if role is None:
                role = Role(name=key, definition=label.strip())
                self._roles[key] = role
                logger.info("Registered dynamic role '%s'", key)
            role.usage_count += 1
            return role.usage_count

    def all_roles(self) -> List[Role]:
        with self._lock:
            return [replace(role) for role in self._roles.values()]


class RunHistory:
    """Append-only log of completed runs."""

    def __init__(self) -> None:
        self._runs: List[Run] = []
        self._lock = threading.Lock()

    def append(self, run: Run) -> None:
        with self._lock:
            self._runs.append(run)

    def all_runs(self) -> List[Run]:
        with self._lock:
            return list(self._runs)

    def count(self) -> int:
        return len(self._runs)

    def total_analyses(self) -> int:
        with self._lock:
            return sum(len(run.analyses) for run in self._runs)
