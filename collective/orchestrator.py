"""
Collective analysis orchestrator.

A run selects roles, asks the model for each role's perspective in turn (every
prompt carrying the verbatim output of the specialists before it), integrates
everything in one synthesis call and finally records role usage and the run.

Nothing is written to the role repository or run history until the synthesis
has succeeded, so a failed run leaves both untouched.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from .errors import InvalidInputError, OrchestrationError, RoleSelectionError, SpecialistCallError, SynthesisError
from .model_client import ModelClient, build_model_client
from .models import Analysis, RepositoryStatus, RoleSelection, Run, RunMetadata, Synthesis, utcnow
from .prompts import SYNTHESIS_ROLE, build_specialist_prompt, build_synthesis_prompt
from .repository import RoleRepository, RunHistory
from .role_selection import RoleSelectionPolicy, StaticRolePolicy, build_role_policy
from .run_log import RunLog
from .settings import OrchestratorSettings

logger = logging.getLogger(__name__)


class Orchestrator:
    """Runs queries through a sequence of specialist perspectives and a synthesis."""

    def __init__(
        self,
        model_client: ModelClient,
        *,
        role_policy: Optional[RoleSelectionPolicy] = None,
        settings: Optional[OrchestratorSettings] = None,
        roles: Optional[RoleRepository] = None,
        history: Optional[RunHistory] = None,
    ) -> None:
        self._model_client = model_client
        self._settings = settings or OrchestratorSettings()
        self._role_policy = role_policy or StaticRolePolicy()
        self._roles = roles if roles is not None else RoleRepository()
        self._history = history if history is not None else RunHistory()

    @classmethod
    def from_settings(cls, settings: OrchestratorSettings) -> "Orchestrator":
        model_client = build_model_client(settings)
        return cls(
            model_client,
            role_policy=build_role_policy(settings, model_client),
            settings=settings,
        )

    @property
    def settings(self) -> OrchestratorSettings:
        return self._settings

    @property
    def roles(self) -> RoleRepository:
        return self._roles

    @property
    def history(self) -> RunHistory:
        return self._history

    @property
    def model_client(self) -> ModelClient:
        return self._model_client

    async def run_query(self, query: str, *, context: Optional[str] = None) -> Run:
        if not query or not query.strip():
            raise InvalidInputError("Query must be a non-empty string.")
        context = self._settings.context if context is None else context
        run_log = RunLog(self._settings.log_dir, query) if self._settings.log_dir else None

        logger.info("Starting collective analysis for query: %s", query)
        try:
            run = await self._execute(query, context, run_log)
        except OrchestrationError as exc:
            logger.error("Run aborted during %s: %s", exc.phase, exc)
            if run_log:
                run_log.finalize(error=exc)
            raise
        except BaseException as exc:
            # Cancellation and faults outside the known phases.
            logger.warning("Run aborted: %s", type(exc).__name__)
            if run_log:
                run_log.finalize(error=exc)
            raise

        self._record(run)
        if run_log:
            run_log.finalize(result=self._summarize(run))
        return run

    def repository_status(self) -> RepositoryStatus:
        return RepositoryStatus(
            conversations=self._history.count(),
            roles=self._roles.all_roles(),
            total_analyses=self._history.total_analyses(),
        )

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------
    async def _execute(self, query: str, context: str, run_log: Optional[RunLog]) -> Run:
        selection = await self._select_roles(query, context)
        if run_log:
            run_log.log_step(
                "role_selection",
                {"roles": list(selection.roles), "role_design": selection.role_design, "context": context},
            )

        analyses: List[Analysis] = []
        for index, role in enumerate(selection.roles):
            analysis = await self._run_specialist(index, role, query, analyses)
            analyses.append(analysis)
            if run_log:
                run_log.log_step(
                    "specialist",
                    {
                        "index": index,
                        "role": role,
                        "prompt_size": analysis.prompt_size,
                        "response_size": len(analysis.text),
                    },
                )

        synthesis = await self._synthesize(query, analyses)
        if run_log:
            run_log.log_step(
                "synthesis",
                {"prompt_size": synthesis.prompt_size, "response_size": len(synthesis.text)},
            )

        metadata = RunMetadata(
            total_analyses=len(analyses),
            total_characters=sum(len(analysis.text) for analysis in analyses),
            synthesis_length=len(synthesis.text),
            total_context_length=synthesis.prompt_size,
            completed_at=utcnow(),
        )
        return Run(
            query=query,
            role_design=selection.role_design,
            analyses=tuple(analyses),
            synthesis=synthesis,
            metadata=metadata,
            context=context,
        )

    async def _select_roles(self, query: str, context: str) -> RoleSelection:
        try:
            selection = await self._role_policy.select_roles(query, context)
        except RoleSelectionError:
            raise
        except Exception as exc:
            raise RoleSelectionError(f"Role selection failed: {exc}") from exc
        if not selection.roles:
            raise RoleSelectionError("Role selection produced no roles.")
        logger.info("Selected %d role(s): %s", len(selection.roles), ", ".join(selection.roles))
        return selection

    async def _run_specialist(self, index: int, role: str, query: str, prior: List[Analysis]) -> Analysis:
        prompt = build_specialist_prompt(
            self._describe(role),
            query,
            prior,
            max_context_chars=self._settings.max_context_chars,
        )
        logger.info("Processing specialist #%d: %s (prompt %d chars)", index, role, len(prompt))
        try:
            text = await self._model_client.complete(prompt)
        except Exception as exc:
            raise SpecialistCallError(role_index=index, role=role, reason=str(exc)) from exc
        logger.info("Specialist #%d complete (%d chars)", index, len(text))
        return Analysis(role=role, query=query, text=text, produced_at=utcnow(), prompt_size=len(prompt))

    async def _synthesize(self, query: str, analyses: List[Analysis]) -> Synthesis:
        prompt = build_synthesis_prompt(query, analyses, max_context_chars=self._settings.max_context_chars)
        logger.info("Synthesizing %d analyses (prompt %d chars)", len(analyses), len(prompt))
        try:
            text = await self._model_client.complete(prompt)
        except Exception as exc:
            raise SynthesisError(reason=str(exc), analyses=analyses) from exc
        logger.info("Synthesis complete (%d chars)", len(text))
        return Synthesis(
            role=SYNTHESIS_ROLE,
            query=query,
            text=text,
            produced_at=utcnow(),
            prompt_size=len(prompt),
            input_analyses=len(analyses),
        )

    # ------------------------------------------------------------------
    # Accounting
    # ------------------------------------------------------------------
    def _describe(self, role: str) -> str:
        known = self._roles.get(role)
        return known.definition if known else role

    def _record(self, run: Run) -> None:
        for analysis in run.analyses:
            self._roles.record_usage(analysis.role)
        self._history.append(run)
        logger.info(
            "Repository updated: %d conversations, %d roles",
            self._history.count(),
            len(self._roles),
        )

    @staticmethod
    def _summarize(run: Run) -> dict:
        return {
            "run_id": run.run_id,
            "roles": run.roles,
            "synthesis": run.synthesis.text,
            "metadata": run.metadata,
        }
