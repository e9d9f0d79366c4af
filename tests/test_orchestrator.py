"""
Tests for the orchestration pipeline.
"""

import asyncio
import json

import pytest

from collective.errors import InvalidInputError, RoleSelectionError, SpecialistCallError, SynthesisError
from collective.models import RoleSelection
from collective.orchestrator import Orchestrator
from collective.prompts import SYNTHESIS_ROLE
from collective.repository import RoleRepository
from collective.role_selection import CRITICAL_RISK_ROLE, KeywordRolePolicy, StaticRolePolicy
from collective.settings import OrchestratorSettings
from tests.helpers import ScriptedModel


def usage_snapshot(orchestrator):
    return {role.name: role.usage_count for role in orchestrator.roles.all_roles()}


class BrokenPolicy:
    async def select_roles(self, query, context=""):
        raise LookupError("planner offline")


class EmptyPolicy:
    async def select_roles(self, query, context=""):
        return RoleSelection(roles=())


class TestRunQuery:
    @pytest.mark.asyncio
    async def test_runs_roles_in_order_and_synthesizes_all(self, scripted_model):
        orchestrator = Orchestrator(scripted_model, role_policy=StaticRolePolicy(["A", "B"]))

        run = await orchestrator.run_query("test")

        assert run.roles == ["A", "B"]
        assert [analysis.text for analysis in run.analyses] == ["response #1", "response #2"]
        synthesis_prompt = scripted_model.prompts[-1]
        assert "response #1" in synthesis_prompt
        assert "response #2" in synthesis_prompt
        assert run.synthesis.role == SYNTHESIS_ROLE
        assert run.synthesis.text == "response #3"
        assert run.synthesis.input_analyses == 2

    @pytest.mark.asyncio
    async def test_each_prompt_carries_prior_outputs(self, scripted_model):
        orchestrator = Orchestrator(scripted_model, role_policy=StaticRolePolicy(["A", "B", "C"]))

        await orchestrator.run_query("test")

        first, second, third = scripted_model.prompts[:3]
        assert "response #" not in first
        assert "response #1" in second
        assert "response #1" in third and "response #2" in third

    @pytest.mark.asyncio
    async def test_context_accumulates_with_static_roles(self, length_model):
        policy = StaticRolePolicy(["systems_analyst", "ethics_guardian"])
        orchestrator = Orchestrator(length_model, role_policy=policy)

        run = await orchestrator.run_query("test")

        first, second = run.analyses
        assert second.prompt_size > int(first.text)
        assert first.prompt_size == int(first.text)

    @pytest.mark.asyncio
    async def test_known_role_uses_repository_definition(self, scripted_model):
        orchestrator = Orchestrator(scripted_model, role_policy=StaticRolePolicy(["risk_assessor"]))

        await orchestrator.run_query("test")

        assert "YOUR FUNCTION: Risk analysis" in scripted_model.prompts[0]

    @pytest.mark.asyncio
    async def test_metadata_totals(self):
        model = ScriptedModel(lambda call, prompt: "x" * (call * 10))
        orchestrator = Orchestrator(model, role_policy=StaticRolePolicy(["A", "B"]))

        run = await orchestrator.run_query("test")

        assert run.metadata.total_analyses == 2
        assert run.metadata.total_characters == 30
        assert run.metadata.synthesis_length == 30
        assert run.metadata.total_context_length == len(model.prompts[-1])

    @pytest.mark.asyncio
    async def test_empty_query_rejected(self, scripted_model):
        orchestrator = Orchestrator(scripted_model)

        with pytest.raises(InvalidInputError):
            await orchestrator.run_query("   ")

        assert scripted_model.prompts == []

    @pytest.mark.asyncio
    async def test_context_defaults_to_settings(self):
        model = ScriptedModel(lambda call, prompt: "economic")
        orchestrator = Orchestrator(
            model,
            role_policy=KeywordRolePolicy(model),
            settings=OrchestratorSettings(context="Island nation"),
        )

        run = await orchestrator.run_query("test")

        assert "CONTEXT: Island nation" in model.prompts[0]
        assert run.context == "Island nation"
        assert run.role_design == "economic"


class TestAccounting:
    @pytest.mark.asyncio
    async def test_usage_counts_accumulate_over_runs(self, scripted_model):
        orchestrator = Orchestrator(scripted_model, role_policy=StaticRolePolicy(["risk_assessor", "systems_analyst"]))
        before = orchestrator.roles.get("risk_assessor").usage_count

        for _ in range(3):
            await orchestrator.run_query("test")

        assert orchestrator.roles.get("risk_assessor").usage_count == before + 3
        assert orchestrator.history.count() == 3
        assert orchestrator.history.total_analyses() == 6

    @pytest.mark.asyncio
    async def test_dynamic_roles_are_registered(self):
        model = ScriptedModel(lambda call, prompt: "nothing matches")
        orchestrator = Orchestrator(model, role_policy=KeywordRolePolicy(model))

        run = await orchestrator.run_query("test")

        assert run.roles == [CRITICAL_RISK_ROLE]
        role = orchestrator.roles.get(CRITICAL_RISK_ROLE)
        assert role.usage_count == 1
        assert role.definition == CRITICAL_RISK_ROLE

    @pytest.mark.asyncio
    async def test_repository_status(self, scripted_model):
        orchestrator = Orchestrator(scripted_model, role_policy=StaticRolePolicy(["A", "B"]))

        await orchestrator.run_query("test")
        status = orchestrator.repository_status()

        assert status.conversations == 1
        assert status.total_analyses == 2
        assert {"a", "b", "risk_assessor"} <= {role.name for role in status.roles}

    @pytest.mark.asyncio
    async def test_orchestrators_do_not_share_state(self, scripted_model):
        first = Orchestrator(scripted_model, role_policy=StaticRolePolicy(["risk_assessor"]))
        second = Orchestrator(scripted_model, role_policy=StaticRolePolicy(["risk_assessor"]))

        await first.run_query("test")

        assert second.roles.get("risk_assessor").usage_count == 0
        assert second.history.count() == 0

    @pytest.mark.asyncio
    async def test_concurrent_runs_share_accounting(self, scripted_model):
        repository = RoleRepository()
        orchestrator = Orchestrator(scripted_model, role_policy=StaticRolePolicy(["risk_assessor"]), roles=repository)

        await asyncio.gather(*(orchestrator.run_query(f"query {i}") for i in range(5)))

        assert repository.get("risk_assessor").usage_count == 5
        assert orchestrator.history.count() == 5


class TestFailures:
    @pytest.mark.asyncio
    async def test_specialist_failure_identifies_role_and_leaves_state(self):
        model = ScriptedModel(fail_on=2)
        orchestrator = Orchestrator(model, role_policy=StaticRolePolicy(["A", "B", "C"]))
        before = usage_snapshot(orchestrator)

        with pytest.raises(SpecialistCallError) as excinfo:
            await orchestrator.run_query("test")

        assert excinfo.value.role_index == 1
        assert excinfo.value.role == "B"
        assert str(excinfo.value).startswith("Specialist at index 1 (B) failed")
        assert excinfo.value.phase == "specialist"
        assert isinstance(excinfo.value.__cause__, RuntimeError)
        assert usage_snapshot(orchestrator) == before
        assert orchestrator.history.count() == 0
        assert len(model.prompts) == 2

    @pytest.mark.asyncio
    async def test_synthesis_failure_exposes_partial_analyses(self):
        model = ScriptedModel(fail_on=3)
        orchestrator = Orchestrator(model, role_policy=StaticRolePolicy(["A", "B"]))
        before = usage_snapshot(orchestrator)

        with pytest.raises(SynthesisError) as excinfo:
            await orchestrator.run_query("test")

        assert [analysis.role for analysis in excinfo.value.analyses] == ["A", "B"]
        assert usage_snapshot(orchestrator) == before
        assert orchestrator.history.count() == 0

    @pytest.mark.asyncio
    async def test_role_selection_failure_is_wrapped(self, scripted_model):
        orchestrator = Orchestrator(scripted_model, role_policy=BrokenPolicy())

        with pytest.raises(RoleSelectionError) as excinfo:
            await orchestrator.run_query("test")

        assert isinstance(excinfo.value.__cause__, LookupError)
        assert scripted_model.prompts == []

    @pytest.mark.asyncio
    async def test_model_assisted_selection_failure(self):
        model = ScriptedModel(fail_on=1)
        orchestrator = Orchestrator(model, role_policy=KeywordRolePolicy(model))

        with pytest.raises(RoleSelectionError):
            await orchestrator.run_query("test")

        assert orchestrator.history.count() == 0

    @pytest.mark.asyncio
    async def test_empty_role_list_is_an_error(self, scripted_model):
        orchestrator = Orchestrator(scripted_model, role_policy=EmptyPolicy())

        with pytest.raises(RoleSelectionError):
            await orchestrator.run_query("test")


class SlowModel:
    """Blocks on every call until cancelled."""

    def __init__(self):
        self.started = asyncio.Event()

    async def complete(self, prompt):
        self.started.set()
        await asyncio.Event().wait()
        return "never"


class MalformedPolicy:
    async def select_roles(self, query, context=""):
        return ["A", "B"]


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancelled_model_call_propagates_and_leaves_state(self):
        model = SlowModel()
        orchestrator = Orchestrator(model, role_policy=StaticRolePolicy(["A", "B"]))
        before = usage_snapshot(orchestrator)

        task = asyncio.create_task(orchestrator.run_query("test"))
        await model.started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert usage_snapshot(orchestrator) == before
        assert orchestrator.history.count() == 0

    @pytest.mark.asyncio
    async def test_cancelled_run_still_writes_its_log(self, tmp_path):
        model = SlowModel()
        settings = OrchestratorSettings(log_dir=str(tmp_path))
        orchestrator = Orchestrator(model, role_policy=StaticRolePolicy(["A"]), settings=settings)

        task = asyncio.create_task(orchestrator.run_query("test"))
        await model.started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        (log_file,) = tmp_path.glob("collective_run_*.json")
        record = json.loads(log_file.read_text(encoding="utf-8"))
        assert record["error"]["type"] == "CancelledError"
        assert "result" not in record


class TestRunLog:
    @pytest.mark.asyncio
    async def test_unexpected_fault_is_logged(self, tmp_path, scripted_model):
        settings = OrchestratorSettings(log_dir=str(tmp_path))
        orchestrator = Orchestrator(scripted_model, role_policy=MalformedPolicy(), settings=settings)

        with pytest.raises(AttributeError):
            await orchestrator.run_query("test")

        (log_file,) = tmp_path.glob("collective_run_*.json")
        record = json.loads(log_file.read_text(encoding="utf-8"))
        assert record["error"]["type"] == "AttributeError"
        assert orchestrator.history.count() == 0

    @pytest.mark.asyncio
    async def test_successful_run_is_logged(self, tmp_path, scripted_model):
        settings = OrchestratorSettings(log_dir=str(tmp_path))
        orchestrator = Orchestrator(scripted_model, role_policy=StaticRolePolicy(["A", "B"]), settings=settings)

        run = await orchestrator.run_query("test")

        (log_file,) = tmp_path.glob("collective_run_*.json")
        record = json.loads(log_file.read_text(encoding="utf-8"))
        assert record["query"] == "test"
        assert [step["phase"] for step in record["steps"]] == ["role_selection", "specialist", "specialist", "synthesis"]
        assert record["result"]["run_id"] == run.run_id
        assert record["result"]["roles"] == ["A", "B"]
        assert "error" not in record

    @pytest.mark.asyncio
    async def test_failed_run_logs_error(self, tmp_path):
        settings = OrchestratorSettings(log_dir=str(tmp_path))
        orchestrator = Orchestrator(ScriptedModel(fail_on=1), role_policy=StaticRolePolicy(["A"]), settings=settings)

        with pytest.raises(SpecialistCallError):
            await orchestrator.run_query("test")

        (log_file,) = tmp_path.glob("collective_run_*.json")
        record = json.loads(log_file.read_text(encoding="utf-8"))
        assert record["error"]["phase"] == "specialist"
        assert record["error"]["type"] == "SpecialistCallError"
        assert "result" not in record


@pytest.mark.asyncio
async def test_from_settings_builds_stub_pipeline():
    settings = OrchestratorSettings(adapter="stub", role_selection_strategy="model")
    orchestrator = Orchestrator.from_settings(settings)

    run = await orchestrator.run_query("How should we approach rapid decarbonization?")

    assert len(run.analyses) == 3
    assert run.roles[-1] == CRITICAL_RISK_ROLE
    assert run.synthesis.text.startswith("Integrating all perspectives")
