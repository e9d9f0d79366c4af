import pytest

from tests.helpers import ScriptedModel


@pytest.fixture
def scripted_model() -> ScriptedModel:
    return ScriptedModel()


@pytest.fixture
def length_model() -> ScriptedModel:
    """Answers every prompt with the prompt's length."""
    return ScriptedModel(lambda call, prompt: str(len(prompt)))


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "COLLECTIVE_ADAPTER",
        "COLLECTIVE_ROLE_STRATEGY",
        "COLLECTIVE_CONTEXT",
        "COLLECTIVE_MODEL",
        "COLLECTIVE_TEMPERATURE",
        "COLLECTIVE_MAX_TOKENS",
        "COLLECTIVE_MAX_CONTEXT_CHARS",
        "COLLECTIVE_LOG_DIR",
    ):
        monkeypatch.delenv(name, raising=False)
