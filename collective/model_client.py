"""
Model clients: the text-completion capability the orchestrator depends on.

The core only needs ``await client.complete(prompt) -> str``.  Adapters:

- ``AutogenModelClient``: Microsoft AutoGen assistant over an OpenAI or
  Anthropic chat completion client.
- ``CallableModelClient``: wraps a host-provided async completion function.
- ``StubModelClient``: deterministic canned responses for demos and tests.

Required env (real adapters only):
  - OPENAI_API_KEY (optional OPENAI_API_BASE_URL) for ``openai``
  - ANTHROPIC_API_KEY for ``anthropic``
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

from autogen_agentchat.agents import AssistantAgent
from autogen_agentchat.messages import BaseChatMessage
from autogen_core import CancellationToken
from autogen_core.models import ChatCompletionClient, ModelInfo
from autogen_ext.models.anthropic import AnthropicChatCompletionClient
from autogen_ext.models.openai import OpenAIChatCompletionClient

from .settings import OrchestratorSettings

logger = logging.getLogger(__name__)


@runtime_checkable
class ModelClient(Protocol):
    async def complete(self, prompt: str) -> str:
        ...


class AutogenModelClient:
    """Single-turn completions through an AutoGen ``AssistantAgent``.

    The agent's model context is reset before each call so that every prompt
    is answered on its own; the pipeline carries context inside the prompt.
    """

    def __init__(self, model_client: ChatCompletionClient, *, name: str = "collective_analyst") -> None:
        self._model_client = model_client
        self._assistant = AssistantAgent(
            name=name,
            model_client=model_client,
            description="Answers one collective-analysis prompt at a time.",
            tools=[],
        )

    @property
    def name(self) -> str:
        return self._assistant.name

    async def complete(self, prompt: str) -> str:
        await self._assistant.on_reset(CancellationToken())
        logger.debug("Sending prompt of %d chars to %s", len(prompt), self._assistant.name)
        result = await self._assistant.run(task=prompt)
        replies = [
            message
            for message in result.messages
            if isinstance(message, BaseChatMessage) and message.source == self._assistant.name
        ]
        if not replies:
            raise RuntimeError(f"{self._assistant.name} did not answer the prompt.")
        return replies[-1].to_text().strip()

    async def close(self) -> None:
        await self._model_client.close()


class CallableModelClient:
    """Adapts a host-embedded ``async (prompt) -> str`` function."""

    def __init__(self, func: Callable[[str], Awaitable[str]]) -> None:
        self._func = func
        self.calls = 0

    async def complete(self, prompt: str) -> str:
        self.calls += 1
        return await self._func(prompt)


DEFAULT_STUB_RESPONSES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (
        ("role designer",),
        "For this analysis I recommend three perspectives: a social impact specialist examining effects on "
        "communities, a technical feasibility expert covering implementation constraints, and a risk "
        "assessor identifying potential harms.",
    ),
    (
        ("collective synthesis",),
        "Integrating all perspectives reveals a landscape that calls for balanced approaches. The systems "
        "view highlights interconnected complexity, the ethical view emphasizes obligations to those "
        "affected, practical constraints require adaptive implementation, and the identified risks demand "
        "careful mitigation and continuous monitoring.",
    ),
    (
        ("systems", "interconnection"),
        "From a systems perspective this question involves interconnections between many stakeholders, "
        "feedback loops and emergent properties. Unintended consequences and scalability deserve attention.",
    ),
    (
        ("ethic", "moral"),
        "Ethical analysis raises fairness and wellbeing concerns for everyone affected, especially vulnerable "
        "groups, and calls for an equitable distribution of benefits and burdens.",
    ),
    (
        ("implementation", "practical"),
        "Implementation analysis focuses on feasibility, resource requirements, timelines, stakeholder "
        "buy-in and change management.",
    ),
    (
        ("risk", "harm"),
        "Risk assessment identifies failure modes and unintended effects, including harm to vulnerable "
        "populations, economic disruption and erosion of trust, each needing a mitigation strategy.",
    ),
)

DEFAULT_STUB_FALLBACK: str = (
    "This perspective contributes to the collective understanding by considering all stakeholders and "
    "potential impacts of the decision."
)


class StubModelClient:
    """Deterministic model client matching prompt substrings to canned text.

    Rules are checked in order against the lowercased prompt section that
    names the function being performed, so earlier transcripts embedded in the
    prompt do not steer the match.
    """

    def __init__(
        self,
        responses: Optional[Sequence[Tuple[Sequence[str], str]]] = None,
        *,
        fallback: str = DEFAULT_STUB_FALLBACK,
        delay: float = 0.0,
    ) -> None:
        rules = DEFAULT_STUB_RESPONSES if responses is None else responses
        self._rules = [(tuple(keyword.lower() for keyword in keywords), text) for keywords, text in rules]
        self._fallback = fallback
        self._delay = max(0.0, delay)
        self.prompts: List[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self._delay:
            await asyncio.sleep(self._delay)
        focus = self._focus(prompt)
        for keywords, text in self._rules:
            if any(keyword in focus for keyword in keywords):
                return text
        return self._fallback

    @staticmethod
    def _focus(prompt: str) -> str:
        lowered = prompt.lower()
        marker = "your function:"
        start = lowered.find(marker)
        if start == -1:
            return lowered
        end = lowered.find("\n", start)
        return lowered[start:] if end == -1 else lowered[start:end]


def _model_info(family: str) -> ModelInfo:
    return {
        "vision": False,
        "function_calling": False,
        "json_output": False,
        "structured_output": False,
        "family": family,
    }


def build_openai_client(
    *,
    openai_model_name: str,
    temperature: Optional[float],
    max_tokens: Optional[int] = None,
) -> ChatCompletionClient:
    if not os.getenv("OPENAI_API_KEY"):
        raise EnvironmentError("OPENAI_API_KEY is not set.")
    client_kwargs: Dict[str, Any] = {
        "model": openai_model_name,
        "api_key": os.environ["OPENAI_API_KEY"],
        "base_url": os.getenv("OPENAI_API_BASE_URL", "https://api.openai.com/v1"),
        "include_name_in_message": False,
        "model_info": _model_info("openai"),
    }
    if temperature is not None:
        client_kwargs["temperature"] = temperature
    if max_tokens is not None:
        client_kwargs["max_tokens"] = max_tokens
    return OpenAIChatCompletionClient(**client_kwargs)


def build_anthropic_client(
    *,
    anthropic_model_name: str,
    temperature: Optional[float],
    max_tokens: int,
) -> ChatCompletionClient:
    if not os.getenv("ANTHROPIC_API_KEY"):
        raise EnvironmentError("ANTHROPIC_API_KEY is not set.")
    client_kwargs: Dict[str, Any] = {
        "model": anthropic_model_name,
        "api_key": os.environ["ANTHROPIC_API_KEY"],
        "max_tokens": max_tokens,
        "model_info": _model_info("unknown"),
    }
    if temperature is not None:
        client_kwargs["temperature"] = temperature
    return AnthropicChatCompletionClient(**client_kwargs)


def build_model_client(settings: OrchestratorSettings) -> ModelClient:
    """Create the adapter named by ``settings.adapter``."""

    logger.info("Using '%s' model adapter (model=%s)", settings.adapter, settings.model_name)
    if settings.adapter == "stub":
        return StubModelClient(delay=settings.stub_response_delay)
    if settings.adapter == "openai":
        chat_client = build_openai_client(
            openai_model_name=settings.model_name,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
        )
    elif settings.adapter == "anthropic":
        chat_client = build_anthropic_client(
            anthropic_model_name=settings.model_name,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
        )
    else:
        raise ValueError(f"Unknown adapter type: {settings.adapter}")
    return AutogenModelClient(chat_client)
