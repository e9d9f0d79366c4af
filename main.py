"""
Command line interface for the collective analysis orchestrator.

Loads settings from environment variables (via `.env`), builds an
Orchestrator and either answers a single query given on the command line or
enters an interactive loop.
"""

import argparse
import asyncio
import logging
from typing import Optional, Sequence

from dotenv import load_dotenv

from collective import OrchestrationError, Orchestrator, OrchestratorSettings, Run

# --- Logging configuration ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

PREVIEW_CHARS = 100


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Analyze a question from several specialist perspectives.")
    parser.add_argument("query", nargs="?", help="Answer this query and exit instead of starting a session.")
    parser.add_argument("--adapter", choices=["openai", "anthropic", "stub"], help="Model adapter to use.")
    parser.add_argument("--strategy", choices=["model", "static"], help="Role selection strategy.")
    parser.add_argument("--model", help="Model identifier passed to the adapter.")
    parser.add_argument("--context", help="Situational framing used when designing roles.")
    parser.add_argument("--max-context-chars", type=int, help="Bound on prior transcripts embedded in prompts.")
    parser.add_argument("--log-dir", help="Write a JSON log for every run into this directory.")
    return parser.parse_args(argv)


def format_run(run: Run) -> str:
    lines = [
        "Results summary:",
        f"- Query: {run.query}",
        f"- Specialists deployed: {run.metadata.total_analyses}",
        f"- Total analysis: {run.metadata.total_characters} characters",
        f"- Synthesis: {run.metadata.synthesis_length} characters",
        "",
        "Specialist perspectives:",
    ]
    for analysis in run.analyses:
        lines.append(f"  - {analysis.role}: {analysis.text[:PREVIEW_CHARS]}")
    lines.extend(["", "Collective synthesis:", run.synthesis.text])
    return "\n".join(lines)


def format_status(orchestrator: Orchestrator) -> str:
    status = orchestrator.repository_status()
    return (
        "Repository status:\n"
        f"- Total conversations: {status.conversations}\n"
        f"- Roles known: {len(status.roles)}\n"
        f"- Total analyses: {status.total_analyses}"
    )


async def _answer(orchestrator: Orchestrator, query: str) -> None:
    logger.info("Processing query: %s", query)
    run = await orchestrator.run_query(query)
    print(f"\n{format_run(run)}\n")
    print(f"{format_status(orchestrator)}\n")
    logger.info("Run %s delivered successfully.", run.run_id)


async def _session(orchestrator: Orchestrator, query: Optional[str]) -> None:
    if query:
        try:
            await _answer(orchestrator, query)
        except OrchestrationError as exc:
            logger.exception("Error while processing query: %s", exc)
            print(f"An error occurred during {exc.phase}: {exc}\n")
        return

    print(
        "\nWelcome to the collective analysis orchestrator!\n"
        "Type your question and press Enter.  Type 'quit' to exit.\n"
    )
    while True:
        try:
            line = (await asyncio.to_thread(input, "> ")).strip()
        except EOFError:
            logger.info("EOF received; exiting.")
            break

        if not line:
            continue
        if line.lower() in {"quit", "exit", "q"}:
            logger.info("User requested exit.")
            break

        try:
            await _answer(orchestrator, line)
        except Exception as exc:
            logger.exception("Error while processing query: %s", exc)
            print(f"An error occurred: {exc}\n")

    logger.info("Session ended. Goodbye!")
    print("Goodbye!")


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Run the orchestrator once or as an interactive loop."""
    args = _parse_args(argv)
    logger.info("Loading environment variables from .env file...")
    load_dotenv()

    try:
        settings = OrchestratorSettings.from_env(
            adapter=args.adapter,
            role_selection_strategy=args.strategy,
            model=args.model,
            context=args.context,
            max_context_chars=args.max_context_chars,
            log_dir=args.log_dir,
        )
        orchestrator = Orchestrator.from_settings(settings)
    except Exception as exc:
        logger.exception("Failed to initialize the orchestrator: %s", exc)
        return

    asyncio.run(_session(orchestrator, args.query))


if __name__ == "__main__":
    main()
