"""CLI entrypoint for generating a story chain from a premise."""

from __future__ import annotations

import argparse
import signal
import sys
import threading
from dataclasses import replace
from pathlib import Path
from types import FrameType
from typing import Any

from story_chain.adapters.observability import configure_runtime_logging
from story_chain.adapters.ollama_client import OllamaClient
from story_chain.adapters.premise_loader import (
    DEFAULT_ARTIFACT_DIR,
    load_premise,
    resolve_premise_path,
)
from story_chain.application.generation_driver import run_generation
from story_chain.config import GenerationSettings
from story_chain.core.markdown_export import render_markdown
from story_chain.domain.errors import GenerationFailed, StoryChainError


def build_arg_parser() -> argparse.ArgumentParser:
    """Define CLI flags; unset flags fall back to STORY_CHAIN_* settings."""
    parser = argparse.ArgumentParser(description="Generate a linear narrative with a local LLM.")
    parser.add_argument("premise", help="Premise file path, or a name under --artifact-dir.")
    parser.add_argument("--epochs", type=int, default=None, help="Number of scenes (default 5).")
    parser.add_argument("--output", default=None, help="Output JSON path (default story.json).")
    parser.add_argument("--audit-log", default=None, help="Raw exchange log path.")
    parser.add_argument("--endpoint", default=None, help="Inference server base URL.")
    parser.add_argument("--model", default=None, help="Model identifier.")
    parser.add_argument("--temperature", type=float, default=None)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--max-attempts", type=int, default=None)
    parser.add_argument("--stream", action="store_true", help="Stream tokens from the server.")
    parser.add_argument(
        "--artifact-dir",
        default=str(DEFAULT_ARTIFACT_DIR),
        help="Directory searched for bare premise names.",
    )
    parser.add_argument("--markdown", default="", help="Optional path for a markdown rendering.")
    parser.add_argument(
        "--check-health",
        action="store_true",
        help="Verify the inference server is reachable before generating.",
    )
    parser.add_argument("--verbose", action="store_true")
    return parser


def settings_from_namespace(
    parsed: argparse.Namespace, base: GenerationSettings | None = None
) -> GenerationSettings:
    settings = base or GenerationSettings.from_env()
    overrides: dict[str, Any] = {}
    if parsed.epochs is not None:
        overrides["epochs"] = int(parsed.epochs)
    if parsed.output:
        overrides["output_path"] = Path(str(parsed.output))
    if parsed.audit_log:
        overrides["audit_log_path"] = Path(str(parsed.audit_log))
    if parsed.endpoint:
        overrides["endpoint"] = str(parsed.endpoint)
    if parsed.model:
        overrides["model"] = str(parsed.model)
    if parsed.temperature is not None:
        overrides["temperature"] = float(parsed.temperature)
    if parsed.seed is not None:
        overrides["seed"] = int(parsed.seed)
    if parsed.max_attempts is not None:
        overrides["max_attempts"] = int(parsed.max_attempts)
    if parsed.stream:
        overrides["stream"] = True
    return replace(settings, **overrides)


def _install_termination_handler(cancel_event: threading.Event) -> Any:
    """Turn SIGTERM into a cooperative cancel; return the handler it replaced."""

    def _request_cancel(signum: int, frame: FrameType | None) -> None:
        cancel_event.set()

    return signal.signal(signal.SIGTERM, _request_cancel)


def main(argv: list[str] | None = None) -> None:
    """Load the premise, run generation, and report the outcome."""
    parser = build_arg_parser()
    parsed = parser.parse_args(argv)
    configure_runtime_logging(verbose=bool(parsed.verbose))

    try:
        settings = settings_from_namespace(parsed)
    except ValueError as exc:
        parser.error(str(exc))
    try:
        premise_path = resolve_premise_path(str(parsed.premise), Path(str(parsed.artifact_dir)))
        premise = load_premise(premise_path)
        if parsed.check_health:
            with OllamaClient(endpoint=settings.endpoint, model=settings.model) as client:
                client.check_health()
    except StoryChainError as exc:
        print(f"error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    cancel_event = threading.Event()
    previous_handler = _install_termination_handler(cancel_event)
    try:
        result = run_generation(premise, settings, cancel_event=cancel_event)
    except GenerationFailed as exc:
        print(f"error: {exc}", file=sys.stderr)
        if exc.partial_output_path is not None:
            print(f"Partial story chain saved: {exc.partial_output_path}", file=sys.stderr)
        raise SystemExit(130 if exc.kind == "GenerationCancelled" else 1) from exc
    finally:
        signal.signal(signal.SIGTERM, previous_handler)

    print(f"Generated {result.epochs_completed} scenes for '{premise.title}'")
    print(f"Wrote story chain: {result.output_path}")
    markdown_path = str(parsed.markdown).strip()
    if markdown_path:
        target = Path(markdown_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(render_markdown(result.chain.to_payload()), encoding="utf-8")
        print(f"Wrote markdown: {target}")


if __name__ == "__main__":
    main()
