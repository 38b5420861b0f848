"""CLI helper that renders a persisted story chain as markdown."""

from __future__ import annotations

import argparse
import json
from pathlib import Path

from story_chain.core.markdown_export import render_markdown


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Render story chain JSON as markdown.")
    parser.add_argument("input", help="Path to story chain JSON.")
    parser.add_argument(
        "--output",
        default="",
        help="Markdown output path. Defaults to the input path with a .md suffix.",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_arg_parser()
    parsed = parser.parse_args(argv)

    input_path = Path(str(parsed.input))
    if not input_path.is_file():
        raise SystemExit(f"error: input file not found: {input_path}")
    try:
        payload = json.loads(input_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SystemExit(f"error: {input_path} is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise SystemExit(f"error: {input_path} must contain a JSON object")
    output_path = (
        Path(str(parsed.output)) if str(parsed.output).strip() else input_path.with_suffix(".md")
    )
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(render_markdown(payload), encoding="utf-8")
    print(f"Wrote markdown: {output_path}")


if __name__ == "__main__":
    main()
