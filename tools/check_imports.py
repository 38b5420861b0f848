"""Validate Python layer import boundaries for story_chain."""

from __future__ import annotations

import ast
from pathlib import Path

PACKAGE = "story_chain"
PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_SOURCE_ROOT = PROJECT_ROOT / "src" / PACKAGE
KNOWN_LAYERS = {"domain", "core", "adapters", "application", "cli"}
RULES: dict[str, set[str]] = {
    "domain": {"core", "adapters", "application", "cli"},
    "core": {"adapters", "application", "cli"},
    "adapters": {"application", "cli"},
}


def _layer_for_path(path: Path, source_root: Path) -> str | None:
    try:
        relative = path.relative_to(source_root)
    except ValueError:
        return None
    if len(relative.parts) < 2:
        return None
    return relative.parts[0]


def _layer_of_module(module_name: str) -> str | None:
    parts = module_name.split(".")
    if len(parts) < 2 or parts[0] != PACKAGE:
        return None
    return parts[1] if parts[1] in KNOWN_LAYERS else None


def _absolute_module(node: ast.ImportFrom, path: Path, source_root: Path) -> str | None:
    if node.level == 0:
        return node.module
    package_parts = [PACKAGE, *path.relative_to(source_root).with_suffix("").parts][:-1]
    if node.level - 1 > len(package_parts):
        return None
    base = package_parts[: len(package_parts) - (node.level - 1)]
    if node.module:
        base = [*base, *node.module.split(".")]
    return ".".join(base) if base else None


def imported_layers(node: ast.Import | ast.ImportFrom, path: Path, source_root: Path) -> set[str]:
    """Return the story_chain layers a single import statement reaches."""
    layers: set[str] = set()
    if isinstance(node, ast.Import):
        for alias in node.names:
            layer = _layer_of_module(alias.name)
            if layer is not None:
                layers.add(layer)
        return layers

    module = _absolute_module(node, path, source_root)
    if module is None:
        return layers
    layer = _layer_of_module(module)
    if layer is not None:
        layers.add(layer)
    elif module == PACKAGE:
        layers.update(alias.name for alias in node.names if alias.name in KNOWN_LAYERS)
    return layers


def check_file(path: Path, source_root: Path = DEFAULT_SOURCE_ROOT) -> list[str]:
    layer = _layer_for_path(path, source_root)
    banned = RULES.get(layer or "", set())
    if not banned:
        return []

    tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
    violations: list[str] = []
    for node in ast.walk(tree):
        if not isinstance(node, (ast.Import, ast.ImportFrom)):
            continue
        for imported in sorted(imported_layers(node, path, source_root) & banned):
            violations.append(f"{path}: {layer} must not import {PACKAGE}.{imported}")
    return violations


def check_import_boundaries(source_root: Path = DEFAULT_SOURCE_ROOT) -> list[str]:
    violations: list[str] = []
    for path in sorted(source_root.rglob("*.py")):
        violations.extend(check_file(path, source_root))
    return violations


def main() -> None:
    violations = check_import_boundaries()
    if violations:
        raise SystemExit("\n".join(violations))
    print("import boundary checks passed")


if __name__ == "__main__":
    main()
