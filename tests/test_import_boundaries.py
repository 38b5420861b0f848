from __future__ import annotations

import importlib.util
from pathlib import Path
from types import ModuleType

ROOT = Path(__file__).resolve().parents[1]


def _load_checker_module() -> ModuleType:
    module_path = ROOT / "tools" / "check_imports.py"
    spec = importlib.util.spec_from_file_location("check_imports_tool", module_path)
    assert spec is not None
    loader = spec.loader
    assert loader is not None
    module = importlib.util.module_from_spec(spec)
    loader.exec_module(module)
    return module


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_check_file_allows_core_importing_domain(tmp_path: Path) -> None:
    checker = _load_checker_module()
    source_root = tmp_path / "src" / "story_chain"
    core_file = source_root / "core" / "prompts.py"
    _write(core_file, "from story_chain.domain.models import Premise\nfrom . import helpers\n")
    assert checker.check_file(core_file, source_root) == []


def test_check_file_rejects_core_importing_adapters(tmp_path: Path) -> None:
    checker = _load_checker_module()
    source_root = tmp_path / "src" / "story_chain"
    core_file = source_root / "core" / "prompts.py"
    _write(core_file, "from story_chain.adapters import ollama_client\n")
    violations = checker.check_file(core_file, source_root)
    assert len(violations) == 1
    assert "core must not import story_chain.adapters" in violations[0]


def test_check_file_resolves_relative_imports(tmp_path: Path) -> None:
    checker = _load_checker_module()
    source_root = tmp_path / "src" / "story_chain"
    domain_file = source_root / "domain" / "models.py"
    _write(domain_file, "from ..application import generation_driver\nimport story_chain.cli\n")
    violations = checker.check_file(domain_file, source_root)
    assert [violation.rsplit(" ", 1)[-1] for violation in violations] == [
        "story_chain.application",
        "story_chain.cli",
    ]


def test_adapters_may_not_import_application(tmp_path: Path) -> None:
    checker = _load_checker_module()
    source_root = tmp_path / "src" / "story_chain"
    adapter_file = source_root / "adapters" / "chain_store.py"
    _write(adapter_file, "from story_chain import application\n")
    assert len(checker.check_file(adapter_file, source_root)) == 1


def test_project_source_tree_respects_boundaries() -> None:
    checker = _load_checker_module()
    assert checker.check_import_boundaries() == []
