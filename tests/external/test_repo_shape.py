from __future__ import annotations

from pathlib import Path


_README_ANCHORS = (
    # One-line summary
    "Generate implicit-global lib tables",
    # Prerequisites section
    "Prerequisites",
    "tree-sitter-typescript",
    # Quick start
    "--lib-dir",
    "--output-dir",
    "--skip-format",
    # Output table
    "__init__.py",
    "base_config.py",
    "lib_types.py",
    # Discovery examples section
    "--list-libs",
    "--filter",
    "--info",
    # Testing instructions
    "pytest",
)


def _tool_root() -> Path:
    return Path(__file__).resolve().parents[2]


def test_t_25_required_artifacts_exist() -> None:
    tool_root = _tool_root()
    required_paths = {
        "libgen.py",
        "pyproject.toml",
        "README.md",
        "DESIGN.md",
        "tests/conftest.py",
        "tests/test_cli.py",
        "tests/test_catalog.py",
        "tests/test_parser.py",
        "tests/test_references.py",
        "tests/test_synthesis.py",
        "tests/test_writer.py",
        "tests/test_discovery.py",
        "tests/test_pipeline.py",
        "tests/test_summary.py",
        "tests/fixtures/typescript/package.json",
        "tests/fixtures/typescript/lib/typescript.js",
        "tests/fixtures/typescript/lib/lib.d.ts",
        "tests/fixtures/typescript/lib/lib.es5.d.ts",
        "tests/external/test_external_cli.py",
        "tests/external/test_repo_shape.py",
    }

    missing = sorted(path for path in required_paths if not (tool_root / path).exists())
    assert missing == []


def test_t_26_generated_output_is_not_checked_in() -> None:
    tool_root = _tool_root()

    for relative_path in ("generated", "node_modules"):
        assert not (tool_root / relative_path).exists()


def test_t_27_readme_includes_required_sections_and_quick_start() -> None:
    readme = _tool_root() / "README.md"
    assert readme.exists(), "README.md must exist"
    content = readme.read_text(encoding="utf-8")
    missing = [anchor for anchor in _README_ANCHORS if anchor not in content]
    assert missing == [], f"README.md missing required anchors: {missing}"


def test_t_28_pyproject_declares_console_script_and_parser_stack() -> None:
    content = (_tool_root() / "pyproject.toml").read_text(encoding="utf-8")

    assert 'ts-scope-libgen = "libgen:main"' in content
    for dependency in ("tree-sitter", "tree-sitter-typescript", "ruff"):
        assert f'"{dependency}' in content
