from __future__ import annotations

import importlib.util
from pathlib import Path
import subprocess
import sys

import pytest


EXPECTED_FILES = {
    "__init__.py",
    "base_config.py",
    "lib_types.py",
    "lib.py",
    "es5.py",
    "es6.py",
    "es2015.py",
    "es2016.py",
    "es2016_full.py",
    "dom.py",
    "es2015_core.py",
    "es2015_symbol.py",
    "es2016_array_include.py",
}


def _tool_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _fixture_lib_dir() -> Path:
    return _tool_root() / "tests" / "fixtures" / "typescript" / "lib"


def _run(args: list[str], cwd: Path | None = None) -> subprocess.CompletedProcess[str]:
    run_cwd = _tool_root() if cwd is None else cwd
    return subprocess.run(
        [sys.executable, "libgen.py", *args],
        cwd=run_cwd,
        capture_output=True,
        text=True,
        check=False,
    )


def _run_generate(output_dir: Path, *extra: str) -> subprocess.CompletedProcess[str]:
    return _run(
        [
            "--lib-dir",
            str(_fixture_lib_dir().resolve()),
            "--output-dir",
            str(output_dir.resolve()),
            *extra,
        ]
    )


def test_t_01_generate_writes_expected_package(tmp_path: Path) -> None:
    output_dir = tmp_path / "ts_lib"

    result = _run_generate(output_dir, "--skip-format")

    assert result.returncode == 0, result.stdout + result.stderr
    assert {p.name for p in output_dir.iterdir()} == EXPECTED_FILES
    assert "Wrote barrel file" in result.stdout
    assert "TypeScript lib globals generated:" in result.stdout


def test_t_02_generated_package_imports_in_fresh_interpreter(tmp_path: Path) -> None:
    output_dir = tmp_path / "ts_lib"
    assert _run_generate(output_dir, "--skip-format").returncode == 0

    probe = subprocess.run(
        [
            sys.executable,
            "-c",
            "import ts_lib; "
            "print(sorted(ts_lib.lib['es2016'])); "
            "print(ts_lib.lib['es2016']['Symbol'].is_type_variable)",
        ],
        cwd=tmp_path,
        capture_output=True,
        text=True,
        check=False,
    )

    assert probe.returncode == 0, probe.stderr
    lines = probe.stdout.splitlines()
    assert "ObjectConstructor" in lines[0]
    assert lines[1] == "False"


def test_t_03_repeated_runs_are_byte_identical(tmp_path: Path) -> None:
    output_dir = tmp_path / "ts_lib"

    assert _run_generate(output_dir, "--skip-format").returncode == 0
    first = {p.name: p.read_bytes() for p in output_dir.iterdir()}
    assert _run_generate(output_dir, "--skip-format").returncode == 0
    second = {p.name: p.read_bytes() for p in output_dir.iterdir()}

    assert first == second


def test_t_04_formatter_pass_runs_when_ruff_is_available(tmp_path: Path) -> None:
    if importlib.util.find_spec("ruff") is None:
        pytest.skip("ruff is not installed")
    output_dir = tmp_path / "ts_lib"

    result = _run_generate(output_dir)

    assert result.returncode == 0, result.stdout + result.stderr
    assert "Formatted: 13 files with ruff" in result.stdout


def test_t_05_list_libs_with_filter() -> None:
    result = _run(
        ["--list-libs", "--filter", "es2015", "--lib-dir", str(_fixture_lib_dir())]
    )

    assert result.returncode == 0, result.stderr
    assert result.stdout.startswith("3 TypeScript libs (TypeScript 5.6.3")
    assert "es2015.symbol" in result.stdout


def test_t_06_info_prints_lib_globals() -> None:
    result = _run(["--info", "dom", "--lib-dir", str(_fixture_lib_dir())])

    assert result.returncode == 0, result.stderr
    assert "dom (lib, lib.dom.d.ts)" in result.stdout
    assert "Event" in result.stdout
    assert "type + value" in result.stdout


def test_t_07_info_unknown_lib_exits_1() -> None:
    result = _run(["--info", "es2099", "--lib-dir", str(_fixture_lib_dir())])

    assert result.returncode == 1
    assert "lib 'es2099' not found" in result.stderr


def test_t_08_missing_lib_dir_reports_config_error(tmp_path: Path) -> None:
    result = _run(
        [
            "--lib-dir",
            str(tmp_path / "missing"),
            "--output-dir",
            str(tmp_path / "ts_lib"),
        ]
    )

    assert result.returncode == 1
    assert "Config error [PATH_NOT_FOUND]" in result.stdout
    assert "Hint:" in result.stdout


def test_t_09_filter_without_list_reports_config_error() -> None:
    result = _run(["--filter", "dom", "--lib-dir", str(_fixture_lib_dir())])

    assert result.returncode == 1
    assert "Config error [FILTER_WITHOUT_LIST]" in result.stdout
