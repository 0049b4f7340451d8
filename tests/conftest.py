import argparse
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

GENERATOR_DIR = Path(__file__).resolve().parent.parent
if str(GENERATOR_DIR) not in sys.path:
    sys.path.insert(0, str(GENERATOR_DIR))

import libgen  # noqa: E402

FIXTURE_LIB_DIR = GENERATOR_DIR / "tests" / "fixtures" / "typescript" / "lib"


@pytest.fixture
def fixture_lib_dir() -> Path:
    return FIXTURE_LIB_DIR


@pytest.fixture
def existing_paths(tmp_path: Path) -> dict[str, Path]:
    lib_dir = tmp_path / "typescript" / "lib"
    lib_dir.mkdir(parents=True)
    (lib_dir / "lib.es5.d.ts").write_text("declare var NaN: number;\n", encoding="utf-8")

    output_dir = tmp_path / "out"
    return {
        "lib_dir": lib_dir,
        "output_dir": output_dir,
    }


@pytest.fixture
def missing_path(tmp_path: Path) -> Path:
    return tmp_path / "missing"


@pytest.fixture
def make_args(existing_paths: dict[str, Path]) -> Callable[..., argparse.Namespace]:
    def _make_args(**overrides: object) -> argparse.Namespace:
        base_args: dict[str, object] = {
            "lib_dir": existing_paths["lib_dir"],
            "output_dir": existing_paths["output_dir"],
            "skip_format": False,
            "list_libs": False,
            "info": None,
            "filter": None,
        }
        base_args.update(overrides)
        return argparse.Namespace(**base_args)

    return _make_args


@pytest.fixture
def write_lib_dir(tmp_path: Path) -> Callable[..., Path]:
    """Create a TypeScript lib directory with a typescript.js lib map.

    entries are (lib name, file name) pairs; files maps file names to their
    declaration text. lib.d.ts defaults to an empty root lib.
    """

    def _write_lib_dir(
        entries: list[tuple[str, str]],
        files: dict[str, str],
        *,
        version: str | None = "5.6.3",
        name: str = "typescript",
    ) -> Path:
        package_dir = tmp_path / name
        lib_dir = package_dir / "lib"
        lib_dir.mkdir(parents=True)
        rows = ",\n".join(f'    ["{lib}", "{file}"]' for lib, file in entries)
        (lib_dir / "typescript.js").write_text(
            f"var libEntries = [\n{rows}\n];\n", encoding="utf-8"
        )
        all_files = {"lib.d.ts": '/// <reference no-default-lib="true"/>\n'}
        all_files.update(files)
        for filename, text in all_files.items():
            (lib_dir / filename).write_text(text, encoding="utf-8")
        if version is not None:
            (package_dir / "package.json").write_text(
                f'{{"name": "typescript", "version": "{version}"}}\n',
                encoding="utf-8",
            )
        return lib_dir

    return _write_lib_dir


@pytest.fixture
def parse_module() -> Callable[..., "libgen.ParsedUnit"]:
    def _parse_module(text: str, **options: object) -> libgen.ParsedUnit:
        parse_options = libgen.ParseOptions(**options) if options else libgen.LIB_PARSE_OPTIONS
        return libgen.parse_declaration_source(text, parse_options)

    return _parse_module
