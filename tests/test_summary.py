from __future__ import annotations

from pathlib import Path

import pytest

import libgen

C = libgen.VariableClassification


def _catalog() -> tuple[libgen.BundleDescriptor, ...]:
    return libgen.build_lib_catalog(
        [("es5", "lib.es5.d.ts"), ("es2016", "lib.es2016.d.ts"), ("dom", "lib.dom.d.ts")]
    )


def _tables(
    catalog: tuple[libgen.BundleDescriptor, ...],
) -> list[libgen.BundleTable]:
    own = {
        "es5": (("NaN", C.VALUE_ONLY), ("Array", C.TYPE_AND_VALUE), ("Symbol", C.TYPE_ONLY)),
        "dom": (("Event", C.TYPE_AND_VALUE), ("Window", C.TYPE_ONLY)),
    }
    return [
        libgen.synthesize_bundle_table(d, (), own.get(d.name, ())) for d in catalog
    ]


def _write_result(line_counts: tuple[int, ...]) -> libgen.PackageWriteResult:
    files = tuple(
        libgen.FileWriteResult(f"m{i}.py", Path(f"/out/m{i}.py"), lines, lines * 10)
        for i, lines in enumerate(line_counts)
    )
    return libgen.PackageWriteResult(Path("/out"), files)


def test_t_01_build_lib_counts_splits_by_kind() -> None:
    counts = libgen.build_lib_counts(_catalog())

    assert counts == libgen.LibCounts(lib=3, full=1, root=1)
    assert counts.total == 5


def test_t_02_build_generation_counts_sums_own_entries() -> None:
    counts = libgen.build_generation_counts(_tables(_catalog()))

    assert counts == libgen.GenerationCounts(type_only=2, value_only=1, type_and_value=2)
    assert counts.total == 5


def test_t_03_build_generation_summary_collects_run_metadata() -> None:
    catalog = _catalog()
    write_config = libgen.WriteConfig("5.6.3", "typescript.js")

    summary = libgen.build_generation_summary(
        write_config, catalog, _tables(catalog), _write_result((10, 20))
    )

    assert summary.source_label == "TypeScript 5.6.3 (lib map: typescript.js)"
    assert summary.output_dir == str(Path("/out"))
    assert summary.lib_counts.total == 5
    assert len(summary.files) == 2


def test_t_04_format_generation_summary_sections() -> None:
    catalog = _catalog()
    summary = libgen.build_generation_summary(
        libgen.WriteConfig("5.6.3", "built-in"),
        catalog,
        _tables(catalog),
        _write_result((1200, 34)),
    )

    text = libgen.format_generation_summary(summary)
    lines = text.splitlines()

    assert lines[0] == "TypeScript lib globals generated:"
    assert "  Source:     TypeScript 5.6.3 (lib map: built-in)" in lines
    assert "  Libs:            5  (3 lib map + 1 full variants + 1 root)" in lines
    assert "    Type only:           2" in lines
    assert "    Value only:          1" in lines
    assert "    Type + value:        2" in lines
    assert lines[-1] == "  Total: 1,234 lines across 2 files"
    assert text.endswith("\n")
    assert not text.endswith("\n\n")


def test_t_05_print_generation_summary_writes_stdout(
    capsys: pytest.CaptureFixture[str],
) -> None:
    catalog = _catalog()
    summary = libgen.build_generation_summary(
        libgen.WriteConfig("5.6.3"), catalog, _tables(catalog), _write_result((3,))
    )

    libgen.print_generation_summary(summary)

    assert capsys.readouterr().out == libgen.format_generation_summary(summary)
