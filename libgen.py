"""Implicit-global lib tables generator for a TypeScript scope analyzer.

Parses every TypeScript standard lib declaration file (lib.*.d.ts), classifies
the globals each one declares as type-only, value-only or both, and writes one
Python module per lib plus a barrel package under the output directory.

Usage:
    python libgen.py --lib-dir node_modules/typescript/lib --output-dir generated/ts_lib
"""

import argparse
import json
import re
import shutil
import subprocess
import sys
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import tree_sitter as ts
import tree_sitter_typescript as tsts

PROJECT_ROOT = Path(__file__).resolve().parent
DEFAULT_LIB_DIR = PROJECT_ROOT / "node_modules" / "typescript" / "lib"
DEFAULT_OUTPUT_DIR = PROJECT_ROOT / "generated" / "ts_lib"
GENERATOR_NAME = "ts-scope-libgen"


# ===--- CLI config contracts ---=== #


@dataclass(frozen=True)
class GenerateConfig:
    lib_dir: Path
    output_dir: Path
    skip_format: bool = False


@dataclass(frozen=True)
class DiscoveryConfig:
    command: str
    filter_text: str | None
    info_lib: str | None
    lib_dir: Path


VALID_ERROR_CODES = {
    "PATH_NOT_FOUND",
    "INVALID_LIB_NAME",
    "CONFLICT_GENERATE_DISCOVERY",
    "FILTER_WITHOUT_LIST",
    "UNSAFE_OUTPUT_DIR",
    "UNKNOWN_LIB_REFERENCE",
}
_LIB_NAME_RE = re.compile(r"^[a-z][a-z0-9]*(\.[a-z0-9]+)*$")
_LIB_DIR_SUGGESTION = (
    "Install TypeScript:\n"
    "  npm install --save-dev typescript\n"
    "Or pass a custom path: --lib-dir /your/path/to/typescript/lib"
)


class ConfigError(Exception):
    def __init__(self, code: str, message: str, suggestion: str | None = None):
        if code not in VALID_ERROR_CODES:
            raise ValueError(f"Unknown config error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion


def validate_lib_name(name: str) -> str:
    if _LIB_NAME_RE.match(name):
        return name
    raise ConfigError(
        "INVALID_LIB_NAME",
        f"Invalid lib name: {name}",
        "Lib names are lowercase dotted identifiers (for example es2015.core).",
    )


def validate_path_exists(
    path: Path | None, flag: str, suggestion: str | None = None
) -> Path:
    if path is None:
        raise ConfigError(
            "PATH_NOT_FOUND",
            f"{flag} is required: no path provided.",
            suggestion or f"Pass the path explicitly: {flag} /path/to/resource",
        )
    if path.exists():
        return path
    raise ConfigError(
        "PATH_NOT_FOUND",
        f"Path for {flag} does not exist: {path}",
        suggestion or "Provide an existing path for this flag.",
    )


def validate_output_dir(output_dir: Path, lib_dir: Path) -> Path:
    """Reject output directories that the destructive reset must never touch."""
    resolved = output_dir.resolve()
    protected = (Path.home().resolve(), PROJECT_ROOT)
    if resolved == Path(resolved.anchor) or any(
        resolved == path or resolved in path.parents for path in protected
    ):
        raise ConfigError(
            "UNSAFE_OUTPUT_DIR",
            f"Refusing to use {output_dir} as output directory: it is wiped on every run.",
            "Point --output-dir at a dedicated directory such as generated/ts_lib.",
        )

    lib_resolved = lib_dir.resolve()
    if resolved == lib_resolved or resolved in lib_resolved.parents:
        raise ConfigError(
            "UNSAFE_OUTPUT_DIR",
            f"Output directory {output_dir} contains the lib directory {lib_dir}.",
            "Choose an output directory outside the TypeScript installation.",
        )
    return output_dir


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate implicit-global lib tables from TypeScript lib files"
    )

    parser.add_argument("--lib-dir", type=Path, default=DEFAULT_LIB_DIR)
    parser.add_argument("--output-dir", type=Path, default=DEFAULT_OUTPUT_DIR)
    parser.add_argument("--skip-format", action="store_true", default=False)

    discovery_group = parser.add_mutually_exclusive_group()
    discovery_group.add_argument("--list-libs", action="store_true", default=False)
    discovery_group.add_argument("--info", type=str, default=None)

    parser.add_argument("--filter", type=str, default=None)

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_argument_parser()
    return parser.parse_args(argv)


def validate_config(args: argparse.Namespace) -> GenerateConfig | DiscoveryConfig:
    has_discovery_command = bool(args.list_libs or args.info)

    if args.filter and not args.list_libs:
        raise ConfigError(
            "FILTER_WITHOUT_LIST",
            "--filter requires --list-libs.",
            "Add --list-libs or remove --filter.",
        )

    if args.skip_format and has_discovery_command:
        raise ConfigError(
            "CONFLICT_GENERATE_DISCOVERY",
            "Generate flags cannot be combined with discovery flags.",
            "Choose either generate mode or one discovery command.",
        )

    lib_dir = validate_path_exists(args.lib_dir, "--lib-dir", _LIB_DIR_SUGGESTION)

    if has_discovery_command:
        command = "list-libs" if args.list_libs else "info"
        info_lib = validate_lib_name(args.info) if args.info is not None else None
        return DiscoveryConfig(
            command=command,
            filter_text=args.filter,
            info_lib=info_lib,
            lib_dir=lib_dir,
        )

    output_dir = validate_output_dir(args.output_dir, lib_dir)
    return GenerateConfig(
        lib_dir=lib_dir,
        output_dir=output_dir,
        skip_format=bool(args.skip_format),
    )


def build_config(argv: list[str] | None = None) -> GenerateConfig | DiscoveryConfig:
    return validate_config(parse_args(argv))


# ===--- Constants ---=== #

# TypeScript 5.6 `libEntries`, used when the lib directory ships no typescript.js.
# Repeated names are intentional: the compiler builds a Map from this list.
DEFAULT_LIB_ENTRIES: tuple[tuple[str, str], ...] = (
    ("es5", "lib.es5.d.ts"),
    ("es6", "lib.es2015.d.ts"),
    ("es2015", "lib.es2015.d.ts"),
    ("es7", "lib.es2016.d.ts"),
    ("es2016", "lib.es2016.d.ts"),
    ("es2017", "lib.es2017.d.ts"),
    ("es2018", "lib.es2018.d.ts"),
    ("es2019", "lib.es2019.d.ts"),
    ("es2020", "lib.es2020.d.ts"),
    ("es2021", "lib.es2021.d.ts"),
    ("es2022", "lib.es2022.d.ts"),
    ("es2023", "lib.es2023.d.ts"),
    ("esnext", "lib.esnext.d.ts"),
    ("dom", "lib.dom.d.ts"),
    ("dom.iterable", "lib.dom.iterable.d.ts"),
    ("dom.asynciterable", "lib.dom.asynciterable.d.ts"),
    ("webworker", "lib.webworker.d.ts"),
    ("webworker.importscripts", "lib.webworker.importscripts.d.ts"),
    ("webworker.iterable", "lib.webworker.iterable.d.ts"),
    ("webworker.asynciterable", "lib.webworker.asynciterable.d.ts"),
    ("scripthost", "lib.scripthost.d.ts"),
    ("es2015.core", "lib.es2015.core.d.ts"),
    ("es2015.collection", "lib.es2015.collection.d.ts"),
    ("es2015.generator", "lib.es2015.generator.d.ts"),
    ("es2015.iterable", "lib.es2015.iterable.d.ts"),
    ("es2015.promise", "lib.es2015.promise.d.ts"),
    ("es2015.proxy", "lib.es2015.proxy.d.ts"),
    ("es2015.reflect", "lib.es2015.reflect.d.ts"),
    ("es2015.symbol", "lib.es2015.symbol.d.ts"),
    ("es2015.symbol.wellknown", "lib.es2015.symbol.wellknown.d.ts"),
    ("es2016.array.include", "lib.es2016.array.include.d.ts"),
    ("es2016.intl", "lib.es2016.intl.d.ts"),
    ("es2017.date", "lib.es2017.date.d.ts"),
    ("es2017.object", "lib.es2017.object.d.ts"),
    ("es2017.sharedmemory", "lib.es2017.sharedmemory.d.ts"),
    ("es2017.string", "lib.es2017.string.d.ts"),
    ("es2017.intl", "lib.es2017.intl.d.ts"),
    ("es2017.typedarrays", "lib.es2017.typedarrays.d.ts"),
    ("es2018.asyncgenerator", "lib.es2018.asyncgenerator.d.ts"),
    ("es2018.asynciterable", "lib.es2018.asynciterable.d.ts"),
    ("es2018.intl", "lib.es2018.intl.d.ts"),
    ("es2018.promise", "lib.es2018.promise.d.ts"),
    ("es2018.regexp", "lib.es2018.regexp.d.ts"),
    ("es2019.array", "lib.es2019.array.d.ts"),
    ("es2019.object", "lib.es2019.object.d.ts"),
    ("es2019.string", "lib.es2019.string.d.ts"),
    ("es2019.symbol", "lib.es2019.symbol.d.ts"),
    ("es2019.intl", "lib.es2019.intl.d.ts"),
    ("es2020.bigint", "lib.es2020.bigint.d.ts"),
    ("es2020.date", "lib.es2020.date.d.ts"),
    ("es2020.promise", "lib.es2020.promise.d.ts"),
    ("es2020.sharedmemory", "lib.es2020.sharedmemory.d.ts"),
    ("es2020.string", "lib.es2020.string.d.ts"),
    ("es2020.symbol.wellknown", "lib.es2020.symbol.wellknown.d.ts"),
    ("es2020.intl", "lib.es2020.intl.d.ts"),
    ("es2020.number", "lib.es2020.number.d.ts"),
    ("es2021.promise", "lib.es2021.promise.d.ts"),
    ("es2021.string", "lib.es2021.string.d.ts"),
    ("es2021.weakref", "lib.es2021.weakref.d.ts"),
    ("es2021.intl", "lib.es2021.intl.d.ts"),
    ("es2022.array", "lib.es2022.array.d.ts"),
    ("es2022.error", "lib.es2022.error.d.ts"),
    ("es2022.intl", "lib.es2022.intl.d.ts"),
    ("es2022.object", "lib.es2022.object.d.ts"),
    ("es2022.sharedmemory", "lib.es2022.sharedmemory.d.ts"),
    ("es2022.string", "lib.es2022.string.d.ts"),
    ("es2022.regexp", "lib.es2022.regexp.d.ts"),
    ("es2023.array", "lib.es2023.array.d.ts"),
    ("es2023.collection", "lib.es2023.collection.d.ts"),
    ("es2023.intl", "lib.es2023.intl.d.ts"),
    ("esnext.array", "lib.es2023.array.d.ts"),
    ("esnext.collection", "lib.esnext.collection.d.ts"),
    ("esnext.symbol", "lib.es2019.symbol.d.ts"),
    ("esnext.asynciterable", "lib.es2018.asynciterable.d.ts"),
    ("esnext.intl", "lib.esnext.intl.d.ts"),
    ("esnext.disposable", "lib.esnext.disposable.d.ts"),
    ("esnext.bigint", "lib.es2020.bigint.d.ts"),
    ("esnext.string", "lib.es2022.string.d.ts"),
    ("esnext.promise", "lib.esnext.promise.d.ts"),
    ("esnext.weakref", "lib.es2021.weakref.d.ts"),
    ("esnext.decorators", "lib.esnext.decorators.d.ts"),
    ("esnext.object", "lib.esnext.object.d.ts"),
    ("esnext.array", "lib.esnext.array.d.ts"),
    ("esnext.regexp", "lib.esnext.regexp.d.ts"),
    ("esnext.string", "lib.esnext.string.d.ts"),
    ("esnext.iterator", "lib.esnext.iterator.d.ts"),
    ("decorators", "lib.decorators.d.ts"),
    ("decorators.legacy", "lib.decorators.legacy.d.ts"),
)

BUNDLE_KIND_LIB = "lib"
BUNDLE_KIND_FULL = "full"
BUNDLE_KIND_ROOT = "root"

FULL_VARIANT_RE = re.compile(r"^es\d{4}$|^esnext$")
# The ES2015 target's default lib is lib.es6.d.ts; there is no lib.es2015.full.d.ts.
FULL_VARIANT_EXCLUDED = "es2015"

ROOT_LIB_NAME = "lib"
ROOT_LIB_FILE = "lib.d.ts"

TYPESCRIPT_JS = "typescript.js"
LIB_MAP_SOURCE_BUILTIN = "built-in"

BASE_CONFIG_MODULE = "base_config"
TYPES_MODULE = "lib_types"
AGGREGATE_EXPORT_NAME = "lib"
AGGREGATE_EXPORT_ALIAS = "lib_base"
RESERVED_MODULE_STEMS = frozenset({BASE_CONFIG_MODULE, TYPES_MODULE, "__init__"})


# ===--- Data classes ---=== #


class VariableClassification(Enum):
    """Namespace(s) a global identifier occupies.

    The value is the name of the matching constant in the generated
    base_config module.
    """

    TYPE_ONLY = "TYPE"
    VALUE_ONLY = "VALUE"
    TYPE_AND_VALUE = "TYPE_VALUE"

    @property
    def export_name(self) -> str:
        return self.value

    @property
    def is_type(self) -> bool:
        return self is not VariableClassification.VALUE_ONLY

    @property
    def is_value(self) -> bool:
        return self is not VariableClassification.TYPE_ONLY


CLASSIFICATION_LABELS = {
    VariableClassification.TYPE_ONLY: "type",
    VariableClassification.VALUE_ONLY: "value",
    VariableClassification.TYPE_AND_VALUE: "type + value",
}


@dataclass(frozen=True)
class BundleDescriptor:
    name: str
    source_file: str
    kind: str = BUNDLE_KIND_LIB

    @property
    def module_stem(self) -> str:
        return sanitize_lib_name(self.name)


@dataclass(frozen=True)
class BundleTable:
    """Synthesized global table for one lib, ready for code generation.

    Attributes:
        descriptor: The lib this table belongs to.
        references: Referenced lib names in source order. Their tables are
            spread into this one before the own entries.
        entries: (identifier, classification) pairs in declaration order.
        used_classifications: Distinct classifications present in entries,
            sorted by export name. Drives the base_config import.
    """

    descriptor: BundleDescriptor
    references: tuple[str, ...]
    entries: tuple[tuple[str, VariableClassification], ...]
    used_classifications: tuple[VariableClassification, ...]

    @property
    def export_name(self) -> str:
        return self.descriptor.module_stem


# ===--- Bundle catalog ---=== #

_LIB_ENTRIES_BLOCK_RE = re.compile(r"\blibEntries\s*=\s*\[(.*?)\];", re.DOTALL)
_LIB_ENTRY_RE = re.compile(r"""\[\s*["']([^"']+)["']\s*,\s*["']([^"']+)["']\s*\]""")


def sanitize_lib_name(name: str) -> str:
    return name.replace(".", "_")


def parse_lib_entries(typescript_js: str) -> tuple[tuple[str, str], ...]:
    """Extract the `libEntries` table from the bundled compiler source.

    Args:
        typescript_js: Contents of typescript/lib/typescript.js.

    Returns:
        (lib name, file name) pairs in source order, duplicates included.

    Raises:
        ValueError: If no `libEntries` array is present or it is empty.
    """
    block = _LIB_ENTRIES_BLOCK_RE.search(typescript_js)
    if block is None:
        raise ValueError(f"No libEntries table found in {TYPESCRIPT_JS}")
    entries = tuple(
        (match.group(1), match.group(2))
        for match in _LIB_ENTRY_RE.finditer(block.group(1))
    )
    if not entries:
        raise ValueError(f"The libEntries table in {TYPESCRIPT_JS} is empty")
    return entries


def load_lib_entries(lib_dir: Path) -> tuple[tuple[tuple[str, str], ...], str]:
    """Return the compiler lib map for lib_dir and a label naming its source.

    Reads `libEntries` from lib_dir/typescript.js when the compiler is
    installed there; otherwise falls back to DEFAULT_LIB_ENTRIES.
    """
    typescript_js = Path(lib_dir) / TYPESCRIPT_JS
    if typescript_js.is_file():
        text = typescript_js.read_text(encoding="utf-8")
        return parse_lib_entries(text), TYPESCRIPT_JS
    return DEFAULT_LIB_ENTRIES, LIB_MAP_SOURCE_BUILTIN


def dedupe_lib_entries(entries: Iterable[tuple[str, str]]) -> dict[str, str]:
    """Collapse repeated names the way a JS Map constructor does.

    A repeated name keeps the position of its first occurrence and the file
    name of its last.
    """
    lib_map: dict[str, str] = {}
    for name, source_file in entries:
        lib_map[name] = source_file
    return lib_map


def build_lib_catalog(
    entries: Iterable[tuple[str, str]],
) -> tuple[BundleDescriptor, ...]:
    """Derive the ordered lib catalog from the compiler lib map.

    Order: every lib-map entry in map order, each ES-year or esnext entry
    immediately followed by its derived `<name>.full` variant (except
    FULL_VARIANT_EXCLUDED), then the synthetic root lib last. The generated
    barrel and name enumeration embed this order verbatim.

    Args:
        entries: (lib name, file name) pairs, duplicates allowed.

    Returns:
        Tuple of unique BundleDescriptors.

    Raises:
        ValueError: If two names map to the same generated module stem, or a
            stem collides with one of the fixed generated modules.
    """
    descriptors: list[BundleDescriptor] = []
    seen: set[str] = set()

    def _add(descriptor: BundleDescriptor) -> None:
        if descriptor.name in seen:
            return
        seen.add(descriptor.name)
        descriptors.append(descriptor)

    for name, source_file in dedupe_lib_entries(entries).items():
        _add(BundleDescriptor(name, source_file, BUNDLE_KIND_LIB))
        if FULL_VARIANT_RE.match(name) and name != FULL_VARIANT_EXCLUDED:
            _add(
                BundleDescriptor(
                    f"{name}.full", f"lib.{name}.full.d.ts", BUNDLE_KIND_FULL
                )
            )
    _add(BundleDescriptor(ROOT_LIB_NAME, ROOT_LIB_FILE, BUNDLE_KIND_ROOT))

    stems: dict[str, str] = {}
    for descriptor in descriptors:
        stem = descriptor.module_stem
        if stem in RESERVED_MODULE_STEMS:
            raise ValueError(
                f"Lib '{descriptor.name}' collides with generated module '{stem}'"
            )
        if stem in stems:
            raise ValueError(
                f"Libs '{stems[stem]}' and '{descriptor.name}' both map to module '{stem}'"
            )
        stems[stem] = descriptor.name

    return tuple(descriptors)


def extract_typescript_version(lib_dir: Path) -> str:
    """Return the TypeScript package version owning lib_dir, or "unknown"."""
    package_json = Path(lib_dir).parent / "package.json"
    if not package_json.is_file():
        return "unknown"
    data = json.loads(package_json.read_text(encoding="utf-8"))
    version = data.get("version") if isinstance(data, dict) else None
    if isinstance(version, str) and version:
        return version
    return "unknown"


# ===--- Declaration parser ---=== #

TS_LANGUAGE = ts.Language(tsts.language_typescript())
_parser: ts.Parser | None = None

VALID_SOURCE_TYPES = {"module", "script"}


def _get_parser() -> ts.Parser:
    global _parser
    if _parser is None:
        _parser = ts.Parser(TS_LANGUAGE)
    return _parser


@dataclass(frozen=True)
class ParseOptions:
    """Parser and scope-analysis configuration.

    Attributes:
        include_comments: Collect comment trivia on the parsed unit.
        include_locations: Attach line/column locations to comments and
            definitions.
        include_ranges: Attach byte ranges to comments and definitions.
        lib: Lib names whose globals are seeded into the global scope as
            implicit variables. Empty disables ambient lib inclusion.
        source_type: "module" puts top-level declarations in a module scope
            below the global scope; "script" puts them in the global scope.
    """

    include_comments: bool = True
    include_locations: bool = True
    include_ranges: bool = True
    lib: tuple[str, ...] = ()
    source_type: str = "module"

    def __post_init__(self) -> None:
        if self.source_type not in VALID_SOURCE_TYPES:
            raise ValueError(f"Unsupported source type: {self.source_type!r}")


LIB_PARSE_OPTIONS = ParseOptions(
    include_comments=True,
    include_locations=True,
    include_ranges=True,
    lib=(),
    source_type="module",
)


@dataclass(frozen=True)
class SourceLocation:
    """Lines are 1-based, columns 0-based (byte offsets within the line)."""

    start_line: int
    start_column: int
    end_line: int
    end_column: int


@dataclass(frozen=True)
class Comment:
    type: str
    value: str
    loc: SourceLocation | None
    range: tuple[int, int] | None


class DefinitionType(Enum):
    CLASS_NAME = "ClassName"
    FUNCTION_NAME = "FunctionName"
    IMPORT_BINDING = "ImportBinding"
    TS_ENUM_NAME = "TSEnumName"
    TS_MODULE_NAME = "TSModuleName"
    TYPE = "Type"
    VARIABLE = "Variable"

    @property
    def is_type_definition(self) -> bool:
        return self in _TYPE_DEFINITIONS

    @property
    def is_variable_definition(self) -> bool:
        return self in _VALUE_DEFINITIONS


_TYPE_DEFINITIONS = frozenset(
    {
        DefinitionType.CLASS_NAME,
        DefinitionType.IMPORT_BINDING,
        DefinitionType.TS_ENUM_NAME,
        DefinitionType.TS_MODULE_NAME,
        DefinitionType.TYPE,
    }
)
_VALUE_DEFINITIONS = frozenset(
    {
        DefinitionType.CLASS_NAME,
        DefinitionType.FUNCTION_NAME,
        DefinitionType.IMPORT_BINDING,
        DefinitionType.TS_ENUM_NAME,
        DefinitionType.TS_MODULE_NAME,
        DefinitionType.VARIABLE,
    }
)


@dataclass(frozen=True)
class Definition:
    type: DefinitionType
    name: str
    node_type: str
    loc: SourceLocation | None
    range: tuple[int, int] | None


class Variable:
    def __init__(self, name: str, scope: "Scope"):
        self.name = name
        self.scope = scope
        self.defs: list[Definition] = []

    @property
    def is_type_variable(self) -> bool:
        return any(d.type.is_type_definition for d in self.defs)

    @property
    def is_value_variable(self) -> bool:
        return any(d.type.is_variable_definition for d in self.defs)


class ImplicitLibVariable(Variable):
    """Global seeded from a lib table rather than declared in source."""

    def __init__(
        self,
        name: str,
        scope: "Scope",
        is_type_variable: bool,
        is_value_variable: bool,
    ):
        super().__init__(name, scope)
        self._is_type_variable = is_type_variable
        self._is_value_variable = is_value_variable

    @property
    def is_type_variable(self) -> bool:
        return self._is_type_variable

    @property
    def is_value_variable(self) -> bool:
        return self._is_value_variable


class Scope:
    def __init__(self, kind: str, upper: "Scope | None" = None):
        self.kind = kind
        self.upper = upper
        self.child_scopes: list[Scope] = []
        self.set: dict[str, Variable] = {}
        if upper is not None:
            upper.child_scopes.append(self)

    @property
    def variables(self) -> list[Variable]:
        return list(self.set.values())

    def define(self, definition: Definition) -> Variable:
        variable = self.set.get(definition.name)
        if variable is None:
            variable = Variable(definition.name, self)
            self.set[definition.name] = variable
        variable.defs.append(definition)
        return variable

    def define_implicit(
        self, name: str, is_type_variable: bool, is_value_variable: bool
    ) -> Variable:
        variable = ImplicitLibVariable(name, self, is_type_variable, is_value_variable)
        self.set[name] = variable
        return variable


class ScopeManager:
    def __init__(self) -> None:
        self.global_scope = Scope("global")
        self.scopes: list[Scope] = [self.global_scope]

    def nest_module_scope(self) -> Scope:
        scope = Scope("module", self.global_scope)
        self.scopes.append(scope)
        return scope


@dataclass(frozen=True)
class ParsedUnit:
    source_path: Path | None
    tree: ts.Tree
    comments: tuple[Comment, ...]
    scope_manager: ScopeManager


class DeclarationParseError(Exception):
    def __init__(self, message: str, path: Path | None, line: int, column: int):
        location = f"{path or '<source>'}:{line}:{column}"
        super().__init__(f"{location}: {message}")
        self.message = message
        self.path = path
        self.line = line
        self.column = column


def _node_text(node: ts.Node) -> str:
    return node.text.decode("utf-8") if node.text is not None else ""


def _node_loc(node: ts.Node, options: ParseOptions) -> SourceLocation | None:
    if not options.include_locations:
        return None
    return SourceLocation(
        start_line=node.start_point[0] + 1,
        start_column=node.start_point[1],
        end_line=node.end_point[0] + 1,
        end_column=node.end_point[1],
    )


def _node_range(node: ts.Node, options: ParseOptions) -> tuple[int, int] | None:
    if not options.include_ranges:
        return None
    return (node.start_byte, node.end_byte)


def _find_first_error(root: ts.Node) -> ts.Node | None:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return node
        stack.extend(
            child
            for child in reversed(node.children)
            if child.has_error or child.is_missing
        )
    return None


def _collect_comments(root: ts.Node, options: ParseOptions) -> tuple[Comment, ...]:
    comments: list[Comment] = []
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "comment":
            text = _node_text(node)
            if text.startswith("//"):
                comment_type, value = "Line", text[2:]
            else:
                comment_type, value = "Block", text[2:-2]
            comments.append(
                Comment(
                    type=comment_type,
                    value=value,
                    loc=_node_loc(node, options),
                    range=_node_range(node, options),
                )
            )
            continue
        stack.extend(reversed(node.children))
    return tuple(comments)


# ===--- Scope analysis ---=== #

_WRAPPER_NODES = {"ambient_declaration"}
_MODULE_NODES = {"module", "internal_module"}
_FUNCTION_NODES = {
    "function_declaration",
    "generator_function_declaration",
    "function_signature",
}
_CLASS_NODES = {"class_declaration", "abstract_class_declaration"}
_TYPE_NODES = {"interface_declaration", "type_alias_declaration"}
_VARIABLE_NODES = {"lexical_declaration", "variable_declaration"}
_NAME_NODES = {"identifier", "type_identifier"}


def _define(
    scope: Scope,
    name_node: ts.Node | None,
    definition_type: DefinitionType,
    declaration: ts.Node,
    options: ParseOptions,
) -> None:
    if name_node is None or name_node.type not in _NAME_NODES:
        return
    scope.define(
        Definition(
            type=definition_type,
            name=_node_text(name_node),
            node_type=declaration.type,
            loc=_node_loc(name_node, options),
            range=_node_range(name_node, options),
        )
    )


def _pattern_identifiers(node: ts.Node | None) -> list[ts.Node]:
    """Binding identifiers of a declarator name, destructuring included."""
    if node is None:
        return []
    if node.type in ("identifier", "shorthand_property_identifier_pattern"):
        return [node]
    if node.type == "pair_pattern":
        return _pattern_identifiers(node.child_by_field_name("value"))
    if node.type in ("assignment_pattern", "object_assignment_pattern"):
        return _pattern_identifiers(node.child_by_field_name("left"))
    if node.type in ("object_pattern", "array_pattern", "rest_pattern"):
        found: list[ts.Node] = []
        for child in node.named_children:
            found.extend(_pattern_identifiers(child))
        return found
    return []


def _module_name_node(node: ts.Node) -> ts.Node | None:
    # `namespace A.B {}` declares A; string-named modules declare nothing.
    name_node = node.child_by_field_name("name")
    while name_node is not None and name_node.type in (
        "nested_identifier",
        "member_expression",
    ):
        children = name_node.named_children
        name_node = children[0] if children else None
    return name_node


def _declare_imports(scope: Scope, node: ts.Node, options: ParseOptions) -> None:
    for child in node.named_children:
        if child.type == "import_require_clause":
            _define(
                scope,
                next((c for c in child.named_children if c.type == "identifier"), None),
                DefinitionType.IMPORT_BINDING,
                node,
                options,
            )
            continue
        if child.type != "import_clause":
            continue
        for part in child.named_children:
            if part.type == "identifier":
                _define(scope, part, DefinitionType.IMPORT_BINDING, node, options)
            elif part.type == "namespace_import":
                for ident in part.named_children:
                    _define(scope, ident, DefinitionType.IMPORT_BINDING, node, options)
            elif part.type == "named_imports":
                for spec in part.named_children:
                    if spec.type != "import_specifier":
                        continue
                    local = spec.child_by_field_name(
                        "alias"
                    ) or spec.child_by_field_name("name")
                    _define(scope, local, DefinitionType.IMPORT_BINDING, node, options)


def _declare_statement(scope: Scope, node: ts.Node, options: ParseOptions) -> None:
    node_type = node.type

    if node_type == "export_statement":
        declaration = node.child_by_field_name("declaration")
        if declaration is not None:
            _declare_statement(scope, declaration, options)
    elif node_type in _WRAPPER_NODES:
        # `declare global { ... }` shows up here as a statement_block and is skipped.
        for child in node.named_children:
            _declare_statement(scope, child, options)
    elif node_type == "expression_statement":
        for child in node.named_children:
            if child.type in _MODULE_NODES:
                _declare_statement(scope, child, options)
    elif node_type in _TYPE_NODES:
        _define(
            scope, node.child_by_field_name("name"), DefinitionType.TYPE, node, options
        )
    elif node_type in _CLASS_NODES:
        _define(
            scope,
            node.child_by_field_name("name"),
            DefinitionType.CLASS_NAME,
            node,
            options,
        )
    elif node_type in _FUNCTION_NODES:
        _define(
            scope,
            node.child_by_field_name("name"),
            DefinitionType.FUNCTION_NAME,
            node,
            options,
        )
    elif node_type == "enum_declaration":
        _define(
            scope,
            node.child_by_field_name("name"),
            DefinitionType.TS_ENUM_NAME,
            node,
            options,
        )
    elif node_type in _MODULE_NODES:
        _define(
            scope, _module_name_node(node), DefinitionType.TS_MODULE_NAME, node, options
        )
    elif node_type in _VARIABLE_NODES:
        for declarator in node.named_children:
            if declarator.type != "variable_declarator":
                continue
            for ident in _pattern_identifiers(declarator.child_by_field_name("name")):
                _define(scope, ident, DefinitionType.VARIABLE, node, options)
    elif node_type == "import_statement":
        _declare_imports(scope, node, options)
    elif node_type == "import_alias":
        _define(
            scope,
            next((c for c in node.named_children if c.type == "identifier"), None),
            DefinitionType.IMPORT_BINDING,
            node,
            options,
        )


def analyze_scopes(
    root: ts.Node,
    options: ParseOptions,
    lib_globals: Mapping[str, Mapping[str, VariableClassification]] | None = None,
) -> ScopeManager:
    """Build the scope tree for a parsed declaration file.

    Only top-level declarations are recorded; namespace bodies and other
    nested blocks do not contribute variables.

    Args:
        root: The `program` node.
        options: Parse options (source_type and lib are consulted here).
        lib_globals: Lib name -> global table, consulted for each entry in
            options.lib.

    Returns:
        ScopeManager whose global scope holds any implicit lib variables and,
        for module source, a single module scope child with the declarations.

    Raises:
        ValueError: If options.lib names a lib absent from lib_globals.
    """
    manager = ScopeManager()
    for lib_name in options.lib:
        table = (lib_globals or {}).get(lib_name)
        if table is None:
            raise ValueError(f"No globals available for implicit lib '{lib_name}'")
        for name, classification in table.items():
            manager.global_scope.define_implicit(
                name, classification.is_type, classification.is_value
            )

    if options.source_type == "module":
        declaration_scope = manager.nest_module_scope()
    else:
        declaration_scope = manager.global_scope

    for statement in root.named_children:
        _declare_statement(declaration_scope, statement, options)

    return manager


def parse_declaration_source(
    text: str,
    options: ParseOptions = LIB_PARSE_OPTIONS,
    source_path: Path | None = None,
    lib_globals: Mapping[str, Mapping[str, VariableClassification]] | None = None,
) -> ParsedUnit:
    """Parse declaration-file text into a syntax tree, comments and scopes.

    Raises:
        DeclarationParseError: If the text contains a syntax error.
        ValueError: Propagated from analyze_scopes for unknown implicit libs.
    """
    tree = _get_parser().parse(text.encode("utf-8"))
    root = tree.root_node
    if root.has_error:
        error_node = _find_first_error(root) or root
        kind = "Missing token" if error_node.is_missing else "Syntax error"
        raise DeclarationParseError(
            f"{kind} near {_node_text(error_node)[:40]!r}",
            source_path,
            error_node.start_point[0] + 1,
            error_node.start_point[1],
        )

    comments = _collect_comments(root, options) if options.include_comments else ()
    scope_manager = analyze_scopes(root, options, lib_globals)
    return ParsedUnit(
        source_path=source_path,
        tree=tree,
        comments=comments,
        scope_manager=scope_manager,
    )


def parse_declaration_file(
    path: Path, options: ParseOptions = LIB_PARSE_OPTIONS
) -> ParsedUnit:
    text = Path(path).read_text(encoding="utf-8")
    return parse_declaration_source(text, options, source_path=Path(path))


# ===--- Reference extraction ---=== #

_REFERENCE_LIB_RE = re.compile(r'/ <reference lib="([^"]+)" />')


def extract_lib_references(comments: Iterable[Comment]) -> tuple[str, ...]:
    """Return lib names from `/// <reference lib="..." />` directives.

    Only line comments whose whole text matches the directive count; other
    comments (including no-default-lib directives) are skipped. Names are
    returned in source order with duplicates dropped, since the order decides
    the spread order in the generated table.
    """
    references: dict[str, None] = {}
    for comment in comments:
        if comment.type != "Line":
            continue
        match = _REFERENCE_LIB_RE.fullmatch(comment.value)
        if match is None:
            continue
        references.setdefault(match.group(1), None)
    return tuple(references)


def validate_lib_references(
    descriptor: BundleDescriptor,
    references: Iterable[str],
    catalog_names: frozenset[str],
) -> None:
    for reference in references:
        if reference not in catalog_names:
            raise ConfigError(
                "UNKNOWN_LIB_REFERENCE",
                f"{descriptor.source_file} references unknown lib '{reference}'",
                "The lib map and the lib files are out of sync; check --lib-dir.",
            )


# ===--- Global variable classification ---=== #


def classify_variable(variable: Variable) -> VariableClassification:
    if variable.is_type_variable and variable.is_value_variable:
        return VariableClassification.TYPE_AND_VALUE
    if variable.is_type_variable:
        return VariableClassification.TYPE_ONLY
    if variable.is_value_variable:
        return VariableClassification.VALUE_ONLY
    raise RuntimeError(
        f"Unexpected variable type for '{variable.name}': neither a type nor a value"
    )


def classify_global_variables(
    scope_manager: ScopeManager,
) -> tuple[tuple[str, VariableClassification], ...]:
    """Classify every variable declared in the module scope of a lib file.

    The module scope is the single child of the global scope. Variables are
    returned in declaration order.

    Raises:
        RuntimeError: If there is not exactly one module scope, or a variable
            is neither a type nor a value.
    """
    child_scopes = scope_manager.global_scope.child_scopes
    if len(child_scopes) != 1:
        raise RuntimeError(
            f"Expected exactly one module scope below the global scope, "
            f"found {len(child_scopes)}"
        )
    module_scope = child_scopes[0]
    return tuple(
        (variable.name, classify_variable(variable))
        for variable in module_scope.variables
    )


# ===--- Bundle table synthesis ---=== #


def synthesize_bundle_table(
    descriptor: BundleDescriptor,
    references: Sequence[str],
    variables: Sequence[tuple[str, VariableClassification]],
) -> BundleTable:
    """Combine a lib's references and own classified globals into a table.

    Referenced tables are not resolved here: the generated module spreads
    them when it is imported, so libs can be processed in catalog order.

    Raises:
        ValueError: If an identifier appears twice among the own entries.
    """
    seen: set[str] = set()
    for name, _ in variables:
        if name in seen:
            raise ValueError(f"Duplicate global '{name}' in lib '{descriptor.name}'")
        seen.add(name)

    used = {classification for _, classification in variables}
    return BundleTable(
        descriptor=descriptor,
        references=tuple(references),
        entries=tuple(variables),
        used_classifications=tuple(sorted(used, key=lambda c: c.export_name)),
    )


def process_bundle(
    descriptor: BundleDescriptor,
    lib_dir: Path,
    catalog_names: frozenset[str],
) -> BundleTable:
    """Parse one lib file and synthesize its table.

    Raises:
        OSError: Lib file missing or unreadable.
        DeclarationParseError: Lib file is not valid declaration syntax.
        ConfigError: A reference directive names a lib outside the catalog.
        RuntimeError: Scope analysis produced an unclassifiable variable.
    """
    unit = parse_declaration_file(Path(lib_dir) / descriptor.source_file)
    references = extract_lib_references(unit.comments)
    validate_lib_references(descriptor, references, catalog_names)
    variables = classify_global_variables(unit.scope_manager)
    return synthesize_bundle_table(descriptor, references, variables)


# ===--- Shared run metadata ---=== #


@dataclass(frozen=True)
class WriteConfig:
    """Shared generation metadata embedded in every file preamble.

    Attributes:
        typescript_version: Version of the TypeScript package the lib files
            come from, e.g. "5.6.3", or "unknown".
        lib_map_source: Where the lib map was read from ("typescript.js" or
            "built-in").
    """

    typescript_version: str
    lib_map_source: str = TYPESCRIPT_JS


# ===--- Import spec types ---=== #


@dataclass(frozen=True)
class ExternalImport:
    """Import from a non-sibling module (typing, dataclasses, ...).

    Renders as a single line:
        from <module> import <name1>, <name2>, ...
    """

    module: str
    names: tuple[str, ...]


@dataclass(frozen=True)
class SiblingImport:
    """Named import from a sibling module in the generated package.

    Renders as a single line:
        from .<module_stem> import <name1>, <name2>, ...

    Callers sort before constructing so output is deterministic.
    """

    module_stem: str
    names: tuple[str, ...]


@dataclass(frozen=True)
class ModuleSpec:
    """Complete input for one generated .py module file (not __init__.py).

    Attributes:
        filename: Output filename including .py extension, e.g. "es5.py".
        external_imports: Imports from non-package modules.
        sibling_imports: Named imports from sibling modules.
        content_lines: Body lines without header or imports.
        source_file: Lib file the module was generated from, shown in the
            header. None for modules not tied to a lib file.
    """

    filename: str
    external_imports: tuple[ExternalImport, ...]
    sibling_imports: tuple[SiblingImport, ...]
    content_lines: tuple[str, ...]
    source_file: str | None = None


# ===--- __init__.py spec types ---=== #


@dataclass(frozen=True)
class BarrelEntry:
    """One lib in the barrel's aggregate mapping.

    Renders an import:
        from .<module_stem> import <export_name>[ as <alias>]
    and a mapping row:
        "<lib_name>": <alias or export_name>,
    """

    lib_name: str
    module_stem: str
    export_name: str
    alias: str | None = None

    @property
    def binding(self) -> str:
        return self.alias or self.export_name


@dataclass(frozen=True)
class InitModuleSpec:
    """Complete input for __init__.py generation.

    entries order is the mapping order of the aggregate constant; imports are
    sorted separately.
    """

    entries: tuple[BarrelEntry, ...]


# ===--- Write result types ---=== #


@dataclass(frozen=True)
class FileWriteResult:
    """Result of writing a single generated file.

    Attributes:
        filename: Filename written, e.g. "es5.py" or "__init__.py".
        path: Absolute path of the written file.
        line_count: Number of newline characters in the written UTF-8 content.
        byte_count: Number of bytes written (UTF-8 encoded).
    """

    filename: str
    path: Path
    line_count: int
    byte_count: int


@dataclass(frozen=True)
class PackageWriteResult:
    """Result of writing the complete generated package, in write order."""

    output_dir: Path
    files: tuple[FileWriteResult, ...]

    @property
    def total_lines(self) -> int:
        """Sum of line_count across all written files."""
        return sum(f.line_count for f in self.files)


# ===--- Pure formatting functions ---=== #

_HEADER_BORDER: str = "# x-------------------------------------------x #"


def _natural_key(text: str) -> tuple[object, ...]:
    return tuple(
        int(part) if part.isdigit() else part.lower()
        for part in re.split(r"(\d+)", text)
    )


def _py_str(value: str) -> str:
    return json.dumps(value)


def format_file_header(config: WriteConfig, source_file: str | None = None) -> list[str]:
    """Return comment-block lines for a generated module file header.

    Output format:
        # x-------------------------------------------x #
        # | TypeScript lib globals for scope analysis
        # | Generated by ts-scope-libgen. Do not edit by hand.
        # | Source: TypeScript 5.6.3
        # | Lib file: lib.es5.d.ts
        # x-------------------------------------------x #

    The Lib file line is omitted when source_file is None.

    Raises:
        ValueError: If config.typescript_version is empty.
    """
    if not config.typescript_version:
        raise ValueError("typescript_version must not be empty")

    lines: list[str] = [
        _HEADER_BORDER,
        "# | TypeScript lib globals for scope analysis",
        f"# | Generated by {GENERATOR_NAME}. Do not edit by hand.",
        f"# | Source: TypeScript {config.typescript_version}",
    ]
    if source_file is not None:
        lines.append(f"# | Lib file: {source_file}")
    lines.append(_HEADER_BORDER)
    return lines


def format_import_block(
    external_imports: tuple[ExternalImport, ...],
    sibling_imports: tuple[SiblingImport, ...],
) -> list[str]:
    """Return import statement lines for a module file.

    External imports come first; a blank line separates them from sibling
    imports when both groups are present.

    Raises:
        ValueError: If any import has an empty names tuple.
    """
    for imp in external_imports:
        if not imp.names:
            raise ValueError(
                f"ExternalImport for module '{imp.module}' has empty names tuple"
            )
    for imp in sibling_imports:
        if not imp.names:
            raise ValueError(
                f"SiblingImport for module '{imp.module_stem}' has empty names tuple"
            )

    lines: list[str] = []
    for imp in external_imports:
        lines.append(f"from {imp.module} import {', '.join(imp.names)}")

    if external_imports and sibling_imports:
        lines.append("")

    for imp in sibling_imports:
        lines.append(f"from .{imp.module_stem} import {', '.join(imp.names)}")

    return lines


def assemble_module_source(config: WriteConfig, spec: ModuleSpec) -> str:
    """Assemble a complete .py module source string from a ModuleSpec.

    File structure:
        <header_comment_block>
                                    <- blank line
        <import_block>              <- only when imports exist
                                    <- blank line
        <content_lines>
                                    <- trailing newline

    Raises:
        ValueError: If spec.filename is empty or does not end with ".py".
        ValueError: Propagated from format_import_block on empty names tuple.
    """
    if not spec.filename or not spec.filename.endswith(".py"):
        raise ValueError(
            f"spec.filename must be non-empty and end with '.py', "
            f"got {spec.filename!r}"
        )

    parts: list[str] = list(format_file_header(config, spec.source_file))

    has_imports = bool(spec.external_imports or spec.sibling_imports)
    if has_imports:
        parts.append("")
        parts.extend(format_import_block(spec.external_imports, spec.sibling_imports))

    if spec.content_lines:
        parts.append("")
        parts.extend(spec.content_lines)

    return "\n".join(parts) + "\n"


def assemble_init_source(config: WriteConfig, init_spec: InitModuleSpec) -> str:
    """Assemble the barrel __init__.py source string.

    File structure:
        \"\"\"<docstring>\"\"\"
                                    <- blank line
        from .<stem> import <name>  <- one per entry, natural-sorted by stem
                                    <- blank line
        lib = {
            "<lib name>": <binding>,
        }
                                    <- blank line
        __all__ = ["lib"]

    Raises:
        ValueError: If init_spec has no entries.
    """
    if not init_spec.entries:
        raise ValueError("InitModuleSpec must contain at least one entry")

    docstring = (
        f'"""TypeScript {config.typescript_version} lib globals for scope analysis. '
        f'Generated by {GENERATOR_NAME}."""'
    )
    parts: list[str] = [docstring, ""]

    for entry in sorted(init_spec.entries, key=lambda e: _natural_key(e.module_stem)):
        line = f"from .{entry.module_stem} import {entry.export_name}"
        if entry.alias:
            line += f" as {entry.alias}"
        parts.append(line)

    parts.append("")
    parts.append(f"{AGGREGATE_EXPORT_NAME} = {{")
    for entry in init_spec.entries:
        parts.append(f"    {_py_str(entry.lib_name)}: {entry.binding},")
    parts.append("}")
    parts.append("")
    parts.append(f"__all__ = [{_py_str(AGGREGATE_EXPORT_NAME)}]")

    return "\n".join(parts) + "\n"


# ===--- Module spec builders ---=== #

BASE_CONFIG_ORDER: tuple[VariableClassification, ...] = (
    VariableClassification.TYPE_ONLY,
    VariableClassification.VALUE_ONLY,
    VariableClassification.TYPE_AND_VALUE,
)


def build_base_config_spec() -> ModuleSpec:
    """Spec for base_config.py, the shared classification constants."""
    lines: list[str] = [
        "",
        "@dataclass(frozen=True)",
        "class ImplicitLibVariableOptions:",
        '    implicit_global_scope_visibility: Literal["readonly"]',
        "    is_type_variable: bool",
        "    is_value_variable: bool",
        "",
    ]
    for classification in BASE_CONFIG_ORDER:
        lines.extend(
            [
                "",
                f"{classification.export_name} = ImplicitLibVariableOptions(",
                '    implicit_global_scope_visibility="readonly",',
                f"    is_type_variable={classification.is_type},",
                f"    is_value_variable={classification.is_value},",
                ")",
            ]
        )
    return ModuleSpec(
        filename=f"{BASE_CONFIG_MODULE}.py",
        external_imports=(
            ExternalImport("dataclasses", ("dataclass",)),
            ExternalImport("typing", ("Literal",)),
        ),
        sibling_imports=(),
        content_lines=tuple(lines),
    )


def build_bundle_module_spec(table: BundleTable) -> ModuleSpec:
    """Spec for one lib module: imports, then `<stem> = {**refs, "Name": TAG}`.

    Imports are the base_config constants the table uses plus one import per
    referenced lib, sorted by module stem. Spreads keep reference order and
    precede the own entries, so a lib's own declaration of a name wins over
    any referenced lib's.
    """
    imports: list[SiblingImport] = []
    if table.used_classifications:
        imports.append(
            SiblingImport(
                BASE_CONFIG_MODULE,
                tuple(c.export_name for c in table.used_classifications),
            )
        )
    for reference in table.references:
        stem = sanitize_lib_name(reference)
        imports.append(SiblingImport(stem, (stem,)))
    imports.sort(key=lambda imp: _natural_key(imp.module_stem))

    name = table.export_name
    if not table.references and not table.entries:
        content = [f"{name} = {{}}"]
    else:
        content = [f"{name} = {{"]
        for reference in table.references:
            content.append(f"    **{sanitize_lib_name(reference)},")
        for identifier, classification in table.entries:
            content.append(f"    {_py_str(identifier)}: {classification.export_name},")
        content.append("}")

    return ModuleSpec(
        filename=f"{name}.py",
        external_imports=(),
        sibling_imports=tuple(imports),
        content_lines=tuple(content),
        source_file=table.descriptor.source_file,
    )


def build_types_module_spec(catalog: Sequence[BundleDescriptor]) -> ModuleSpec:
    """Spec for lib_types.py: the closed `Lib` literal over catalog names."""
    if not catalog:
        raise ValueError("Cannot build the Lib type for an empty catalog")
    content = ["Lib = Literal["]
    content.extend(f"    {_py_str(descriptor.name)}," for descriptor in catalog)
    content.append("]")
    content.append("")
    content.append('__all__ = ["Lib"]')
    return ModuleSpec(
        filename=f"{TYPES_MODULE}.py",
        external_imports=(ExternalImport("typing", ("Literal",)),),
        sibling_imports=(),
        content_lines=tuple(content),
    )


def build_barrel_spec(
    catalog: Sequence[BundleDescriptor],
    tables: Sequence[BundleTable],
) -> InitModuleSpec:
    """Build the barrel manifest mapping every lib name to its table.

    Raises:
        ValueError: If the synthesized tables and the catalog do not cover
            exactly the same lib names.
    """
    catalog_names = [descriptor.name for descriptor in catalog]
    table_names = {table.descriptor.name for table in tables}
    missing = [name for name in catalog_names if name not in table_names]
    extra = sorted(table_names - set(catalog_names))
    if missing or extra:
        raise ValueError(
            f"Barrel out of sync with catalog: missing={missing} extra={extra}"
        )

    entries = []
    for descriptor in catalog:
        stem = descriptor.module_stem
        alias = AGGREGATE_EXPORT_ALIAS if stem == AGGREGATE_EXPORT_NAME else None
        entries.append(
            BarrelEntry(
                lib_name=descriptor.name,
                module_stem=stem,
                export_name=stem,
                alias=alias,
            )
        )
    return InitModuleSpec(entries=tuple(entries))


# ===--- Writer I/O functions ---=== #


def reset_output_dir(output_dir: Path) -> None:
    """Delete output_dir recursively and recreate it empty.

    A missing directory is expected on first runs and is not an error.

    Raises:
        OSError: Any failure other than the directory being absent.
    """
    output_dir = Path(output_dir)
    try:
        shutil.rmtree(output_dir)
    except FileNotFoundError:
        pass
    output_dir.mkdir(parents=True, exist_ok=True)


def write_module(
    output_dir: Path, config: WriteConfig, spec: ModuleSpec
) -> FileWriteResult:
    """Write a single generated .py module file to disk.

    Raises:
        ValueError: Propagated from assemble_module_source on invalid spec.
        OSError: Propagated directly if the filesystem write fails.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    content = assemble_module_source(config, spec)
    file_path = output_dir / spec.filename
    file_path.write_text(content, encoding="utf-8")
    resolved = file_path.resolve()
    file_bytes = resolved.read_bytes()
    return FileWriteResult(
        filename=spec.filename,
        path=resolved,
        line_count=content.count("\n"),
        byte_count=len(file_bytes),
    )


def write_init_module(
    output_dir: Path, config: WriteConfig, init_spec: InitModuleSpec
) -> FileWriteResult:
    """Write the barrel __init__.py to disk.

    Raises:
        ValueError: Propagated from assemble_init_source on invalid init_spec.
        OSError: Propagated directly if the filesystem write fails.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    content = assemble_init_source(config, init_spec)
    file_path = output_dir / "__init__.py"
    file_path.write_text(content, encoding="utf-8")
    resolved = file_path.resolve()
    file_bytes = resolved.read_bytes()
    return FileWriteResult(
        filename="__init__.py",
        path=resolved,
        line_count=content.count("\n"),
        byte_count=len(file_bytes),
    )


def format_generated_files(paths: Sequence[Path]) -> None:
    """Run ruff's import-order autofix and formatter over written files.

    Raises:
        subprocess.CalledProcessError: If ruff exits non-zero.
        OSError: If the interpreter cannot be launched.
    """
    if not paths:
        return
    file_args = [str(path) for path in paths]
    subprocess.run(
        [sys.executable, "-m", "ruff", "check", "--fix", "--quiet", "--select", "I"]
        + file_args,
        check=True,
        capture_output=True,
        text=True,
    )
    subprocess.run(
        [sys.executable, "-m", "ruff", "format", "--quiet"] + file_args,
        check=True,
        capture_output=True,
        text=True,
    )


# ===--- Discovery data ---=== #


@dataclass(frozen=True)
class LibSummary:
    name: str
    kind: str
    source_file: str
    present: bool


@dataclass(frozen=True)
class LibDetail:
    summary: LibSummary
    references: tuple[str, ...]
    variables: tuple[tuple[str, VariableClassification], ...]


def gather_lib_summaries(
    catalog: Sequence[BundleDescriptor], lib_dir: Path
) -> list[LibSummary]:
    return [
        LibSummary(
            name=descriptor.name,
            kind=descriptor.kind,
            source_file=descriptor.source_file,
            present=(Path(lib_dir) / descriptor.source_file).is_file(),
        )
        for descriptor in catalog
    ]


def filter_libs_by_text(
    summaries: list[LibSummary], filter_text: str
) -> list[LibSummary]:
    """Keep summaries whose name contains filter_text (case-insensitive)."""
    needle = filter_text.lower()
    return [s for s in summaries if needle in s.name.lower()]


def gather_lib_detail(
    catalog: Sequence[BundleDescriptor], lib_dir: Path, name: str
) -> LibDetail | None:
    """Parse one lib and return its references and own globals.

    Returns None when name is not in the catalog.

    Raises:
        OSError: Lib file missing or unreadable.
        DeclarationParseError: Lib file is not valid declaration syntax.
    """
    descriptor = next((d for d in catalog if d.name == name), None)
    if descriptor is None:
        return None
    path = Path(lib_dir) / descriptor.source_file
    unit = parse_declaration_file(path)
    return LibDetail(
        summary=LibSummary(
            name=descriptor.name,
            kind=descriptor.kind,
            source_file=descriptor.source_file,
            present=True,
        ),
        references=extract_lib_references(unit.comments),
        variables=classify_global_variables(unit.scope_manager),
    )


# ===--- Discovery formatters ---=== #


def format_libs_table(
    summaries: list[LibSummary],
    typescript_version: str,
    lib_map_source: str,
) -> str:
    """Return the complete --list-libs output as a string.

    Output format:

        {N} TypeScript libs (TypeScript 5.6.3, lib map: typescript.js):

          es5            lib   lib.es5.d.ts
          es2016.full    full  lib.es2016.full.d.ts
          dom            lib   lib.dom.d.ts  (missing)

    Name width is derived from the widest name. Filtering is the caller's job.
    """
    lines = [
        f"{len(summaries)} TypeScript libs "
        f"(TypeScript {typescript_version}, lib map: {lib_map_source}):",
        "",
    ]
    name_width = max((len(s.name) for s in summaries), default=0)
    for s in summaries:
        row = f"  {s.name.ljust(name_width)}  {s.kind:<4}  {s.source_file}"
        if not s.present:
            row += "  (missing)"
        lines.append(row)
    lines.append("")
    return "\n".join(lines)


def format_lib_detail(detail: LibDetail) -> str:
    """Return the complete --info output for one lib as a string.

    Output format:

        es2015 (lib, lib.es2015.d.ts)
          References: es5, es2015.core

          Globals (2):
            Array  type + value
            NaN    value
    """
    s = detail.summary
    lines = [f"{s.name} ({s.kind}, {s.source_file})"]
    references = ", ".join(detail.references) if detail.references else "none"
    lines.append(f"  References: {references}")
    lines.append("")
    lines.append(f"  Globals ({len(detail.variables)}):")
    name_width = max((len(name) for name, _ in detail.variables), default=0)
    for name, classification in detail.variables:
        label = CLASSIFICATION_LABELS[classification]
        lines.append(f"    {name.ljust(name_width)}  {label}")
    lines.append("")
    return "\n".join(lines)


def run_discovery(config: DiscoveryConfig) -> None:
    """Execute the read-only discovery command specified in config.

    dispatch table:
      "list-libs" -> gather_lib_summaries -> [filter] -> format_libs_table
      "info"      -> gather_lib_detail -> [None check] -> format_lib_detail

    Raises:
        SystemExit(1): When config.command == "info" and the lib is not in
            the catalog.
    """
    lib_entries, lib_map_source = load_lib_entries(config.lib_dir)
    catalog = build_lib_catalog(lib_entries)
    typescript_version = extract_typescript_version(config.lib_dir)

    if config.command == "list-libs":
        summaries = gather_lib_summaries(catalog, config.lib_dir)
        if config.filter_text is not None:
            summaries = filter_libs_by_text(summaries, config.filter_text)
        print(format_libs_table(summaries, typescript_version, lib_map_source), end="")

    elif config.command == "info":
        assert config.info_lib is not None
        detail = gather_lib_detail(catalog, config.lib_dir, config.info_lib)
        if detail is None:
            print(
                f"Error: lib '{config.info_lib}' not found in the TypeScript "
                f"{typescript_version} lib map",
                file=sys.stderr,
            )
            raise SystemExit(1)
        print(format_lib_detail(detail), end="")


# ===--- Pipeline ---=== #


def build_write_config(typescript_version: str, lib_map_source: str) -> WriteConfig:
    if not typescript_version:
        raise ValueError("typescript_version must not be empty")
    return WriteConfig(
        typescript_version=typescript_version,
        lib_map_source=lib_map_source,
    )


def run_generate(config: GenerateConfig) -> PackageWriteResult:
    """Execute the complete generation pipeline for a GenerateConfig.

    Stages: load lib map -> build catalog -> reset output -> write
    base_config -> per lib (parse, references, classify, synthesize, write)
    -> write Lib type -> write barrel -> format -> summary.

    Returns:
        PackageWriteResult describing every file written.

    Raises:
        OSError: Lib file unreadable or filesystem write failure.
        DeclarationParseError: A lib file failed to parse.
        ConfigError: A lib references a lib outside the catalog.
        RuntimeError: Unclassifiable variable or malformed scope tree.
        ValueError: Catalog collision or inconsistent aggregate.
        subprocess.CalledProcessError: The formatter failed.
    """
    print(f"Reading: {config.lib_dir}")
    lib_entries, lib_map_source = load_lib_entries(config.lib_dir)
    catalog = build_lib_catalog(lib_entries)
    typescript_version = extract_typescript_version(config.lib_dir)
    lib_counts = build_lib_counts(catalog)
    print(
        f"  Catalog: {len(catalog)} libs ({lib_counts.lib} lib map + "
        f"{lib_counts.full} full variants + {lib_counts.root} root), "
        f"lib map from {lib_map_source}"
    )

    write_config = build_write_config(typescript_version, lib_map_source)
    reset_output_dir(config.output_dir)

    files: list[FileWriteResult] = [
        write_module(config.output_dir, write_config, build_base_config_spec())
    ]
    catalog_names = frozenset(descriptor.name for descriptor in catalog)
    tables: list[BundleTable] = []
    for descriptor in catalog:
        table = process_bundle(descriptor, config.lib_dir, catalog_names)
        spec = build_bundle_module_spec(table)
        files.append(write_module(config.output_dir, write_config, spec))
        tables.append(table)
        print(f"  Wrote {descriptor.name} lib file")

    files.append(
        write_module(config.output_dir, write_config, build_types_module_spec(catalog))
    )
    print("  Wrote Lib union type file")

    init_spec = build_barrel_spec(catalog, tables)
    files.append(write_init_module(config.output_dir, write_config, init_spec))
    print("  Wrote barrel file")

    result = PackageWriteResult(output_dir=Path(config.output_dir), files=tuple(files))

    if config.skip_format:
        print("  Formatter: skipped")
    else:
        format_generated_files([f.path for f in result.files])
        print(f"  Formatted: {len(result.files)} files with ruff")

    summary = build_generation_summary(write_config, catalog, tables, result)
    print_generation_summary(summary)

    return result


# ===--- Summary report ---=== #


@dataclass(frozen=True)
class LibCounts:
    lib: int
    full: int
    root: int

    @property
    def total(self) -> int:
        return self.lib + self.full + self.root


@dataclass(frozen=True)
class GenerationCounts:
    """Own-declaration counts per classification, summed over every lib.

    Spread entries are not counted, so a global declared once is counted once
    regardless of how many libs reference its lib.
    """

    type_only: int
    value_only: int
    type_and_value: int

    @property
    def total(self) -> int:
        return self.type_only + self.value_only + self.type_and_value


@dataclass(frozen=True)
class GenerationSummary:
    """Complete, immutable data for the post-generation console report."""

    source_label: str
    output_dir: str
    lib_counts: LibCounts
    counts: GenerationCounts
    files: tuple[FileWriteResult, ...]


def build_lib_counts(catalog: Sequence[BundleDescriptor]) -> LibCounts:
    kinds = [descriptor.kind for descriptor in catalog]
    return LibCounts(
        lib=kinds.count(BUNDLE_KIND_LIB),
        full=kinds.count(BUNDLE_KIND_FULL),
        root=kinds.count(BUNDLE_KIND_ROOT),
    )


def build_generation_counts(tables: Sequence[BundleTable]) -> GenerationCounts:
    classifications = [
        classification for table in tables for _, classification in table.entries
    ]
    return GenerationCounts(
        type_only=classifications.count(VariableClassification.TYPE_ONLY),
        value_only=classifications.count(VariableClassification.VALUE_ONLY),
        type_and_value=classifications.count(VariableClassification.TYPE_AND_VALUE),
    )


def build_generation_summary(
    write_config: WriteConfig,
    catalog: Sequence[BundleDescriptor],
    tables: Sequence[BundleTable],
    write_result: PackageWriteResult,
) -> GenerationSummary:
    return GenerationSummary(
        source_label=(
            f"TypeScript {write_config.typescript_version} "
            f"(lib map: {write_config.lib_map_source})"
        ),
        output_dir=str(write_result.output_dir),
        lib_counts=build_lib_counts(catalog),
        counts=build_generation_counts(tables),
        files=write_result.files,
    )


def format_generation_summary(summary: GenerationSummary) -> str:
    """Render a GenerationSummary to the multi-section console string.

    Counts use thousands separators. Returns a string with exactly one
    trailing newline.
    """
    lc = summary.lib_counts
    lines: list[str] = []
    lines.append("TypeScript lib globals generated:")
    lines.append("")
    lines.append(f"  Source:     {summary.source_label}")
    lines.append(f"  Output:     {summary.output_dir}")
    lines.append("")
    lines.append(
        f"  Libs:       {lc.total:>6}  "
        f"({lc.lib} lib map + {lc.full} full variants + {lc.root} root)"
    )
    lines.append("")
    lines.append("  Globals declared:")
    lines.append(f"    {'Type only:':<15}{summary.counts.type_only:>7,}")
    lines.append(f"    {'Value only:':<15}{summary.counts.value_only:>7,}")
    lines.append(f"    {'Type + value:':<15}{summary.counts.type_and_value:>7,}")

    total_lines = sum(f.line_count for f in summary.files)
    lines.append("")
    lines.append(f"  Total: {total_lines:,} lines across {len(summary.files)} files")
    lines.append("")

    return "\n".join(lines)


def print_generation_summary(summary: GenerationSummary) -> None:
    """Print the generation summary to stdout."""
    print(format_generation_summary(summary), end="")


# ===--- Main generation ---=== #


def _report_config_error(err: ConfigError) -> None:
    print(f"Config error [{err.code}]: {err.message}")
    if err.suggestion:
        print(f"Hint: {err.suggestion}")


def main():
    try:
        config = build_config()
    except ConfigError as err:
        _report_config_error(err)
        raise SystemExit(1) from err

    if isinstance(config, DiscoveryConfig):
        try:
            run_discovery(config)
        except (OSError, DeclarationParseError) as err:
            print(f"Error: {err}")
            raise SystemExit(1) from err
        except (RuntimeError, ValueError) as err:
            print(f"Internal error: {err}")
            raise SystemExit(1) from err
        return

    try:
        run_generate(config)
    except ConfigError as err:
        _report_config_error(err)
        raise SystemExit(1) from err
    except (OSError, DeclarationParseError) as err:
        print(f"Error: {err}")
        raise SystemExit(1) from err
    except subprocess.CalledProcessError as err:
        print(f"Error: formatter failed: {err}")
        if err.stderr:
            print(err.stderr.rstrip())
        raise SystemExit(1) from err
    except (RuntimeError, ValueError) as err:
        print(f"Internal error: {err}")
        raise SystemExit(1) from err


if __name__ == "__main__":
    main()
