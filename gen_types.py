"""libGDevelop Flow types generator.

Generates the Flow declarations consumed by the IDE codebase from the
WebIDL bindings (Bindings.idl). The conversion itself is done by
"webidl-tools flow"; this tool sanitizes its input, runs it, and patches
the declarations it cannot express correctly.

Bindings.idl is also read by Emscripten to build the JS interface of the
WebAssembly engine. The bindings carry a few hand-written additions (see
postjs.js), which is why the generated files need fixing afterwards.

Usage:
    python tools/types-gen/gen_types.py
    python tools/types-gen/gen_types.py --list-rules --filter Event
"""

import argparse
import re
import subprocess
import tempfile
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent.parent
DEFAULT_IDL = PROJECT_ROOT / "Bindings" / "Bindings.idl"
DEFAULT_OUTPUT_DIR = PROJECT_ROOT / "types"
DEFAULT_GENERATOR = (
    PROJECT_ROOT / "node_modules" / "webidl-tools" / "bin" / "webidl-tools-flow"
)
DEFAULT_NODE = "node"
DEFAULT_TIMEOUT = 300.0
MAX_GENERATOR_STDOUT = 1000


# ===--- CLI config contracts ---=== #


@dataclass(frozen=True)
class GenerateConfig:
    idl: Path
    output_dir: Path
    generator: Path
    node: str
    timeout: float
    max_stdout: int
    strict_anchors: bool


@dataclass(frozen=True)
class ListRulesConfig:
    filter_text: str | None


VALID_ERROR_CODES = {
    "PATH_NOT_FOUND",
    "INVALID_TIMEOUT",
    "INVALID_THRESHOLD",
    "FILTER_WITHOUT_LIST",
}


class ConfigError(Exception):
    def __init__(self, code: str, message: str, suggestion: str | None = None):
        if code not in VALID_ERROR_CODES:
            raise ValueError(f"Unknown config error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion


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


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate libGDevelop Flow types from Bindings.idl"
    )

    parser.add_argument("--idl", type=Path, default=DEFAULT_IDL)
    parser.add_argument("--output-dir", type=Path, default=DEFAULT_OUTPUT_DIR)
    parser.add_argument("--generator", type=Path, default=DEFAULT_GENERATOR)
    parser.add_argument("--node", type=str, default=DEFAULT_NODE)
    parser.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT)
    parser.add_argument("--max-stdout", type=int, default=MAX_GENERATOR_STDOUT)
    parser.add_argument("--strict-anchors", action="store_true", default=False)

    parser.add_argument("--list-rules", action="store_true", default=False)
    parser.add_argument("--filter", type=str, default=None)

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_argument_parser()
    return parser.parse_args(argv)


def validate_config(args: argparse.Namespace) -> GenerateConfig | ListRulesConfig:
    if args.filter and not args.list_rules:
        raise ConfigError(
            "FILTER_WITHOUT_LIST",
            "--filter requires --list-rules.",
            "Add --list-rules or remove --filter.",
        )

    if args.list_rules:
        return ListRulesConfig(filter_text=args.filter)

    if args.timeout <= 0:
        raise ConfigError(
            "INVALID_TIMEOUT",
            f"--timeout must be positive, got {args.timeout}.",
            "Pass a number of seconds, for example --timeout 300.",
        )
    if args.max_stdout < 0:
        raise ConfigError(
            "INVALID_THRESHOLD",
            f"--max-stdout must not be negative, got {args.max_stdout}.",
            f"Use the default ({MAX_GENERATOR_STDOUT}) unless the generator got chattier.",
        )

    idl = validate_path_exists(
        args.idl,
        "--idl",
        "Run from a GDevelop.js checkout, or pass a custom path: --idl /path/to/Bindings.idl",
    )
    generator = validate_path_exists(
        args.generator,
        "--generator",
        "Install the dev dependencies of GDevelop.js:\n"
        "  npm install\n"
        "Or pass a custom path: --generator /path/to/webidl-tools-flow",
    )

    return GenerateConfig(
        idl=idl,
        output_dir=args.output_dir,
        generator=generator,
        node=args.node,
        timeout=args.timeout,
        max_stdout=args.max_stdout,
        strict_anchors=bool(args.strict_anchors),
    )


def build_config(argv: list[str] | None = None) -> GenerateConfig | ListRulesConfig:
    return validate_config(parse_args(argv))


# ===--- Pipeline errors ---=== #


VALID_PIPELINE_ERROR_CODES = {
    "GENERATOR_ERRORED",
    "GENERATOR_TIMED_OUT",
    "GENERATOR_OUTPUT_SUSPICIOUS",
    "ANCHOR_MISSED",
}


class PipelineError(Exception):
    """A stage failed; the run is aborted and must be restarted from scratch."""

    def __init__(self, code: str, message: str, suggestion: str | None = None):
        if code not in VALID_PIPELINE_ERROR_CODES:
            raise ValueError(f"Unknown pipeline error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion


# ===--- IDL sanitizing ---=== #


@dataclass(frozen=True)
class ElidedAttribute:
    """An extended attribute the webidl2.js parser of webidl-tools rejects.

    Attributes:
        pattern: Literal attribute text, e.g. '[Prefix="gdjs::"]'.
        marker: Single-line comment left in its place, so that line numbers
            in generator diagnostics still match Bindings.idl.
    """

    pattern: str
    marker: str


SANITIZED_ATTRIBUTES: tuple[ElidedAttribute, ...] = (
    ElidedAttribute('[Prefix="gdjs::"]', "/* Removed gdjs prefix */"),
    ElidedAttribute(
        '[Prefix="gd::InstructionMetadata::"]',
        "/* Removed gd::InstructionMetadata prefix */",
    ),
)

SANITIZED_IDL_DIR_PREFIX = "gdevelopjs-cleaned-bindings-idl"


def sanitize_idl(
    text: str, attributes: tuple[ElidedAttribute, ...] = SANITIZED_ATTRIBUTES
) -> str:
    """Replace every occurrence of the elided attributes by their marker."""
    for attribute in attributes:
        if "\n" in attribute.marker:
            raise ValueError(f"Marker must fit on one line: {attribute.marker!r}")
        text = text.replace(attribute.pattern, attribute.marker)
    return text


@contextmanager
def sanitized_idl_copy(
    idl_path: Path, attributes: tuple[ElidedAttribute, ...] = SANITIZED_ATTRIBUTES
) -> Iterator[Path]:
    """Yield the path of a sanitized copy of idl_path.

    The copy lives in its own temporary directory, which is removed when the
    block exits, whether it exits normally or by an exception. Bytes are
    preserved outside of the elided attributes, line endings and invalid
    UTF-8 sequences included.
    """
    idl_path = Path(idl_path)
    source = idl_path.read_bytes().decode("utf-8", errors="surrogateescape")
    with tempfile.TemporaryDirectory(prefix=SANITIZED_IDL_DIR_PREFIX) as tmp_dir:
        sanitized = Path(tmp_dir) / idl_path.name
        cleaned = sanitize_idl(source, attributes)
        sanitized.write_bytes(cleaned.encode("utf-8", errors="surrogateescape"))
        yield sanitized


# ===--- Generator invocation ---=== #

GENERATOR_RENAMES: tuple[str, ...] = (
    # WRAPPED_, MAP_ and FREE_ functions are exposed without their prefix
    # (see postjs.js).
    "s/WRAPPED_//",
    "s/MAP_//",
    "s/FREE_//",
    # CLONE_* functions are all exposed as clone (see postjs.js and
    # update-bindings.js).
    "s/CLONE_.*/clone/",
)


@dataclass(frozen=True)
class GeneratorOptions:
    """Frozen option set passed to "webidl-tools flow".

    Attributes:
        output_dir: Directory receiving one declaration file per interface.
        module_name: Name of the module class holding free functions.
        interface_prefix: Prefix of every declared class, so bindings are
            easy to recognise in the IDE codebase ("gd" -> gdProject).
        add_delete_operation: Declare delete() on every class (see postjs.js).
        add_emscripten_ptr_attribute: Declare ptr on every class, as the IDE
            reads it directly.
        uncapitalize_operations: UpperCamelCase -> lowerCamelCase operations.
        static_operation_prefix: Prefix marking static operations in the IDL.
        renames: sed-like rename expressions applied to operation names.
    """

    output_dir: Path
    module_name: str = "libGDevelop"
    interface_prefix: str = "gd"
    add_delete_operation: bool = True
    add_emscripten_ptr_attribute: bool = True
    uncapitalize_operations: bool = True
    static_operation_prefix: str = "STATIC_"
    renames: tuple[str, ...] = GENERATOR_RENAMES


@dataclass(frozen=True)
class GeneratorResult:
    exit_code: int
    stdout: str
    stderr: str
    timed_out: bool = False


Generator = Callable[[Path, GeneratorOptions], GeneratorResult]
"""Anything turning a sanitized IDL file into declaration files.

Called once per run with the sanitized IDL path and the frozen options;
must not return before every declaration file is written."""


def build_generator_arguments(idl_file: Path, options: GeneratorOptions) -> list[str]:
    args = [
        "--out",
        str(options.output_dir),
        "--module-name",
        options.module_name,
        "--prefix-interfaces",
        options.interface_prefix,
    ]
    if options.add_delete_operation:
        args.append("--add-delete-operation")
    if options.add_emscripten_ptr_attribute:
        args.append("--add-emscripten-ptr-attribute")
    if options.uncapitalize_operations:
        args.append("--uncapitalize-operations")
    if options.static_operation_prefix:
        args.extend(["--static-operation-prefix", options.static_operation_prefix])
    for rename in options.renames:
        args.extend(["--rename", rename])
    args.append(str(idl_file))
    return args


def _as_text(stream: str | bytes | None) -> str:
    if stream is None:
        return ""
    if isinstance(stream, bytes):
        return stream.decode("utf-8", errors="replace")
    return stream


@dataclass(frozen=True)
class SubprocessGenerator:
    """Runs webidl-tools flow as a child process and waits for it.

    A process still running after timeout seconds is killed and reported
    with timed_out=True. A missing interpreter surfaces as OSError.
    """

    script: Path
    node: str = DEFAULT_NODE
    timeout: float | None = DEFAULT_TIMEOUT
    cwd: Path | None = None

    def command(self, idl_file: Path, options: GeneratorOptions) -> list[str]:
        return [self.node, str(self.script), *build_generator_arguments(idl_file, options)]

    def __call__(self, idl_file: Path, options: GeneratorOptions) -> GeneratorResult:
        try:
            completed = subprocess.run(
                self.command(idl_file, options),
                cwd=self.cwd,
                capture_output=True,
                text=True,
                check=False,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as err:
            return GeneratorResult(
                exit_code=-1,
                stdout=_as_text(err.stdout),
                stderr=_as_text(err.stderr),
                timed_out=True,
            )
        return GeneratorResult(
            exit_code=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )


# ===--- Output validation ---=== #

_GENERATOR_HINT = (
    'Is Bindings.idl improperly formatted, or using a syntax not understood by '
    '"webidl-tools flow"?'
)


def validate_generator_output(
    result: GeneratorResult, max_stdout: int = MAX_GENERATOR_STDOUT
) -> None:
    """Gate between generation and patching.

    The exit code of webidl-tools flow is not fully trustworthy: on input it
    half understands it prints warnings and still exits 0. Clean runs are
    almost silent, so a long stdout is treated as a failure too.

    Raises:
        PipelineError: GENERATOR_TIMED_OUT, GENERATOR_ERRORED or
            GENERATOR_OUTPUT_SUSPICIOUS, checked in that order.
    """
    if result.timed_out:
        raise PipelineError(
            "GENERATOR_TIMED_OUT",
            '"webidl-tools flow" did not finish in time and was killed.',
            "Raise --timeout if the machine is slow, otherwise check for a hang.",
        )
    if result.exit_code != 0:
        raise PipelineError(
            "GENERATOR_ERRORED",
            f'"webidl-tools flow" errored (exit code {result.exit_code}).',
            _GENERATOR_HINT,
        )
    if len(result.stdout) > max_stdout:
        raise PipelineError(
            "GENERATOR_OUTPUT_SUSPICIOUS",
            f'The output of "webidl-tools flow" is suspiciously long '
            f"({len(result.stdout)} characters, limit {max_stdout}). "
            "Considering as an error.",
            _GENERATOR_HINT,
        )


# ===--- Patch rules ---=== #

EDIT_CREATE = "create"
EDIT_INSERT_AFTER = "insert_after"
EDIT_INSERT_BEFORE = "insert_before"
EDIT_REPLACE = "replace"
VALID_EDITS = {EDIT_CREATE, EDIT_INSERT_AFTER, EDIT_INSERT_BEFORE, EDIT_REPLACE}

Anchor = str | re.Pattern[str]


def _is_glob(target: str) -> bool:
    return any(ch in target for ch in "*?[")


@dataclass(frozen=True)
class PatchRule:
    """One declarative edit of the generated declarations.

    Attributes:
        name: Unique, human-readable identifier, e.g. "extends:gdProject".
        phase: Rules run in ascending phase order (stable for equal phases).
        target: Artifact file name, or a glob, relative to the output dir.
            create rules need a plain file name.
        edit: One of VALID_EDITS.
        content: Text written (create), inserted (insert_after,
            insert_before) or substituted (replace). Inserted verbatim: no
            regex back-references are expanded.
        anchor: Exact substring or compiled pattern locating the edit. Every
            match is edited. None for create rules.

    Replace rules must not reproduce their own anchor, so that a second
    application finds nothing to do.
    """

    name: str
    phase: int
    target: str
    edit: str
    content: str
    anchor: Anchor | None = None

    def __post_init__(self):
        if self.edit not in VALID_EDITS:
            raise ValueError(f"Rule {self.name}: unknown edit {self.edit!r}")
        if self.edit == EDIT_CREATE:
            if self.anchor is not None:
                raise ValueError(f"Rule {self.name}: create rules take no anchor")
            if _is_glob(self.target):
                raise ValueError(f"Rule {self.name}: create needs a file name")
            return
        if not self.anchor:
            raise ValueError(f"Rule {self.name}: {self.edit} needs an anchor")
        if self.edit == EDIT_REPLACE and _anchor_matches(self.anchor, self.content):
            raise ValueError(
                f"Rule {self.name}: replacement reproduces its own anchor"
            )


def _anchor_pattern(anchor: Anchor) -> re.Pattern[str]:
    if isinstance(anchor, re.Pattern):
        return anchor
    return re.compile(re.escape(anchor))


def _anchor_matches(anchor: Anchor, text: str) -> bool:
    return _anchor_pattern(anchor).search(text) is not None


# ===--- Patch application ---=== #

STATUS_CREATED = "created"
STATUS_APPLIED = "applied"
STATUS_ALREADY_APPLIED = "already_applied"
STATUS_ANCHOR_MISSED = "anchor_missed"
STATUS_ARTIFACT_MISSING = "artifact_missing"
# A glob artifact without the anchor, while another matched artifact has it.
STATUS_NOT_APPLICABLE = "not_applicable"
MISS_STATUSES = {STATUS_ANCHOR_MISSED, STATUS_ARTIFACT_MISSING}


@dataclass(frozen=True)
class RuleOutcome:
    """What one rule did to one artifact.

    Attributes:
        rule: The applied rule.
        artifact: File name of the artifact, or the rule target when no
            artifact matched.
        status: One of the STATUS_* constants.
        edits: Number of anchor matches edited (0 unless status is applied).
    """

    rule: PatchRule
    artifact: str
    status: str
    edits: int = 0

    @property
    def missed(self) -> bool:
        return self.status in MISS_STATUSES


@dataclass(frozen=True)
class PatchReport:
    """Every rule outcome of one catalog application, in application order."""

    output_dir: Path
    outcomes: tuple[RuleOutcome, ...]

    @property
    def misses(self) -> tuple[RuleOutcome, ...]:
        return tuple(o for o in self.outcomes if o.missed)

    @property
    def changed_artifacts(self) -> tuple[str, ...]:
        changed = {
            o.artifact
            for o in self.outcomes
            if o.status in (STATUS_CREATED, STATUS_APPLIED)
        }
        return tuple(sorted(changed))

    def count(self, status: str) -> int:
        return sum(1 for o in self.outcomes if o.status == status)


def patch_text(text: str, rule: PatchRule) -> tuple[str, str, int]:
    """Apply an anchored rule to text.

    Pure function: no file access. Insertions skip the anchor matches
    already carrying their content (right after the match for insert_after,
    or anywhere before the next match, since several rules may insert after
    one class header); a replace rule whose anchor is gone but
    whose replacement is present is reported as already applied.

    Args:
        text: Current artifact content.
        rule: A rule whose edit is not create.

    Returns:
        (new_text, status, edits) where status is applied, already_applied
        or anchor_missed.
    """
    if rule.edit == EDIT_CREATE:
        raise ValueError(f"Rule {rule.name}: create rules do not patch text")

    spans = [m.span() for m in _anchor_pattern(rule.anchor).finditer(text)]
    if not spans:
        if rule.edit == EDIT_REPLACE and rule.content in text:
            return text, STATUS_ALREADY_APPLIED, 0
        return text, STATUS_ANCHOR_MISSED, 0

    pieces: list[str] = []
    last = 0
    edits = 0
    for index, (start, end) in enumerate(spans):
        if rule.edit == EDIT_REPLACE:
            pieces.append(text[last:start])
            pieces.append(rule.content)
            last = end
        elif rule.edit == EDIT_INSERT_AFTER:
            block_end = spans[index + 1][0] if index + 1 < len(spans) else len(text)
            if rule.content in text[end:block_end]:
                continue
            pieces.append(text[last:end])
            pieces.append(rule.content)
            last = end
        else:
            if text[:start].endswith(rule.content):
                continue
            pieces.append(text[last:start])
            pieces.append(rule.content)
            last = start
        edits += 1
    pieces.append(text[last:])

    if edits == 0:
        return text, STATUS_ALREADY_APPLIED, 0
    return "".join(pieces), STATUS_APPLIED, edits


def resolve_targets(rule: PatchRule, output_dir: Path) -> list[Path]:
    output_dir = Path(output_dir)
    if _is_glob(rule.target):
        return sorted(p for p in output_dir.glob(rule.target) if p.is_file())
    return [output_dir / rule.target]


def apply_rule(rule: PatchRule, output_dir: Path) -> list[RuleOutcome]:
    """Apply one rule to its artifact(s) in output_dir, in place.

    An absent artifact is reported as artifact_missing. A glob rule misses
    only when none of its artifacts contains the anchor; otherwise the
    artifacts without it are not_applicable. Every other filesystem failure
    propagates.

    Raises:
        OSError: Read or write failure on an existing artifact.
    """
    output_dir = Path(output_dir)
    if rule.edit == EDIT_CREATE:
        output_dir.mkdir(parents=True, exist_ok=True)
        (output_dir / rule.target).write_text(rule.content, encoding="utf-8")
        return [RuleOutcome(rule=rule, artifact=rule.target, status=STATUS_CREATED)]

    targets = resolve_targets(rule, output_dir)
    if not targets:
        return [
            RuleOutcome(rule=rule, artifact=rule.target, status=STATUS_ARTIFACT_MISSING)
        ]

    outcomes: list[RuleOutcome] = []
    for path in targets:
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            outcomes.append(
                RuleOutcome(rule=rule, artifact=path.name, status=STATUS_ARTIFACT_MISSING)
            )
            continue
        new_text, status, edits = patch_text(text, rule)
        if new_text != text:
            path.write_text(new_text, encoding="utf-8")
        outcomes.append(
            RuleOutcome(rule=rule, artifact=path.name, status=status, edits=edits)
        )
    if _is_glob(rule.target):
        return _fold_glob_misses(rule, outcomes)
    return outcomes


def _fold_glob_misses(rule: PatchRule, outcomes: list[RuleOutcome]) -> list[RuleOutcome]:
    if all(o.status == STATUS_ANCHOR_MISSED for o in outcomes):
        return [RuleOutcome(rule=rule, artifact=rule.target, status=STATUS_ANCHOR_MISSED)]
    return [
        replace(o, status=STATUS_NOT_APPLICABLE)
        if o.status == STATUS_ANCHOR_MISSED
        else o
        for o in outcomes
    ]


def order_rules(rules: tuple[PatchRule, ...]) -> tuple[PatchRule, ...]:
    return tuple(sorted(rules, key=lambda rule: rule.phase))


def apply_catalog(rules: tuple[PatchRule, ...], output_dir: Path) -> PatchReport:
    """Apply every rule, sorted by phase, to the artifacts in output_dir.

    Stops at the first OSError. Misses never stop the run here; see
    enforce_anchor_policy.
    """
    outcomes: list[RuleOutcome] = []
    for rule in order_rules(rules):
        outcomes.extend(apply_rule(rule, output_dir))
    return PatchReport(output_dir=Path(output_dir), outcomes=tuple(outcomes))


def format_miss(outcome: RuleOutcome) -> str:
    if outcome.status == STATUS_ARTIFACT_MISSING:
        return f"{outcome.rule.name}: no artifact matches {outcome.rule.target}"
    return f"{outcome.rule.name}: anchor not found in {outcome.artifact}"


def enforce_anchor_policy(report: PatchReport, strict: bool) -> None:
    if not strict or not report.misses:
        return
    names = ", ".join(o.rule.name for o in report.misses)
    raise PipelineError(
        "ANCHOR_MISSED",
        f"{len(report.misses)} patch rule(s) found nothing to patch: {names}",
        "The output format of webidl-tools flow probably changed; "
        "update the anchors of these rules.",
    )


# ===--- Patch catalog ---=== #
# Phases are spaced so that new rules can slot in between families.
# Enum constants and helpers are inserted after the class header, so they
# run before the header is rewritten by inheritance and renames. The
# notice runs last: it is anchored on every class header.

PHASE_ADHOC_TYPES = 10
PHASE_ENUMS = 20
PHASE_CONVENIENCE = 30
PHASE_CONTAINERS = 40
PHASE_INHERITANCE = 50
PHASE_RENAMES = 60
PHASE_SIGNATURES = 70
PHASE_ACCESSORS = 80
PHASE_NOTICE = 100

GENERATED_NOTICE = "// Automatically generated by GDevelop.js/tools/types-gen/gen_types.py"


def artifact_filename(class_name: str) -> str:
    """File written by webidl-tools flow for a declared class."""
    return f"{class_name.lower()}.js"


def class_header(class_name: str) -> str:
    return f"declare class {class_name} {{"


def _member_lines(lines: tuple[str, ...]) -> str:
    return "".join(f"\n  {line}" if line else "\n" for line in lines)


# Ad-hoc types

ADHOC_TYPES_FILENAME = "other-adhoc-types.js"
ADHOC_TYPE_DECLARATIONS: tuple[str, ...] = (
    "declare type gdSerializable = any;",
    "declare type gdEmscriptenObject = {",
    "  ptr: number;",
    "};",
)


def adhoc_type_rules() -> tuple[PatchRule, ...]:
    content = "\n".join((GENERATED_NOTICE, *ADHOC_TYPE_DECLARATIONS)) + "\n"
    return (
        PatchRule(
            name="adhoc-types",
            phase=PHASE_ADHOC_TYPES,
            target=ADHOC_TYPES_FILENAME,
            edit=EDIT_CREATE,
            content=content,
        ),
    )


# Enums


@dataclass(frozen=True)
class EnumSpec:
    """A C++ enum the IDL only exposes as integer constants on a class.

    Attributes:
        class_name: Declared class owning the enum, e.g. "gdVariable".
        alias: Name of the standalone union-of-literals type, or None when
            the IDE never names the enum.
        members: Enumerator names; the value of each is its index.
        inject_members: Declare the enumerators as static constants.
    """

    class_name: str
    alias: str | None
    members: tuple[str, ...]
    inject_members: bool = True


ENUMS: tuple[EnumSpec, ...] = (
    EnumSpec(
        "gdEventsFunction",
        "EventsFunction_FunctionType",
        (
            "Action",
            "Condition",
            "Expression",
            "ExpressionAndCondition",
            "ActionWithOperator",
        ),
    ),
    EnumSpec(
        "gdEventsFunctionsContainer",
        "EventsFunctionsContainer_FunctionOwner",
        ("Extension", "Object", "Behavior"),
        inject_members=False,
    ),
    EnumSpec(
        "gdVariable",
        "Variable_Type",
        ("Unknown", "String", "Number", "Boolean", "Structure", "Array"),
    ),
    EnumSpec(
        "gdVariablesContainer",
        "VariablesContainer_SourceType",
        (
            "Unknown",
            "Global",
            "Scene",
            "Object",
            "Local",
            "ExtensionGlobal",
            "ExtensionScene",
        ),
    ),
    EnumSpec(
        "gdObjectsContainersList",
        None,
        (
            "DoesNotExist",
            "Exists",
            "Number",
            "GroupIsEmpty",
            "ExistsOnlyOnSomeObjectsOfTheGroup",
        ),
    ),
    EnumSpec(
        "gdProjectDiagnostic",
        "ProjectDiagnostic_ErrorType",
        ("UndeclaredVariable", "MissingBehavior", "UnknownObject", "MismatchedObjectType"),
    ),
    EnumSpec(
        "gdExpressionCompletionDescription",
        "ExpressionCompletionDescription_CompletionKind",
        (
            "Object",
            "BehaviorWithPrefix",
            "ExpressionWithPrefix",
            "Variable",
            "TextWithPrefix",
            "Property",
            "Parameter",
        ),
    ),
    EnumSpec(
        "gdParticleEmitterObject",
        "ParticleEmitterObject_RendererType",
        ("Point", "Line", "Quad"),
    ),
)


def enum_rules(spec: EnumSpec) -> tuple[PatchRule, ...]:
    rules: list[PatchRule] = []
    if spec.alias is not None:
        values = " | ".join(str(value) for value in range(len(spec.members)))
        rules.append(
            PatchRule(
                name=f"enum-alias:{spec.alias}",
                phase=PHASE_ENUMS,
                target=f"{spec.alias.lower()}.js",
                edit=EDIT_CREATE,
                content=f"{GENERATED_NOTICE}\ntype {spec.alias} = {values}\n",
            )
        )
    if spec.inject_members:
        constants = tuple(
            f"static {name}: {value};" for value, name in enumerate(spec.members)
        )
        rules.append(
            PatchRule(
                name=f"enum-members:{spec.class_name}",
                phase=PHASE_ENUMS,
                target=artifact_filename(spec.class_name),
                edit=EDIT_INSERT_AFTER,
                anchor=class_header(spec.class_name),
                content=_member_lines(constants),
            )
        )
    return tuple(rules)


# Convenience functions added by hand to the bindings (see postjs.js)

MODULE_CLASS = "libGDevelop"

_OBJECT_LOOKUP_PARAMS = (
    "globalObjectsContainer: gdObjectsContainer, "
    "objectsContainer: gdObjectsContainer, objectName: string"
)

MODULE_HELPERS: tuple[str, ...] = (
    "getPointer(gdEmscriptenObject): number;",
    "castObject<T>(gdEmscriptenObject, Class<T>): T;",
    "compare(gdEmscriptenObject, gdEmscriptenObject): boolean;",
    "",
    f"getTypeOfObject({_OBJECT_LOOKUP_PARAMS}, searchInGroups: boolean): string;",
    f"getTypeOfBehavior({_OBJECT_LOOKUP_PARAMS}, searchInGroups: boolean): string;",
    f"getBehaviorsOfObject({_OBJECT_LOOKUP_PARAMS}, searchInGroups: boolean): gdVectorString;",
    f"isDefaultBehavior({_OBJECT_LOOKUP_PARAMS}, behaviorName: string, searchInGroups: boolean): boolean;",
    f"getTypeOfBehaviorInObjectOrGroup({_OBJECT_LOOKUP_PARAMS}, behaviorName: string, searchInGroups: boolean): string;",
    f"getBehaviorNamesInObjectOrGroup({_OBJECT_LOOKUP_PARAMS}, behaviorName: string, searchInGroups: boolean): gdVectorString;",
    "",
    "removeFromVectorParameterMetadata(gdVectorParameterMetadata, index: number): void;",
    "swapInVectorParameterMetadata(gdVectorParameterMetadata, oldIndex: number, newIndex: number): void;",
    "",
)

# (helper name, argument class, returned class)
MODULE_CASTS: tuple[tuple[tuple[str, str, str], ...], ...] = (
    (
        ("asStandardEvent", "gdBaseEvent", "gdStandardEvent"),
        ("asRepeatEvent", "gdBaseEvent", "gdRepeatEvent"),
        ("asWhileEvent", "gdBaseEvent", "gdWhileEvent"),
        ("asForEachEvent", "gdBaseEvent", "gdForEachEvent"),
        ("asForEachChildVariableEvent", "gdBaseEvent", "gdForEachChildVariableEvent"),
        ("asCommentEvent", "gdBaseEvent", "gdCommentEvent"),
        ("asGroupEvent", "gdBaseEvent", "gdGroupEvent"),
        ("asLinkEvent", "gdBaseEvent", "gdLinkEvent"),
        ("asJsCodeEvent", "gdBaseEvent", "gdJsCodeEvent"),
        ("asPlatform", "gdPlatform", "gdPlatform"),
    ),
    (
        ("asSpriteConfiguration", "gdObjectConfiguration", "gdSpriteObject"),
        ("asTiledSpriteConfiguration", "gdObjectConfiguration", "gdTiledSpriteObject"),
        ("asPanelSpriteConfiguration", "gdObjectConfiguration", "gdPanelSpriteObject"),
        ("asTextObjectConfiguration", "gdObjectConfiguration", "gdTextObject"),
        ("asShapePainterConfiguration", "gdObjectConfiguration", "gdShapePainterObject"),
        ("asAdMobConfiguration", "gdObjectConfiguration", "gdAdMobObject"),
        ("asTextEntryConfiguration", "gdObjectConfiguration", "gdTextEntryObject"),
        ("asParticleEmitterConfiguration", "gdObjectConfiguration", "gdParticleEmitterObject"),
        ("asObjectJsImplementation", "gdObjectConfiguration", "gdObjectJsImplementation"),
        ("asCustomObjectConfiguration", "gdObjectConfiguration", "gdCustomObjectConfiguration"),
        ("asModel3DConfiguration", "gdObjectConfiguration", "gdModel3DObjectConfiguration"),
        ("asSpineConfiguration", "gdObjectConfiguration", "gdSpineObjectConfiguration"),
    ),
    (("asImageResource", "gdResource", "gdImageResource"),),
)

SERIALIZER_HELPERS: tuple[str, ...] = (
    "static fromJSObject(object: Object): gdSerializerElement;",
    "static toJSObject(element: gdSerializerElement): any;",
)


def module_helper_lines() -> tuple[str, ...]:
    lines = list(MODULE_HELPERS)
    for group in MODULE_CASTS:
        lines.extend(f"{name}({arg}): {ret};" for name, arg, ret in group)
        lines.append("")
    return tuple(lines)


def convenience_rules() -> tuple[PatchRule, ...]:
    return (
        PatchRule(
            name=f"helpers:{MODULE_CLASS}",
            phase=PHASE_CONVENIENCE,
            target=artifact_filename(MODULE_CLASS),
            edit=EDIT_INSERT_AFTER,
            anchor=class_header(MODULE_CLASS),
            content=_member_lines(module_helper_lines()),
        ),
        PatchRule(
            name="helpers:gdSerializer",
            phase=PHASE_CONVENIENCE,
            target=artifact_filename("gdSerializer"),
            edit=EDIT_INSERT_AFTER,
            anchor=class_header("gdSerializer"),
            content=_member_lines(SERIALIZER_HELPERS),
        ),
    )


# Vector wrappers

CONTAINER_HELPERS: tuple[tuple[str, str], ...] = (
    ("gdVectorString", "toJSArray(): Array<string>;"),
    ("gdVectorInt", "toJSArray(): Array<number>;"),
    ("gdInstructionsList", "push_back(gdInstruction): void;"),
)


def container_rules() -> tuple[PatchRule, ...]:
    return tuple(
        PatchRule(
            name=f"container:{class_name}",
            phase=PHASE_CONTAINERS,
            target=artifact_filename(class_name),
            edit=EDIT_INSERT_AFTER,
            anchor=class_header(class_name),
            content=_member_lines((declaration,)),
        )
        for class_name, declaration in CONTAINER_HELPERS
    )


# Inheritance not expressed in Bindings.idl.
# TODO: express these in Bindings.idl using "implements" and drop the rules.

EVENT_CLASSES: tuple[str, ...] = (
    "gdStandardEvent",
    "gdRepeatEvent",
    "gdWhileEvent",
    "gdForEachEvent",
    "gdCommentEvent",
    "gdGroupEvent",
    "gdLinkEvent",
    "gdJsCodeEvent",
)

INHERITANCE_EDGES: tuple[tuple[str, str], ...] = (
    ("gdProject", "gdObjectsContainer"),
    ("gdLayout", "gdObjectsContainer"),
    ("gdEventsBasedObject", "gdObjectsContainer"),
    ("gdEventsFunctionsExtension", "gdEventsFunctionsContainer"),
    ("gdObjectJsImplementation", "gdObjectConfiguration"),
    ("gdCustomObjectConfiguration", "gdObjectConfiguration"),
    ("gdBehaviorJsImplementation", "gdBehavior"),
    ("gdBehaviorSharedDataJsImplementation", "gdBehaviorsSharedData"),
    ("gdJsPlatform", "gdPlatform"),
    ("gdExpressionValidator", "gdExpressionParser2NodeWorker"),
    ("gdHighestZOrderFinder", "gdInitialInstanceFunctor"),
    ("gdAbstractFileSystemJS", "gdAbstractFileSystem"),
) + tuple((event_class, "gdBaseEvent") for event_class in EVENT_CLASSES)


def inheritance_rule(class_name: str, base_name: str) -> PatchRule:
    return PatchRule(
        name=f"extends:{class_name}",
        phase=PHASE_INHERITANCE,
        target=artifact_filename(class_name),
        edit=EDIT_REPLACE,
        anchor=class_header(class_name),
        content=f"declare class {class_name} extends {base_name} {{",
    )


# Classes from GDJS, whose names clash with GDCore ones.

CLASS_RENAMES: tuple[tuple[str, str], ...] = (("gdExporter", "gdjsExporter"),)


def rename_rules() -> tuple[PatchRule, ...]:
    return tuple(
        PatchRule(
            name=f"rename:{old}",
            phase=PHASE_RENAMES,
            target=artifact_filename(old),
            edit=EDIT_REPLACE,
            anchor=class_header(old),
            content=class_header(new),
        )
        for old, new in CLASS_RENAMES
    )


# Signatures

RESOURCE_KINDS: tuple[str, ...] = (
    "image",
    "audio",
    "font",
    "video",
    "json",
    "tilemap",
    "tileset",
    "model3D",
    "atlas",
    "spine",
)

# No parameter is ever optional once compiled by Emscripten, but passing
# undefined is tolerated for these.
REQUIRED_PARAMETER_SIGNATURE = (
    "type: string, description: string, "
    "optionalObjectType: string, parameterIsOptional: boolean"
)
OPTIONAL_PARAMETER_SIGNATURE = (
    "type: string, description: string, "
    "optionalObjectType?: string, parameterIsOptional?: boolean"
)
METADATA_WITH_PARAMETERS: tuple[str, ...] = (
    "gdInstructionMetadata",
    "gdExpressionMetadata",
    "gdMultipleInstructionMetadata",
)


def literal_union(values: tuple[str, ...]) -> str:
    return " | ".join(f"'{value}'" for value in values)


def signature_rules() -> tuple[PatchRule, ...]:
    kinds = literal_union(RESOURCE_KINDS)
    resource = artifact_filename("gdResource")
    rules = [
        PatchRule(
            name="kind:gdResource.setKind",
            phase=PHASE_SIGNATURES,
            target=resource,
            edit=EDIT_REPLACE,
            anchor=re.compile(r"setKind\(kind: string\): void"),
            content=f"setKind(kind: {kinds}): void",
        ),
        PatchRule(
            name="kind:gdResource.getKind",
            phase=PHASE_SIGNATURES,
            target=resource,
            edit=EDIT_REPLACE,
            anchor=re.compile(r"getKind\(\): string"),
            content=f"getKind(): {kinds}",
        ),
    ]
    rules.extend(
        PatchRule(
            name=f"optional-parameters:{class_name}",
            phase=PHASE_SIGNATURES,
            target=artifact_filename(class_name),
            edit=EDIT_REPLACE,
            anchor=REQUIRED_PARAMETER_SIGNATURE,
            content=OPTIONAL_PARAMETER_SIGNATURE,
        )
        for class_name in METADATA_WITH_PARAMETERS
    )
    return tuple(rules)


# Accessors added by Emscripten for attributes, which the generator skips.

ATTRIBUTE_ACCESSORS: tuple[tuple[str, str, str], ...] = (
    ("gdVector2f", "x", "number"),
    ("gdVector2f", "y", "number"),
)


def accessor_rules() -> tuple[PatchRule, ...]:
    return tuple(
        PatchRule(
            name=f"accessors:{class_name}.{attribute}",
            phase=PHASE_ACCESSORS,
            target=artifact_filename(class_name),
            edit=EDIT_INSERT_AFTER,
            anchor=re.compile(rf"\b{re.escape(attribute)}: {re.escape(flow_type)};"),
            content=_member_lines(
                (
                    f"set_{attribute}({flow_type}): void;",
                    f"get_{attribute}(): {flow_type};",
                )
            ),
        )
        for class_name, attribute, flow_type in ATTRIBUTE_ACCESSORS
    )


def notice_rules() -> tuple[PatchRule, ...]:
    return (
        PatchRule(
            name="notice",
            phase=PHASE_NOTICE,
            target="*.js",
            edit=EDIT_INSERT_BEFORE,
            anchor="declare class",
            content=GENERATED_NOTICE + "\n",
        ),
    )


def build_patch_catalog() -> tuple[PatchRule, ...]:
    rules: list[PatchRule] = []
    rules.extend(adhoc_type_rules())
    for spec in ENUMS:
        rules.extend(enum_rules(spec))
    rules.extend(convenience_rules())
    rules.extend(container_rules())
    rules.extend(inheritance_rule(cls, base) for cls, base in INHERITANCE_EDGES)
    rules.extend(rename_rules())
    rules.extend(signature_rules())
    rules.extend(accessor_rules())
    rules.extend(notice_rules())

    names = [rule.name for rule in rules]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise ValueError(f"Duplicate patch rule names: {', '.join(duplicates)}")
    return order_rules(tuple(rules))


PATCH_CATALOG: tuple[PatchRule, ...] = build_patch_catalog()


# ===--- Rule listing ---=== #


def filter_rules_by_text(
    rules: tuple[PatchRule, ...], filter_text: str | None
) -> tuple[PatchRule, ...]:
    """Case-insensitive substring match on rule name and target."""
    if not filter_text:
        return rules
    needle = filter_text.lower()
    return tuple(
        rule
        for rule in rules
        if needle in rule.name.lower() or needle in rule.target.lower()
    )


def format_rules_table(rules: tuple[PatchRule, ...]) -> str:
    if not rules:
        return "No patch rules match.\n"
    name_width = max(len(rule.name) for rule in rules)
    edit_width = max(len(rule.edit) for rule in rules)
    lines = [f"  {'Phase':>5}  {'Rule':<{name_width}}  {'Edit':<{edit_width}}  Target"]
    for rule in rules:
        lines.append(
            f"  {rule.phase:>5}  {rule.name:<{name_width}}  "
            f"{rule.edit:<{edit_width}}  {rule.target}"
        )
    lines.append("")
    lines.append(f"  {len(rules)} rules")
    return "\n".join(lines) + "\n"


def run_list_rules(
    config: ListRulesConfig, rules: tuple[PatchRule, ...] = PATCH_CATALOG
) -> None:
    print(format_rules_table(filter_rules_by_text(rules, config.filter_text)), end="")


# ===--- Pipeline ---=== #


@dataclass(frozen=True)
class PipelineResult:
    generator: GeneratorResult
    report: PatchReport


def build_generator(config: GenerateConfig) -> SubprocessGenerator:
    return SubprocessGenerator(
        script=config.generator, node=config.node, timeout=config.timeout
    )


def run_generate(
    config: GenerateConfig,
    generator: Generator | None = None,
    rules: tuple[PatchRule, ...] = PATCH_CATALOG,
) -> PipelineResult:
    """Execute the complete pipeline for a GenerateConfig.

    sanitize -> generate -> validate -> patch. The sanitized IDL copy is
    removed as soon as the generator returns, before validation. Nothing is
    patched unless the validation gate passes.

    Args:
        config: Validated GenerateConfig from build_config.
        generator: Replaces the webidl-tools flow subprocess (tests).
        rules: Patch catalog to apply.

    Returns:
        PipelineResult with the generator result and the patch report.

    Raises:
        PipelineError: Generator failure, or anchor misses in strict mode.
        OSError: IDL not readable or declaration file read/write failure.
    """
    if generator is None:
        generator = build_generator(config)
    options = GeneratorOptions(output_dir=config.output_dir)

    print(f"Sanitizing: {config.idl}")
    config.output_dir.mkdir(parents=True, exist_ok=True)
    with sanitized_idl_copy(config.idl) as idl_file:
        print(f"  Generating: webidl-tools flow -> {config.output_dir}")
        result = generator(idl_file, options)
    print(
        f"  Generator: exit code {result.exit_code}, "
        f"{len(result.stdout)} characters of output"
    )

    validate_generator_output(result, config.max_stdout)

    report = apply_catalog(rules, config.output_dir)
    for outcome in report.misses:
        print(f"  Warning: {format_miss(outcome)}")
    enforce_anchor_policy(report, config.strict_anchors)

    print_patch_report(report)
    return PipelineResult(generator=result, report=report)


# ===--- Summary report ---=== #


def format_patch_report(report: PatchReport) -> str:
    """Render the post-patch console summary. One trailing newline."""
    rule_count = len({o.rule.name for o in report.outcomes})
    lines = [
        "libGDevelop types generated:",
        "",
        f"  Output:     {report.output_dir}",
        f"  Rules:      {rule_count}",
        f"    Created:          {report.count(STATUS_CREATED):>4}",
        f"    Applied:          {report.count(STATUS_APPLIED):>4}",
        f"    Already applied:  {report.count(STATUS_ALREADY_APPLIED):>4}",
        f"    Not applicable:   {report.count(STATUS_NOT_APPLICABLE):>4}",
        f"    Missed:           {len(report.misses):>4}",
        f"  Artifacts changed: {len(report.changed_artifacts)}",
        "",
    ]
    return "\n".join(lines)


def print_patch_report(report: PatchReport) -> None:
    print(format_patch_report(report), end="")


# ===--- Main ---=== #


def main(argv: list[str] | None = None) -> None:
    try:
        config = build_config(argv)
    except ConfigError as err:
        print(f"Config error [{err.code}]: {err.message}")
        if err.suggestion:
            print(f"Hint: {err.suggestion}")
        raise SystemExit(1) from err

    if isinstance(config, ListRulesConfig):
        run_list_rules(config)
        return

    try:
        run_generate(config)
    except PipelineError as err:
        print(f"Pipeline error [{err.code}]: {err.message}")
        if err.suggestion:
            print(f"Hint: {err.suggestion}")
        raise SystemExit(1) from err
    except OSError as err:
        print(f"Error: {err}")
        raise SystemExit(1) from err
    except ValueError as err:
        print(f"Internal error: {err}")
        raise SystemExit(1) from err


if __name__ == "__main__":
    main()
