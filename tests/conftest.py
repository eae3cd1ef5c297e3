import argparse
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

GENERATOR_DIR = Path(__file__).resolve().parent.parent
if str(GENERATOR_DIR) not in sys.path:
    sys.path.insert(0, str(GENERATOR_DIR))

import gen_types  # noqa: E402


class FakeGenerator:
    """In-process stand-in for webidl-tools flow.

    Writes the given artifacts into the requested output directory and
    records what it was called with.
    """

    def __init__(
        self,
        artifacts: dict[str, str],
        exit_code: int = 0,
        stdout: str = "",
        timed_out: bool = False,
    ):
        self.artifacts = artifacts
        self.exit_code = exit_code
        self.stdout = stdout
        self.timed_out = timed_out
        self.calls: list[tuple[Path, str, gen_types.GeneratorOptions]] = []

    def __call__(
        self, idl_file: Path, options: gen_types.GeneratorOptions
    ) -> gen_types.GeneratorResult:
        self.calls.append((idl_file, idl_file.read_text(encoding="utf-8"), options))
        options.output_dir.mkdir(parents=True, exist_ok=True)
        for filename, content in self.artifacts.items():
            (options.output_dir / filename).write_text(content, encoding="utf-8")
        return gen_types.GeneratorResult(
            exit_code=self.exit_code,
            stdout=self.stdout,
            stderr="",
            timed_out=self.timed_out,
        )


@pytest.fixture
def existing_paths(tmp_path: Path) -> dict[str, Path]:
    idl = tmp_path / "Bindings.idl"
    idl.write_text(
        '[Prefix="gdjs::"]\n'
        "interface Exporter {\n"
        "  void Exporter([Ref] AbstractFileSystem fs);\n"
        "};\n"
        "interface Widget {\n"
        "  attribute long value;\n"
        "};\n",
        encoding="utf-8",
    )

    generator = tmp_path / "webidl-tools-flow"
    generator.write_text("#!/usr/bin/env node\n", encoding="utf-8")

    output_dir = tmp_path / "types"
    return {"idl": idl, "generator": generator, "output_dir": output_dir}


@pytest.fixture
def make_args(existing_paths: dict[str, Path]) -> Callable[..., argparse.Namespace]:
    def _make_args(**overrides: object) -> argparse.Namespace:
        base_args: dict[str, object] = {
            "idl": existing_paths["idl"],
            "output_dir": existing_paths["output_dir"],
            "generator": existing_paths["generator"],
            "node": "node",
            "timeout": gen_types.DEFAULT_TIMEOUT,
            "max_stdout": gen_types.MAX_GENERATOR_STDOUT,
            "strict_anchors": False,
            "list_rules": False,
            "filter": None,
        }
        base_args.update(overrides)
        return argparse.Namespace(**base_args)

    return _make_args


@pytest.fixture
def make_config(
    existing_paths: dict[str, Path],
) -> Callable[..., gen_types.GenerateConfig]:
    def _make_config(**overrides: object) -> gen_types.GenerateConfig:
        base: dict[str, object] = {
            "idl": existing_paths["idl"],
            "output_dir": existing_paths["output_dir"],
            "generator": existing_paths["generator"],
            "node": "node",
            "timeout": 5.0,
            "max_stdout": gen_types.MAX_GENERATOR_STDOUT,
            "strict_anchors": False,
        }
        base.update(overrides)
        return gen_types.GenerateConfig(**base)

    return _make_config


@pytest.fixture
def make_fake_generator() -> Callable[..., FakeGenerator]:
    def _make_fake_generator(
        artifacts: dict[str, str] | None = None,
        *,
        exit_code: int = 0,
        stdout: str = "",
        timed_out: bool = False,
    ) -> FakeGenerator:
        return FakeGenerator(
            {} if artifacts is None else artifacts,
            exit_code=exit_code,
            stdout=stdout,
            timed_out=timed_out,
        )

    return _make_fake_generator


@pytest.fixture
def write_artifact(tmp_path: Path) -> Callable[[str, str], Path]:
    output_dir = tmp_path / "types"

    def _write_artifact(filename: str, content: str) -> Path:
        output_dir.mkdir(parents=True, exist_ok=True)
        path = output_dir / filename
        path.write_text(content, encoding="utf-8")
        return path

    return _write_artifact
