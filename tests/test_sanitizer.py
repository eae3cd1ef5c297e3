from pathlib import Path

import pytest

import gen_types


_IDL = (
    "interface VectorString {\n"
    "  void VectorString();\n"
    "};\n"
    '[Prefix="gdjs::"]\n'
    "interface Exporter {\n"
    "  void Exporter([Ref] AbstractFileSystem fs, [Const] DOMString gdjsRoot);\n"
    "};\n"
    '[Prefix="gd::InstructionMetadata::"] enum ValueTypeKind {\n'
    '  "Number"\n'
    "};\n"
)


@pytest.mark.parametrize("attribute", gen_types.SANITIZED_ATTRIBUTES)
def test_sanitize_idl_removes_pattern_and_keeps_line_count(
    attribute: gen_types.ElidedAttribute,
) -> None:
    text = f"{attribute.pattern}\ninterface A {{}};\n{attribute.pattern} interface B {{}};\n"

    sanitized = gen_types.sanitize_idl(text)

    assert attribute.pattern not in sanitized
    assert sanitized.count(attribute.marker) == 2
    assert len(sanitized.splitlines()) == len(text.splitlines())


def test_sanitize_idl_only_touches_attributes() -> None:
    sanitized = gen_types.sanitize_idl(_IDL)

    expected = _IDL.replace(
        '[Prefix="gdjs::"]', "/* Removed gdjs prefix */"
    ).replace(
        '[Prefix="gd::InstructionMetadata::"]',
        "/* Removed gd::InstructionMetadata prefix */",
    )
    assert sanitized == expected
    assert "[Ref] AbstractFileSystem fs" in sanitized
    assert sanitized.index("interface VectorString") < sanitized.index(
        "interface Exporter"
    )


def test_sanitize_idl_without_patterns_is_identity() -> None:
    text = "interface Widget {\n  attribute long value;\n};\n"

    assert gen_types.sanitize_idl(text) == text


def test_sanitize_idl_rejects_multiline_marker() -> None:
    attribute = gen_types.ElidedAttribute("[Foo]", "/*\n*/")

    with pytest.raises(ValueError):
        gen_types.sanitize_idl("[Foo] interface A {};", (attribute,))


def test_sanitized_idl_copy_writes_sanitized_file_and_cleans_up(
    tmp_path: Path,
) -> None:
    idl = tmp_path / "Bindings.idl"
    idl.write_text(_IDL, encoding="utf-8")

    with gen_types.sanitized_idl_copy(idl) as copy:
        assert copy.name == "Bindings.idl"
        assert copy.parent.name.startswith(gen_types.SANITIZED_IDL_DIR_PREFIX)
        assert copy.read_text(encoding="utf-8") == gen_types.sanitize_idl(_IDL)
        copy_dir = copy.parent

    assert not copy_dir.exists()
    assert idl.read_text(encoding="utf-8") == _IDL


def test_sanitized_idl_copy_cleans_up_on_error(tmp_path: Path) -> None:
    idl = tmp_path / "Bindings.idl"
    idl.write_text(_IDL, encoding="utf-8")
    copy_dir = None

    with pytest.raises(RuntimeError):
        with gen_types.sanitized_idl_copy(idl) as copy:
            copy_dir = copy.parent
            raise RuntimeError("generator crashed")

    assert copy_dir is not None
    assert not copy_dir.exists()


def test_sanitized_idl_copy_preserves_crlf_line_endings(tmp_path: Path) -> None:
    idl = tmp_path / "Bindings.idl"
    idl.write_bytes(b'[Prefix="gdjs::"]\r\ninterface Exporter {};\r\n')

    with gen_types.sanitized_idl_copy(idl) as copy:
        content = copy.read_bytes()

    assert content == b"/* Removed gdjs prefix */\r\ninterface Exporter {};\r\n"


def test_sanitized_idl_copy_keeps_invalid_utf8_bytes(tmp_path: Path) -> None:
    idl = tmp_path / "Bindings.idl"
    idl.write_bytes(b'[Prefix="gdjs::"]\ninterface Exporter {}; // caf\xe9\n')

    with gen_types.sanitized_idl_copy(idl) as copy:
        content = copy.read_bytes()

    assert content == b"/* Removed gdjs prefix */\ninterface Exporter {}; // caf\xe9\n"


def test_sanitized_idl_copy_missing_source_raises_os_error(tmp_path: Path) -> None:
    with pytest.raises(OSError):
        with gen_types.sanitized_idl_copy(tmp_path / "missing.idl"):
            pass
