from __future__ import annotations

import pytest
import yaml

from mbuild.modules import meta
from mbuild.modules.errors import MetaError
from mbuild.modules.target import Platform, TargetTag


def test_empty_declaration_is_agnostic_library():
    decl = meta.validate_meta(None, "module.meta")
    assert decl.name is None
    assert decl.dependencies == ()
    assert decl.modules is None
    assert not decl.target.platforms
    assert not decl.target.is_executable()


def test_executable_list_implies_supported_platforms():
    decl = meta.validate_meta({"executable": ["web"], "target": {"platforms": ["desktop"]}}, "m")
    assert decl.target.platforms == {Platform.DESKTOP, Platform.WEB}
    assert decl.target.executable_platforms == {Platform.WEB}


def test_executable_true_uses_declared_platforms():
    decl = meta.validate_meta({"executable": True, "target": {"platforms": ["desktop", "native"]}}, "m")
    assert decl.target.executable_platforms == {Platform.DESKTOP, Platform.NATIVE}


def test_executable_true_without_platforms_fails():
    with pytest.raises(MetaError, match="target.platforms"):
        meta.validate_meta({"executable": True}, "m")


@pytest.mark.parametrize("data", [
    {"target": {"platforms": ["mainframe"]}},
    {"target": {"tags": ["hologram"]}},
    {"target": ["desktop"]},
    {"aggregate": "yes"},
    {"dependencies": {"a": 1}},
    ["not", "a", "map"],
])
def test_invalid_declarations(data):
    with pytest.raises(MetaError):
        meta.validate_meta(data, "m")


def test_tags_and_lists():
    decl = meta.validate_meta({
        "name": "mobile",
        "version": 2,
        "target": {"platforms": ["native"], "tags": ["native-mobile", "android"]},
        "dependencies": "core",
        "exports": ["com.example.api"],
    }, "m")
    assert decl.version == "2"
    assert decl.target.has_tag(TargetTag.ANDROID)
    assert decl.dependencies == ("core",)
    assert decl.exports == ("com.example.api",)


def test_unquoted_decimal_version_is_rejected(tmp_path):
    path = tmp_path / "module.meta"
    path.write_text("name: core\nversion: 1.10\n")
    with pytest.raises(MetaError, match="aspas"):
        meta.load_meta(str(path))
    path.write_text("name: core\nversion: \"1.10\"\n")
    assert meta.load_meta(str(path)).version == "1.10"


def test_malformed_yaml_names_the_file(tmp_path):
    path = tmp_path / "module.meta"
    path.write_text("name: [unterminated\n")
    with pytest.raises(MetaError) as exc:
        meta.load_meta(str(path))
    assert exc.value.path == str(path)
    assert str(path) in str(exc.value)


def test_load_declaration_without_file(tmp_path):
    assert meta.load_declaration(str(tmp_path)) is None
    assert not meta.is_module_directory(str(tmp_path))


def test_create_meta_and_register_child(tmp_path):
    parent = meta.create_meta(str(tmp_path), name="root", aggregate=True)
    child_dir = tmp_path / "web"
    path = meta.create_meta(str(child_dir), executable=True, platforms=["web"], dependencies=["core"])

    data = yaml.safe_load((child_dir / "module.meta").read_text())
    assert data["executable"] is True
    assert data["target"]["platforms"] == ["web"]
    assert data["dependencies"] == ["core"]
    assert (child_dir / "src" / "main" / "java").is_dir()

    assert meta.add_child_module(parent, "web")
    assert not meta.add_child_module(parent, "web")
    assert yaml.safe_load((tmp_path / "module.meta").read_text())["modules"] == ["web"]


def test_create_meta_refuses_existing(tmp_path):
    meta.create_meta(str(tmp_path))
    with pytest.raises(MetaError):
        meta.create_meta(str(tmp_path))
