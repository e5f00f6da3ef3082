from __future__ import annotations

import os

import pytest

from mbuild.modules.errors import ConfigurationError, DuplicateModuleError, MetaError
from mbuild.modules.tree import ModuleRegistry


def test_load_root_builds_children_sorted_by_name(root_module):
    assert root_module.name == "root"
    assert root_module.is_root
    assert [c.name for c in root_module.children] == ["app-desktop", "app-web", "core"]


def test_children_inherit_group_and_version(root_module):
    core = root_module.child("core")
    assert core.group == "com.example"
    assert core.version == "1.2.0"
    assert core.identity == "com.example:core:1.2.0"
    assert core.parent is root_module
    assert core.root_module is root_module


def test_same_directory_yields_same_node(registry, root_module, sample_repo):
    core = root_module.child("core")
    assert registry.get_or_create(str(sample_repo / "core")) is core
    assert registry.get_or_create(str(sample_repo / "core" / ".." / "core")) is core
    assert str(sample_repo / "core") in registry


def test_loading_child_first_attaches_parent(registry, sample_repo):
    core = registry.load_root(str(sample_repo / "core"))
    assert core.parent is not None
    assert core.parent.name == "root"
    assert core.parent.child("core") is core


def test_pre_order_traversal(root_module):
    names = [m.name for m in root_module.this_and_children_in_depth()]
    assert names == ["root", "app-desktop", "app-web", "core"]


def test_directory_facts(root_module):
    core = root_module.child("core")
    assert core.has_source_directory
    assert core.has_main_source_directory
    assert core.has_conf_directory
    assert not core.has_test_source_directory
    assert not root_module.has_source_directory


def test_missing_declaration_is_configuration_error(registry, tmp_path):
    empty = tmp_path / "nothing-here"
    empty.mkdir()
    with pytest.raises(MetaError):
        registry.load_root(str(empty))


def test_missing_directory(registry, tmp_path):
    with pytest.raises(ConfigurationError):
        registry.load_root(str(tmp_path / "absent"))


def test_explicit_module_list_must_exist(registry, repo, write_module):
    write_module("", {"name": "root", "modules": ["present", "missing"]})
    write_module("present")
    root = registry.load_root(str(repo))
    with pytest.raises(ConfigurationError, match="missing"):
        root.children.to_list()


def test_explicit_module_list_restricts_children(registry, repo, write_module):
    write_module("", {"name": "root", "modules": ["b"]})
    write_module("a")
    write_module("b")
    root = registry.load_root(str(repo))
    assert [c.name for c in root.children] == ["b"]


def test_directory_left_out_of_module_list_has_no_parent(registry, repo, write_module):
    write_module("", {"name": "root", "modules": ["b"]})
    write_module("a")
    write_module("b")
    a = registry.load_root(str(repo / "a"))
    assert a.parent is None
    assert a.is_root
    assert a.root_module is a
    b = registry.load_root(str(repo / "b"))
    assert b.parent is not None
    assert b.parent.name == "root"
    assert [c.name for c in b.parent.children] == ["b"]


def test_hidden_and_undeclared_directories_are_skipped(registry, repo, write_module):
    write_module("", {"name": "root"})
    write_module(".hidden")
    write_module("lib")
    os.makedirs(repo / "docs")
    root = registry.load_root(str(repo))
    assert [c.name for c in root.children] == ["lib"]


def test_duplicate_module_names_are_rejected(registry, repo, write_module):
    write_module("", {"name": "root"})
    write_module("one", {"name": "dup"})
    write_module("two", {"name": "dup"})
    root = registry.load_root(str(repo))
    with pytest.raises(DuplicateModuleError):
        registry.load_tree(root)


def test_find_by_name_after_loading_tree(registry, root_module):
    registry.load_tree(root_module)
    assert registry.find("app-web").home_directory.endswith("app-web")
    assert registry.find("nope") is None
    lib = registry.find_or_library("guava")
    assert not lib.is_project_module
    assert registry.find_or_library("guava") is lib


def test_rename_updates_name_index_and_artifact(registry, root_module):
    registry.load_tree(root_module)
    core = registry.find("core")
    assert core.artifact == "core"
    core.rename("core-lib")
    assert registry.find("core-lib") is core
    assert registry.find("core") is None
    assert core.artifact == "core-lib"


def test_rename_to_taken_name_keeps_old_name(registry, root_module):
    registry.load_tree(root_module)
    core = registry.find("core")
    with pytest.raises(DuplicateModuleError):
        core.rename("app-web")
    assert core.name == "core"
    assert registry.find("core") is core


def test_layout_override(repo, write_module):
    write_module("", {"name": "root"})
    registry = ModuleRegistry(layout={"conf_dir": "conf"})
    root = registry.load_root(str(repo))
    assert root.conf_directory == os.path.join(root.home_directory, "conf")
