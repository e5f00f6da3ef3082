from __future__ import annotations

import json

import pytest
import yaml

from mbuild import cli
from mbuild.modules import config


def run(capsys, *argv):
    with pytest.raises(SystemExit) as exc:
        cli.main(["--no-log-file", *argv])
    out, err = capsys.readouterr()
    return exc.value.code, out, err


def test_no_command_prints_help(capsys):
    with pytest.raises(SystemExit) as exc:
        cli.main([])
    assert exc.value.code == 1
    assert "usage" in capsys.readouterr().out


def test_order(capsys, sample_repo):
    code, out, _ = run(capsys, "-C", str(sample_repo), "--json", "order")
    assert code == 0
    data = json.loads(out)
    assert data["order"] == ["app-desktop", "app-web", "core", "root"]
    assert data["graph"]["app-web"] == ["core"]


def test_order_transitive_of_named_module(capsys, sample_repo):
    code, out, _ = run(capsys, "-C", str(sample_repo), "-M", "app-web", "--json", "order", "--transitive")
    assert code == 0
    assert json.loads(out)["order"] == ["app-web", "core"]


def test_resolve(capsys, sample_repo):
    code, out, _ = run(capsys, "-C", str(sample_repo), "--json", "resolve", "--web")
    assert code == 0
    data = json.loads(out)
    assert data["module"] == "app-web"
    assert data["widened"] is False


def test_locate_lists_every_candidate(capsys, sample_repo):
    code, out, _ = run(capsys, "-C", str(sample_repo), "--json", "resolve", "--web", "--fatjar", "--locate")
    assert code == 0
    data = json.loads(out)
    assert sorted(data["paths"]) == ["app-desktop", "app-web"]
    assert data["paths"]["app-web"][0].endswith("index.html")
    assert data["paths"]["app-desktop"][0].endswith("app-desktop-1.2.0-fat.jar")


def test_resolve_widens_from_library(capsys, sample_repo):
    code, out, _ = run(capsys, "-C", str(sample_repo / "core"), "--json", "resolve", "-s", "desktop")
    assert code == 0
    data = json.loads(out)
    assert data["module"] == "app-desktop"
    assert data["widened"] is True


def test_ambiguous_resolution_exits_with_candidates(capsys, sample_repo):
    code, _, err = run(capsys, "-C", str(sample_repo), "resolve", "--web", "--fatjar")
    assert code == 2
    assert "-M app-desktop" in err
    assert "-M app-web" in err


def test_resolve_strict_without_candidates(capsys, sample_repo):
    code, _, err = run(capsys, "-C", str(sample_repo), "resolve", "--ios")
    assert code == 1
    code, _, err = run(capsys, "-C", str(sample_repo), "resolve", "--ios", "--strict")
    assert code == 2
    assert "[ERRO]" in err


def test_unknown_module(capsys, sample_repo):
    code, _, err = run(capsys, "-C", str(sample_repo), "-M", "ghost", "order")
    assert code == 2
    assert "ghost" in err


def test_paths(capsys, sample_repo):
    code, out, _ = run(capsys, "-C", str(sample_repo / "app-web"), "--json", "paths")
    assert code == 0
    assert list(json.loads(out)) == ["app-web", "core"]


def test_update_then_nothing_to_do(capsys, sample_repo):
    code, out, _ = run(capsys, "-C", str(sample_repo), "update", "-j", "2")
    assert code == 0
    assert "7" in out
    code, out, _ = run(capsys, "-C", str(sample_repo), "update", "--no-cache")
    assert code == 0
    assert "Nada a atualizar" in out
    assert (sample_repo / "app-web" / "src" / "main" / "resources" / "meta" / "exe.properties").is_file()


def test_update_single_task(capsys, sample_repo):
    code, _, _ = run(capsys, "-C", str(sample_repo), "update", "-d")
    assert code == 0
    resources = sample_repo / "app-web" / "src" / "main" / "resources"
    assert (resources / "meta" / "dependencies.txt").is_file()
    assert not (resources / "meta" / "exe.properties").exists()


def test_index_then_cached_index(capsys, sample_repo, cache_dir):
    code, out, _ = run(capsys, "-C", str(sample_repo), "index")
    assert code == 0
    assert any(p.name.endswith("-symbols.json") for p in cache_dir.iterdir())
    code, out, _ = run(capsys, "-C", str(sample_repo), "--cached-index", "--json", "order")
    assert code == 0
    assert json.loads(out)["order"][0] == "app-desktop"


def test_create_registers_in_parent(capsys, repo, write_module):
    write_module("", {"name": "root", "modules": []})
    code, _, _ = run(capsys, "-C", str(repo), "create", "tools", "--dep", "core")
    assert code == 0
    assert yaml.safe_load((repo / "module.meta").read_text())["modules"] == ["tools"]
    assert yaml.safe_load((repo / "tools" / "module.meta").read_text())["dependencies"] == ["core"]


def test_cycle_is_reported(capsys, repo, write_module):
    write_module("", {"name": "root"})
    write_module("a", {"dependencies": ["b"]})
    write_module("b", {"dependencies": ["a"]})
    code, _, err = run(capsys, "-C", str(repo), "order")
    assert code == 2
    assert "a, b" in err


def test_config_get_and_set(capsys):
    code, out, _ = run(capsys, "--json", "config", "get", "workers")
    assert code == 0
    assert json.loads(out) == {"workers": 2}
    code, _, _ = run(capsys, "config", "set", "implicit_packages", "[java., kotlin.]")
    assert code == 0
    assert config.get_list("implicit_packages") == ["java.", "kotlin."]
    code, _, _ = run(capsys, "config", "reset")
    assert code == 0
    assert config.get_list("implicit_packages") == ["java.", "javax.", "jdk.", "sun."]
