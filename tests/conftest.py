from __future__ import annotations

import sys
from pathlib import Path
from textwrap import dedent

import pytest
import yaml

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from mbuild.modules import config, log
from mbuild.modules.cache import TransitivePathCache
from mbuild.modules.dependency import DependencyGraphBuilder
from mbuild.modules.tree import ModuleRegistry


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch):
    """Config, cache e logs dentro de tmp_path; nada é gravado no home do usuário"""
    cfg = tmp_path / "mbuild-config.yml"
    cfg.write_text(yaml.safe_dump({
        "cache_dir": str(tmp_path / "cache"),
        "log_dir": str(tmp_path / "logs"),
        "workers": 2,
    }))
    monkeypatch.setenv("MBUILD_CONFIG", str(cfg))
    monkeypatch.setattr(config, "USER_CONFIG", str(tmp_path / "user" / "config.yml"))
    monkeypatch.setattr(config, "SYSTEM_CONFIG", str(tmp_path / "system" / "config.yml"))
    config.load_config()
    yield cfg
    root = log.get_logger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    monkeypatch.undo()
    config.load_config()


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    root.mkdir()
    return root


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.fixture
def write_module(repo: Path):
    """
    Cria um módulo sob o repositório de teste.

    Usage:
        write_module("core", {"target": {"platforms": ["desktop"]}},
                     sources={"com/example/core/Model.java": "package com.example.core;"},
                     conf={"core.properties": "a=1"})
    """

    def _write(rel: str, meta: dict | None = None, sources: dict | None = None,
               conf: dict | None = None) -> Path:
        home = repo / rel if rel else repo
        home.mkdir(parents=True, exist_ok=True)
        (home / "module.meta").write_text(yaml.safe_dump(meta or {}, sort_keys=False))
        for name, content in (sources or {}).items():
            path = home / "src" / "main" / "java" / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(dedent(content))
        for name, content in (conf or {}).items():
            path = home / "src" / "main" / "conf" / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(dedent(content))
        return home

    return _write


@pytest.fixture
def sample_repo(repo: Path, write_module) -> Path:
    """
    root (agregado)
      core         biblioteca agnóstica, pacote com.example.core
      app-web      executável web, importa core
      app-desktop  executável desktop, importa core
    """
    write_module("", {"name": "root", "group": "com.example", "version": "1.2.0", "aggregate": True})
    write_module(
        "core", {},
        sources={
            "com/example/core/Model.java": """\
                package com.example.core;

                import java.util.List;

                public class Model {}
            """,
        },
        conf={"core.properties": "greeting=hello\nshared=core\n"},
    )
    write_module(
        "app-web",
        {"executable": ["web"], "target": {"tags": ["web-toolkit"]}},
        sources={
            "com/example/web/Main.java": """\
                package com.example.web;

                import com.example.core.Model;
                import java.util.List;

                public class Main {}
            """,
        },
        conf={"web.properties": "shared=web\n"},
    )
    write_module(
        "app-desktop",
        {"executable": ["desktop"], "target": {"tags": ["desktop-ui"]}},
        sources={
            "com/example/desktop/Main.java": """\
                package com.example.desktop;

                import com.example.core.*;

                public class Main {}
            """,
        },
    )
    return repo


@pytest.fixture
def registry() -> ModuleRegistry:
    return ModuleRegistry()


@pytest.fixture
def root_module(registry: ModuleRegistry, sample_repo: Path):
    return registry.load_root(str(sample_repo))


@pytest.fixture
def builder(registry: ModuleRegistry) -> DependencyGraphBuilder:
    return DependencyGraphBuilder(registry)


@pytest.fixture
def path_cache(builder: DependencyGraphBuilder, cache_dir: Path) -> TransitivePathCache:
    return TransitivePathCache(builder, cache_dir=str(cache_dir))
