#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
config.py — Configuração do mbuild

- Camadas em YAML, cada uma sobrescrevendo a anterior:
  defaults < /etc/mbuild/config.yml < ~/.config/mbuild/config.yml < $MBUILD_CONFIG
- Layout dos módulos, scanner de fontes, cache e batch update
- Leitura tipada (get_int, get_list, layout) e escrita na camada do usuário ou do sistema
"""

import os
import yaml

from mbuild.modules.errors import ConfigurationError

USER_CONFIG = os.path.expanduser("~/.config/mbuild/config.yml")
SYSTEM_CONFIG = "/etc/mbuild/config.yml"
ENV_VAR = "MBUILD_CONFIG"

DEFAULTS = {
    # Arquivos de declaração reconhecidos (o primeiro encontrado é lido)
    "declaration_files": ["module.meta"],

    # Layout dos diretórios de um módulo (relativos ao home do módulo)
    "source_dir": "src",
    "main_source_dir": "src/main/java",
    "main_resources_dir": "src/main/resources",
    "test_source_dir": "src/test/java",
    "conf_dir": "src/main/conf",
    "target_dir": "target",

    # Scanner de fontes
    "source_extensions": [".java"],
    "import_pattern": r"^\s*import\s+(?:static\s+)?([A-Za-z_][\w.]*)(?:\.\*)?\s*;",
    # Pacotes da plataforma, nunca resolvidos para um módulo
    "implicit_packages": ["java.", "javax.", "jdk.", "sun."],

    # Cache e logs
    "cache_dir": "~/.mbuild/cache",
    "log_dir": "~/.mbuild/logs",

    # Batch update
    "workers": 4,
}

LAYOUT_KEYS = (
    "source_dir", "main_source_dir", "main_resources_dir",
    "test_source_dir", "conf_dir", "target_dir",
)

_config = dict(DEFAULTS)
_sources = []


def layers() -> list:
    """Arquivos de configuração na ordem de aplicação (o último vence)"""
    out = [SYSTEM_CONFIG, USER_CONFIG]
    env_path = os.getenv(ENV_VAR)
    if env_path:
        out.append(env_path)
    return out


def _read_layer(path: str) -> dict:
    if not os.path.isfile(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Configuração inválida em {path}: {e}") from e
    except OSError:
        # camada do sistema sem permissão de leitura não impede o uso
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuração em {path} deve ser um mapa YAML")
    return data


def load_config() -> dict:
    """Recalcula a configuração efetiva a partir de todas as camadas"""
    global _config, _sources
    merged = dict(DEFAULTS)
    sources = []
    for path in layers():
        data = _read_layer(path)
        if data:
            merged.update(data)
            sources.append(path)
    _config = merged
    _sources = sources
    return _config


def sources() -> list:
    """Camadas que contribuíram para a configuração atual"""
    return list(_sources)


def _save(cfg: dict, system: bool = False) -> str:
    path = SYSTEM_CONFIG if system else USER_CONFIG
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(cfg, f, default_flow_style=False, allow_unicode=True, sort_keys=True)
    return path


def get(key: str, default=None):
    return _config.get(key, DEFAULTS.get(key, default))


def get_path(key: str) -> str:
    """Como get(), mas expande ~ e variáveis de ambiente."""
    return os.path.expandvars(os.path.expanduser(str(get(key))))


def get_int(key: str) -> int:
    value = get(key)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Configuração '{key}' deve ser um inteiro: {value!r}") from None


def get_list(key: str) -> list:
    value = get(key)
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


def layout() -> dict:
    """Diretórios de um módulo, relativos ao seu home"""
    out = {}
    for key in LAYOUT_KEYS:
        value = get(key)
        if not isinstance(value, str) or not value or os.path.isabs(value):
            raise ConfigurationError(f"Configuração '{key}' deve ser um caminho relativo: {value!r}")
        out[key] = os.path.normpath(value)
    return out


def set(key: str, value, system: bool = False) -> str:
    """
    Grava key na camada do usuário (ou do sistema). Valores em texto são
    interpretados como YAML: "8" vira 8, "[a, b]" vira lista.
    """
    if isinstance(value, str):
        try:
            value = yaml.safe_load(value)
        except yaml.YAMLError:
            value = str(value)
    path = SYSTEM_CONFIG if system else USER_CONFIG
    layer = _read_layer(path)
    layer[key] = value
    saved = _save(layer, system=system)
    load_config()
    return saved


def all() -> dict:
    return dict(_config)


def reset(system: bool = False):
    """Remove a camada do usuário (ou do sistema), voltando às demais"""
    path = SYSTEM_CONFIG if system else USER_CONFIG
    if os.path.isfile(path):
        os.remove(path)
    load_config()


load_config()
