#!/usr/bin/env python3
# -*- coding: utf-8

import os
import yaml
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from mbuild.modules import config, log, utils
from mbuild.modules.errors import MetaError
from mbuild.modules.target import Platform, Target, TargetTag

logger = log.get_logger("meta")

KNOWN_FIELDS = [
    "name", "group", "version", "description",
    "aggregate", "executable", "target",
    "dependencies", "exports", "modules",
]


@dataclass(frozen=True)
class ModuleDeclaration:
    """Conteúdo validado de um module.meta"""
    path: str
    name: Optional[str] = None
    group: Optional[str] = None
    version: Optional[str] = None
    description: str = ""
    aggregate: bool = False
    target: Target = field(default_factory=Target)
    dependencies: Tuple[str, ...] = ()
    exports: Tuple[str, ...] = ()
    modules: Optional[Tuple[str, ...]] = None


def declaration_files() -> List[str]:
    return config.get_list("declaration_files")


def find_declaration_file(directory: str, names: Optional[List[str]] = None) -> Optional[str]:
    """Primeiro arquivo de declaração reconhecido no diretório, ou None"""
    for fname in names if names is not None else declaration_files():
        candidate = os.path.join(directory, fname)
        if os.path.isfile(candidate):
            return candidate
    return None


def is_module_directory(directory: str, names: Optional[List[str]] = None) -> bool:
    return os.path.isdir(directory) and find_declaration_file(directory, names) is not None


def _str_list(meta: dict, key: str, path: str) -> Tuple[str, ...]:
    value = meta.get(key)
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not all(isinstance(v, (str, int, float)) for v in value):
        raise MetaError(f"Campo '{key}' deve ser uma lista de nomes", path)
    return tuple(str(v).strip() for v in value)


def _optional_str(meta: dict, key: str, path: str) -> Optional[str]:
    value = meta.get(key)
    if value is None:
        return None
    if isinstance(value, float):
        # 1.10 chegaria aqui como 1.1
        raise MetaError(f"Campo '{key}' lido como número ({value!r}); use aspas: {key}: \"...\"", path)
    if not isinstance(value, (str, int)) or isinstance(value, bool):
        raise MetaError(f"Campo '{key}' inválido: {value!r}", path)
    value = str(value).strip()
    return value or None


def _parse_enum(parse, values, key: str, path: str):
    out = []
    for v in values:
        try:
            out.append(parse(v))
        except ValueError:
            raise MetaError(f"Valor desconhecido em '{key}': {v}", path) from None
    return out


def _parse_target(meta: dict, path: str) -> Target:
    raw = meta.get("target") or {}
    if not isinstance(raw, dict):
        raise MetaError("Campo 'target' deve ser um mapa com platforms/tags", path)
    platforms = _parse_enum(Platform.parse, _str_list(raw, "platforms", path), "target.platforms", path)
    tags = _parse_enum(TargetTag.parse, _str_list(raw, "tags", path), "target.tags", path)

    executable = meta.get("executable", False)
    if isinstance(executable, bool):
        if executable and not platforms:
            raise MetaError("'executable: true' requer target.platforms", path)
        exe_platforms = list(platforms) if executable else []
    else:
        exe_platforms = _parse_enum(Platform.parse, _str_list(meta, "executable", path), "executable", path)
        # executável numa plataforma implica suportá-la
        platforms.extend(p for p in exe_platforms if p not in platforms)
    return Target.of(platforms, tags, exe_platforms)


def validate_meta(meta, path: str) -> ModuleDeclaration:
    if meta is None:
        meta = {}
    if not isinstance(meta, dict):
        raise MetaError("Declaração deve ser um mapa YAML", path)
    for key in meta:
        if key not in KNOWN_FIELDS:
            logger.debug("Campo ignorado '%s' em %s", key, path)

    aggregate = meta.get("aggregate", False)
    if not isinstance(aggregate, bool):
        raise MetaError(f"Campo 'aggregate' deve ser booleano: {aggregate!r}", path)

    modules = meta.get("modules")
    return ModuleDeclaration(
        path=path,
        name=_optional_str(meta, "name", path),
        group=_optional_str(meta, "group", path),
        version=_optional_str(meta, "version", path),
        description=_optional_str(meta, "description", path) or "",
        aggregate=aggregate,
        target=_parse_target(meta, path),
        dependencies=_str_list(meta, "dependencies", path),
        exports=_str_list(meta, "exports", path),
        modules=_str_list(meta, "modules", path) if modules is not None else None,
    )


def load_meta(path: str) -> ModuleDeclaration:
    log.debug("Carregando declaração: %s", path)
    try:
        data = utils.load_yaml(path)
    except yaml.YAMLError as e:
        raise MetaError(f"YAML inválido: {e}", path) from e
    except OSError as e:
        raise MetaError(f"Não foi possível ler a declaração: {e}", path) from e
    return validate_meta(data, path)


def load_declaration(directory: str, names: Optional[List[str]] = None) -> Optional[ModuleDeclaration]:
    """Lê no máximo um arquivo de declaração do diretório; None se não houver"""
    path = find_declaration_file(directory, names)
    if path is None:
        return None
    return load_meta(path)


def create_meta(directory: str, name: Optional[str] = None,
                version: Optional[str] = None, group: Optional[str] = None,
                aggregate: bool = False, executable=False,
                platforms: Optional[List[str]] = None, tags: Optional[List[str]] = None,
                dependencies: Optional[List[str]] = None,
                source_dirs: bool = True) -> str:
    """
    Cria a estrutura básica de módulo:
      - diretório do módulo
      - module.meta com os campos informados
      - diretórios de fonte/recursos/testes (exceto em agregados)
    Retorna o path do module.meta criado.
    """
    fname = declaration_files()[0]
    meta_path = os.path.join(directory, fname)
    if os.path.exists(meta_path):
        raise MetaError("Módulo já existe", meta_path)

    os.makedirs(directory, exist_ok=True)
    if source_dirs and not aggregate:
        layout = config.layout()
        for key in ("main_source_dir", "main_resources_dir", "test_source_dir"):
            os.makedirs(os.path.join(directory, layout[key]), exist_ok=True)

    template = {}
    if name:
        template["name"] = name
    if group:
        template["group"] = group
    if version:
        template["version"] = version
    if aggregate:
        template["aggregate"] = True
        template["modules"] = []
    if platforms or tags:
        template["target"] = {"platforms": list(platforms or []), "tags": list(tags or [])}
    if executable:
        template["executable"] = executable if isinstance(executable, list) else True
    template["dependencies"] = list(dependencies or [])

    # valida antes de gravar
    validate_meta(template, meta_path)
    with open(meta_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(template, f, sort_keys=False, allow_unicode=True)

    log.info("Criado novo módulo %s em %s", name or os.path.basename(directory), directory)
    return meta_path


def add_child_module(meta_path: str, child: str) -> bool:
    """Acrescenta child à lista 'modules' se o pai lista os filhos explicitamente"""
    with open(meta_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    modules = data.get("modules")
    if modules is None or child in modules:
        return False
    modules.append(child)
    with open(meta_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)
    return True


# __all__ para facilitar importações
__all__ = [
    "ModuleDeclaration", "find_declaration_file", "is_module_directory",
    "validate_meta", "load_meta", "load_declaration", "create_meta",
    "add_child_module", "MetaError",
]
