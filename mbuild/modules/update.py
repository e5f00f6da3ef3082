#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
update.py - Atualização em lote dos arquivos gerados de uma árvore de módulos

- Seleção de tarefas por um único objeto de flags (UpdateTasks); sem flags = todas.
- meta: meta/exe.properties dos módulos executáveis
- conf: conf/merged.properties dos executáveis (merge na ordem mais-dependente-primeiro:
        a primeira ocorrência de uma chave vence, as seguintes viram comentário)
- deps: meta/dependencies.txt com as dependências diretas dos módulos com fontes
- Módulos independentes processados em paralelo (ThreadPoolExecutor); cada worker só lê
  metadados compartilhados e grava arquivos próprios.
- Tudo numa FileTransaction, inclusive as entradas recalculadas do cache de caminhos
  transitivos: commit só se o lote inteiro der certo.
"""

import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field, fields
from typing import Dict, List, Optional, Tuple

from mbuild.modules import config, log, utils
from mbuild.modules.cache import TransitivePathCache
from mbuild.modules.dependency import DependencyGraphBuilder
from mbuild.modules.transaction import FileTransaction

logger = log.get_logger("update")

EXE_PROPERTIES = os.path.join("meta", "exe.properties")
MERGED_CONF = os.path.join("conf", "merged.properties")
DEPENDENCIES_TXT = os.path.join("meta", "dependencies.txt")

# ---------- seleção de tarefas ----------


@dataclass
class UpdateTasks:
    meta: bool = False
    conf: bool = False
    deps: bool = False

    @classmethod
    def from_names(cls, *names: str) -> "UpdateTasks":
        valid = {f.name for f in fields(cls)}
        unknown = [n for n in names if n not in valid]
        if unknown:
            raise ValueError(f"Tarefas desconhecidas: {', '.join(unknown)}")
        return cls(**{n: True for n in names})

    def enable_all_if_unset(self):
        if not any(getattr(self, f.name) for f in fields(self)):
            for f in fields(self):
                setattr(self, f.name, True)

    def enabled(self) -> List[str]:
        return [f.name for f in fields(self) if getattr(self, f.name)]


@dataclass
class UpdateReport:
    changed_files: int = 0
    files: List[str] = field(default_factory=list)
    modules: int = 0
    staged: int = 0


# ---------- properties ----------

def read_properties(path: str) -> List[Tuple[str, str]]:
    out = []
    for line in (utils.read_text(path) or "").splitlines():
        line = line.strip()
        if not line or line.startswith(("#", "!")):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        out.append((key.strip(), value.strip()))
    return out


def _properties_files(conf_dir) -> List[str]:
    conf_dir = str(conf_dir)
    if not os.path.isdir(conf_dir):
        return []
    return sorted(os.path.join(conf_dir, f) for f in os.listdir(conf_dir) if f.endswith(".properties"))


def merge_properties(conf_paths: Dict[str, object]) -> str:
    """
    Merge dos .properties na ordem do mapa (mais dependente primeiro).
    A primeira ocorrência de uma chave vence; as seguintes ficam comentadas.
    """
    seen: Dict[str, str] = {}
    lines: List[str] = []
    for module_name, conf_dir in conf_paths.items():
        entries = [kv for path in _properties_files(conf_dir) for kv in read_properties(path)]
        if not entries:
            continue
        lines.append(f"# ---- {module_name} ----")
        for key, value in entries:
            if key in seen:
                lines.append(f"# [{module_name}] {key}={value}  (já definido por {seen[key]})")
            else:
                seen[key] = module_name
                lines.append(f"{key}={value}")
    return "\n".join(lines) + ("\n" if lines else "")


# ---------- geradores ----------

def generate_meta(module, tx: FileTransaction):
    platforms = sorted(p.value for p in module.target.executable_platforms)
    tags = sorted(t.value for t in module.target.tags)
    content = "\n".join([
        f"name={module.name}",
        f"group={module.group or ''}",
        f"artifact={module.artifact}",
        f"version={module.version}",
        f"platforms={','.join(platforms)}",
        f"tags={','.join(tags)}",
    ]) + "\n"
    tx.stage(os.path.join(module.main_resources_directory, EXE_PROPERTIES), content)


def generate_conf(module, cache: TransitivePathCache, tx: FileTransaction, can_use_cache: bool = True):
    paths = cache.get_or_compute(module, can_use_cache, tx=tx)
    if not paths:
        return
    tx.stage(os.path.join(module.main_resources_directory, MERGED_CONF), merge_properties(paths))


def generate_deps(module, builder: DependencyGraphBuilder, tx: FileTransaction):
    deps = builder.direct_dependencies(module)
    content = "".join(f"{d.name}\n" for d in deps)
    tx.stage(os.path.join(module.main_resources_directory, DEPENDENCIES_TXT), content)


def _update_module(module, tasks: UpdateTasks, builder, cache, tx, can_use_cache: bool):
    if module.is_executable():
        if tasks.meta:
            generate_meta(module, tx)
        if tasks.conf:
            generate_conf(module, cache, tx, can_use_cache)
    if tasks.deps and module.has_main_source_directory:
        generate_deps(module, builder, tx)


# ---------- orquestração ----------

def update(working_module, tasks: Optional[UpdateTasks] = None,
           builder: Optional[DependencyGraphBuilder] = None,
           cache: Optional[TransitivePathCache] = None,
           workers: Optional[int] = None, can_use_cache: bool = True) -> UpdateReport:
    """
    Executa as tarefas sobre working_module e descendentes.
    Qualquer erro descarta todas as escritas do lote e é propagado.
    """
    tasks = tasks or UpdateTasks()
    tasks.enable_all_if_unset()
    builder = builder or DependencyGraphBuilder(working_module.registry)
    cache = cache or TransitivePathCache(builder)
    workers = max(1, int(workers or config.get_int("workers")))

    modules = working_module.this_and_children_in_depth().to_list()
    # grafo calculado antes dos workers: erros de configuração abortam cedo
    # e os workers só leem resultados já memorizados
    builder.build_graph(working_module)
    logger.info("Atualizando %d módulos (%s) com %d workers",
                len(modules), ",".join(tasks.enabled()), workers)

    with FileTransaction() as tx:
        with ThreadPoolExecutor(max_workers=workers) as ex:
            future_map = {
                ex.submit(_update_module, m, tasks, builder, cache, tx, can_use_cache): m
                for m in modules
            }
            try:
                for fut in as_completed(future_map):
                    fut.result()
            except BaseException:
                for f in future_map:
                    f.cancel()
                raise
        staged = len([p for p in tx.staged_paths() if not cache.owns(p)])
        tx.commit()

    # entradas do cache entram no commit mas não no relatório
    files = [p for p in tx.changed_files if not cache.owns(p)]
    changed = len(files)
    if changed == 0:
        logger.info("Nada a atualizar - todos os arquivos já estão atualizados")
    else:
        logger.info("%d arquivos atualizados", changed)
    return UpdateReport(changed_files=changed, files=files,
                        modules=len(modules), staged=staged)


__all__ = [
    "UpdateTasks", "UpdateReport", "update",
    "merge_properties", "read_properties",
    "generate_meta", "generate_conf", "generate_deps",
]
