#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
cli.py — CLI do mbuild (ordem de módulos, resolução de executável, caminhos de conf, update em lote)
"""

from __future__ import annotations
import argparse
import json
import os
import sys
from typing import Any

from mbuild.modules import (
    config as config_mod,
    log as log_mod,
    meta as meta_mod,
    scanner as scanner_mod,
    update as update_mod,
)
from mbuild.modules.cache import TransitivePathCache
from mbuild.modules.dependency import DependencyGraphBuilder
from mbuild.modules.errors import ConfigurationError, MbuildError
from mbuild.modules.executable import ExecutableResolver, Selection
from mbuild.modules.target import Platform
from mbuild.modules.tree import ModuleRegistry

# ANSI colors simples
C = {
    "reset": "\033[0m",
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "blue": "\033[34m",
    "magenta": "\033[35m",
    "cyan": "\033[36m",
    "bold": "\033[1m",
}

def color(text: str, col: str) -> str:
    return f"{C.get(col, '')}{text}{C['reset']}"

logger = log_mod.get_logger("cli")

def _print_json_or_plain(data: Any, as_json: bool) -> None:
    if as_json:
        print(json.dumps(data, ensure_ascii=False, indent=2))
    else:
        if isinstance(data, dict):
            for k,v in data.items():
                print(f"{color(str(k), 'cyan')}: {v}")
        elif isinstance(data, list):
            for item in data:
                print(item)
        else:
            print(data)

def _setup_logging(verbose: bool, log_to_file: bool = True) -> None:
    log_mod.setup(log_to_file=log_to_file, verbose=verbose)

# ---------------------------
# Workspace
# ---------------------------

def _workspace(args):
    """(registry, working_module) da invocação"""
    registry = ModuleRegistry()
    working = registry.load_root(getattr(args, "directory", None) or os.getcwd())
    name = getattr(args, "module", None)
    if name:
        registry.load_tree(working.root_module)
        found = registry.find(name)
        if found is None:
            raise ConfigurationError(f"Módulo não encontrado: {name}")
        working = found
    return registry, working

def _builder(args, registry, working) -> DependencyGraphBuilder:
    platform = Platform.parse(args.platform) if getattr(args, "platform", None) else None
    scanner = scanner_mod.SourceScanner()
    index = None
    if getattr(args, "cached_index", False):
        registry.load_tree(working.root_module)
        index = scanner_mod.load_or_build_index(working.root_module, scanner)
    return DependencyGraphBuilder(registry, index=index, scanner=scanner, platform=platform)

def _selection(args) -> Selection:
    names = list(getattr(args, "select", None) or [])
    for flag in ("web", "desktop_archive", "desktop_package", "native_desktop", "native_android", "native_ios"):
        if getattr(args, flag, False):
            names.append(flag)
    sel = Selection.from_names(*names)
    if getattr(args, "native_only", False):
        sel = sel.with_flags(native_only=True)
    return sel

# ---------------------------
# Command handlers
# ---------------------------

def cmd_order(args):
    """
    mbuild order [--platform P] [--transitive]
    """
    registry, working = _workspace(args)
    builder = _builder(args, registry, working)
    if getattr(args, "transitive", False):
        graph = builder.build_transitive_graph(working)
    else:
        graph = builder.build_graph(working)
    order = graph.sort_descending()
    if getattr(args, "json", False):
        _print_json_or_plain({"order": [m.name for m in order], "graph": graph.to_names()}, True)
    else:
        for m in order:
            deps = ", ".join(d.name for d in graph.get(m, ()))
            print(f"{color(m.name, 'cyan')}" + (f" -> {deps}" if deps else ""))
    return 0

def cmd_resolve(args):
    """
    mbuild resolve [--web] [--desktop-archive] ... [-s NOME ...] [--strict] [--locate]
    """
    registry, working = _workspace(args)
    sel = _selection(args)
    resolver = ExecutableResolver()
    if getattr(args, "locate", False):
        # todos os candidatos, sem exigir um único
        located, widened = resolver.locate(working, sel)
        if not located:
            print(color("[WARN] Nenhum módulo executável encontrado", "yellow"))
            return 1
        _print_json_or_plain({"widened": widened, "paths": located}, getattr(args, "json", False))
        return 0
    res = resolver.resolve(working, sel, strict=getattr(args, "strict", False))
    if res is None:
        print(color("[WARN] Nenhum módulo executável encontrado", "yellow"))
        return 1
    data = {"module": res.module.name, "home": res.module.home_directory, "widened": res.widened}
    _print_json_or_plain(data, getattr(args, "json", False))
    return 0

def cmd_paths(args):
    """
    mbuild paths [--no-cache]
    """
    registry, working = _workspace(args)
    builder = _builder(args, registry, working)
    cache = TransitivePathCache(builder)
    mapping = cache.get_or_compute(working, can_use_cache=not getattr(args, "no_cache", False))
    _print_json_or_plain({k: str(v) for k, v in mapping.items()}, getattr(args, "json", False))
    return 0

def cmd_update(args):
    """
    mbuild update [-m] [-f] [-d] [--no-cache] [-j N]
    """
    registry, working = _workspace(args)
    builder = _builder(args, registry, working)
    tasks = update_mod.UpdateTasks(
        meta=getattr(args, "meta", False),
        conf=getattr(args, "conf", False),
        deps=getattr(args, "deps", False),
    )
    report = update_mod.update(working, tasks, builder=builder,
                               workers=getattr(args, "jobs", None),
                               can_use_cache=not getattr(args, "no_cache", False))
    if report.changed_files == 0:
        print(color("Nada a atualizar - todos os arquivos já estão atualizados", "green"))
    else:
        print(color(f"[OK] {report.changed_files} arquivos atualizados", "green"))
    if getattr(args, "json", False):
        _print_json_or_plain(report.__dict__, True)
    return 0

def cmd_index(args):
    """
    mbuild index — reconstrói e grava o índice símbolo -> módulo
    """
    registry, working = _workspace(args)
    root = working.root_module
    registry.load_tree(root)
    index = scanner_mod.load_or_build_index(root, scanner_mod.SourceScanner(), can_use_cache=False)
    print(color(f"[OK] {len(index)} pacotes indexados em {scanner_mod.index_path(root)}", "green"))
    return 0

def cmd_create(args):
    """
    mbuild create NOME [--aggregate] [--executable] [--platform P ...] [--tag T ...] [--dep D ...]
    """
    base = getattr(args, "directory", None) or os.getcwd()
    directory = os.path.join(base, args.name)
    meta_path = meta_mod.create_meta(
        directory,
        aggregate=getattr(args, "aggregate", False),
        executable=getattr(args, "executable", False),
        platforms=getattr(args, "platforms", None),
        tags=getattr(args, "tags", None),
        dependencies=getattr(args, "deps", None),
    )
    parent_meta = meta_mod.find_declaration_file(base)
    if parent_meta and meta_mod.add_child_module(parent_meta, args.name):
        print(color(f"Adicionado a 'modules' de {parent_meta}", "blue"))
    print(color(f"[OK] Módulo criado: {meta_path}", "green"))
    return 0

def cmd_config(args):
    """
    mbuild config get|set|list|reset [key] [value]
    """
    action = args.action
    if action == "get":
        if not args.key:
            print(color("[ERRO] Informe a chave", "red"), file=sys.stderr)
            return 2
        _print_json_or_plain({args.key: config_mod.get(args.key)}, getattr(args, "json", False))
    elif action == "set":
        if not args.key or args.value is None:
            print(color("[ERRO] Informe chave e valor", "red"), file=sys.stderr)
            return 2
        config_mod.set(args.key, args.value, system=getattr(args, "system", False))
        print(color(f"[OK] {args.key} = {args.value}", "green"))
    elif action == "list":
        if not getattr(args, "json", False):
            print(color("# camadas: " + (", ".join(config_mod.sources()) or "(apenas padrões)"), "magenta"))
        _print_json_or_plain(config_mod.all(), getattr(args, "json", False))
    elif action == "reset":
        config_mod.reset(system=getattr(args, "system", False))
        print(color("[OK] Configuração restaurada", "green"))
    return 0

# -----------------------------------------------------------------------------
# Build argument parser and connect commands
# -----------------------------------------------------------------------------

def build_parser():
    p = argparse.ArgumentParser(prog="mbuild", description="mbuild - Árvore de módulos multiplataforma")
    p.add_argument("--verbose", "-v", action="store_true", help="Modo verboso")
    p.add_argument("--json", action="store_true", help="Imprime JSON quando aplicável")
    p.add_argument("--directory", "-C", default=None, help="Diretório do módulo de trabalho (padrão: atual)")
    p.add_argument("--module", "-M", default=None, help="Nome do módulo de trabalho dentro do repositório")
    p.add_argument("--cached-index", action="store_true", help="Usa o índice de símbolos persistido")
    p.add_argument("--no-log-file", action="store_true", help="Não grava log em arquivo")
    sub = p.add_subparsers(dest="command")

    platforms = [pl.value for pl in Platform]

    # order
    so = sub.add_parser("order", help="Módulos na ordem mais-dependente-primeiro")
    so.add_argument("--platform", "-p", choices=platforms, default=None)
    so.add_argument("--transitive", "-t", action="store_true", help="Dependências transitivas do módulo de trabalho")
    so.set_defaults(func=cmd_order)

    # resolve
    sr = sub.add_parser("resolve", aliases=["r"], help="Resolver o módulo executável")
    sr.add_argument("--web", "-w", action="store_true")
    sr.add_argument("--desktop-archive", "--fatjar", action="store_true")
    sr.add_argument("--desktop-package", action="store_true")
    sr.add_argument("--native-desktop", action="store_true")
    sr.add_argument("--native-android", "--android", action="store_true")
    sr.add_argument("--native-ios", "--ios", action="store_true")
    sr.add_argument("--native-only", action="store_true", help="Apenas módulos native-mobile")
    sr.add_argument("--select", "-s", nargs="*", help="Seleção por nomes (web, desktop, native, ...)")
    sr.add_argument("--strict", action="store_true", help="Erro se nenhum executável for encontrado")
    sr.add_argument("--locate", "-l", action="store_true", help="Mostrar caminhos dos artefatos")
    sr.set_defaults(func=cmd_resolve)

    # paths
    spt = sub.add_parser("paths", help="Diretórios de conf transitivos (com cache)")
    spt.add_argument("--no-cache", action="store_true")
    spt.add_argument("--platform", "-p", choices=platforms, default=None)
    spt.set_defaults(func=cmd_paths)

    # update
    sup = sub.add_parser("update", aliases=["upd"], help="Atualizar arquivos gerados (sem flags: todos)")
    sup.add_argument("--meta", "-m", action="store_true", help="meta/exe.properties")
    sup.add_argument("--conf", "-f", action="store_true", help="conf/merged.properties")
    sup.add_argument("--deps", "-d", action="store_true", help="meta/dependencies.txt")
    sup.add_argument("--no-cache", action="store_true")
    sup.add_argument("--jobs", "-j", type=int, default=None)
    sup.add_argument("--platform", "-p", choices=platforms, default=None)
    sup.set_defaults(func=cmd_update)

    # index
    si = sub.add_parser("index", help="Reconstruir índice símbolo -> módulo")
    si.set_defaults(func=cmd_index)

    # create
    sc = sub.add_parser("create", help="Criar novo módulo")
    sc.add_argument("name", help="Nome (diretório) do módulo")
    sc.add_argument("--aggregate", "-a", action="store_true")
    sc.add_argument("--executable", "-e", action="store_true")
    sc.add_argument("--platform", dest="platforms", action="append", choices=platforms)
    sc.add_argument("--tag", dest="tags", action="append")
    sc.add_argument("--dep", dest="deps", action="append")
    sc.set_defaults(func=cmd_create)

    # config
    scf = sub.add_parser("config", help="Gerenciar configuração do mbuild")
    scf.add_argument("action", choices=["get","set","list","reset"], help="Ação sobre a configuração")
    scf.add_argument("key", nargs="?", help="Chave da configuração")
    scf.add_argument("value", nargs="?", help="Valor (para set)")
    scf.add_argument("--system", action="store_true", help="Salvar/operar no config global (/etc)")
    scf.set_defaults(func=cmd_config)

    return p

def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    _setup_logging(getattr(args, "verbose", False), log_to_file=not getattr(args, "no_log_file", False))

    try:
        rc = args.func(args)
    except MbuildError as e:
        print(color(f"[ERRO] {e}", "red"), file=sys.stderr)
        sys.exit(2)
    except Exception as e:
        logger.exception("Erro ao executar comando")
        print(color(f"[ERRO] {e}", "red"), file=sys.stderr)
        sys.exit(1)
    sys.exit(rc if isinstance(rc, int) else 0)

if __name__ == "__main__":
    main()
