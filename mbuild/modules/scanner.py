#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
scanner.py — Varredura de fontes e índice global símbolo -> módulo

Funcionalidades principais:
- SourceScanner: lista arquivos de fonte principais e extrai as referências (imports)
- Pacotes exportados por módulo (diretórios de fonte com arquivos + 'exports' declarados)
- SymbolIndex: pacote -> módulo declarante, com persistência JSON (reconstruído quando a árvore muda)
- Resolução pelo prefixo de pacote mais longo do símbolo
"""

from __future__ import annotations

import json
import os
import re
import threading
from typing import Dict, Iterable, List, Optional

from mbuild.modules import config, log, utils
from mbuild.modules.errors import CacheError, ConfigurationError
from mbuild.modules.utils import LazySequence

logger = log.get_logger("scanner")

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# ---------------------------------------------------------------------
# Scanner de fontes
# ---------------------------------------------------------------------


class SourceScanner:
    """
    Varre os fontes principais de cada módulo.
    Os resultados são memorizados por módulo: varrer de novo o mesmo módulo
    na mesma invocação reaproveita a primeira leitura.
    """

    def __init__(self, extensions: Optional[Iterable[str]] = None, import_pattern: Optional[str] = None):
        self.extensions = tuple(extensions or config.get_list("source_extensions"))
        self.import_re = re.compile(import_pattern or config.get("import_pattern"), re.MULTILINE)
        self._files: Dict[str, LazySequence[str]] = {}
        self._symbols: Dict[str, LazySequence[str]] = {}
        self._packages: Dict[str, LazySequence[str]] = {}
        self._lock = threading.Lock()

    def _memo(self, cache: Dict[str, LazySequence], module, factory) -> LazySequence:
        with self._lock:
            seq = cache.get(module.home_directory)
            if seq is None:
                seq = LazySequence(factory, name=f"{module.name}.scan")
                cache[module.home_directory] = seq
            return seq

    def source_files(self, module) -> LazySequence[str]:
        def walk():
            if not module.is_project_module or not module.has_main_source_directory:
                return
            for root, dirs, files in os.walk(module.main_source_directory):
                dirs[:] = sorted(d for d in dirs if not d.startswith("."))
                for fn in sorted(files):
                    if fn.endswith(self.extensions):
                        yield os.path.join(root, fn)
        return self._memo(self._files, module, walk)

    def referenced_symbols(self, module) -> LazySequence[str]:
        """Símbolos importados pelos fontes principais, cada um uma vez, em ordem"""
        def scan():
            found = set()
            for path in self.source_files(module):
                text = utils.read_text(path) or ""
                for m in self.import_re.finditer(text):
                    found.add(m.group(1))
            return sorted(found)
        return self._memo(self._symbols, module, scan)

    def exported_packages(self, module) -> LazySequence[str]:
        """Pacotes dos diretórios de fonte que contêm arquivos, mais os 'exports' declarados"""
        def collect():
            if not module.is_project_module:
                return []
            packages = set(module.declaration.exports)
            if module.has_main_source_directory:
                base = module.main_source_directory
                for path in self.source_files(module):
                    rel = os.path.relpath(os.path.dirname(path), base)
                    if rel == os.curdir:
                        continue  # pacote default
                    parts = rel.split(os.sep)
                    # ignora diretórios fora da convenção de nomes de pacote (ex.: META-INF)
                    if all(_IDENTIFIER.match(p) for p in parts):
                        packages.add(".".join(parts))
            return sorted(packages)
        return self._memo(self._packages, module, collect)


# ---------------------------------------------------------------------
# Índice símbolo -> módulo
# ---------------------------------------------------------------------


def is_implicit(symbol: str, implicit_packages: Optional[Iterable[str]] = None) -> bool:
    """Símbolos da plataforma (ex.: java.*) nunca são resolvidos para um módulo"""
    prefixes = implicit_packages if implicit_packages is not None else config.get_list("implicit_packages")
    return any(symbol == p.rstrip(".") or symbol.startswith(p) for p in prefixes)


class SymbolIndex:
    """
    Index simples pacote -> nome do módulo declarante.

    - packages: package_name -> module_name
    - persistent backing (json) para reaproveitar entre invocações
    """

    def __init__(self, packages: Optional[Dict[str, str]] = None):
        self.packages: Dict[str, str] = dict(packages or {})

    @classmethod
    def build(cls, modules: Iterable, scanner: SourceScanner) -> "SymbolIndex":
        index = cls()
        for module in modules:
            for pkg in scanner.exported_packages(module):
                index.add(pkg, module.name)
        logger.debug("Índice de símbolos: %d pacotes", len(index))
        return index

    def add(self, package: str, module_name: str):
        owner = self.packages.get(package)
        if owner is not None and owner != module_name:
            raise ConfigurationError(
                f"Pacote '{package}' exportado por dois módulos: {owner}, {module_name}")
        self.packages[package] = module_name

    def resolve(self, symbol: str) -> Optional[str]:
        """Módulo que declara o símbolo (prefixo de pacote mais longo), ou None"""
        parts = symbol.split(".")
        for i in range(len(parts), 0, -1):
            owner = self.packages.get(".".join(parts[:i]))
            if owner is not None:
                return owner
        return None

    def packages_of(self, module_name: str) -> List[str]:
        return sorted(p for p, m in self.packages.items() if m == module_name)

    def __len__(self):
        return len(self.packages)

    # ----------------------
    # Persistência
    # ----------------------
    def save(self, path: str):
        data = {"packages": dict(sorted(self.packages.items()))}
        utils.atomic_write_text(path, json.dumps(data, indent=2, ensure_ascii=False) + "\n")

    @classmethod
    def load(cls, path: str) -> "SymbolIndex":
        try:
            data = utils.load_json(path)
        except (OSError, ValueError) as e:
            raise CacheError(f"Índice de símbolos ilegível: {e}", path) from e
        packages = data.get("packages") if isinstance(data, dict) else None
        if not isinstance(packages, dict) or not all(
                isinstance(k, str) and isinstance(v, str) for k, v in packages.items()):
            raise CacheError("Índice de símbolos corrompido", path)
        return cls(packages)


def index_path(root) -> str:
    """Arquivo do índice persistido para a árvore de `root`"""
    name = os.path.abspath(root.home_directory).replace(os.sep, "~") + "-symbols.json"
    return os.path.join(config.get_path("cache_dir"), name)


def load_or_build_index(root, scanner: SourceScanner, can_use_cache: bool = True) -> SymbolIndex:
    """Carrega o índice persistido; se ausente ou corrompido, reconstrói e grava"""
    path = index_path(root)
    if can_use_cache and os.path.isfile(path):
        try:
            return SymbolIndex.load(path)
        except CacheError as e:
            logger.warning("%s; reconstruindo (%s)", e, path)
    index = SymbolIndex.build(root.this_and_children_in_depth(), scanner)
    try:
        index.save(path)
    except OSError as e:
        logger.warning("Falha ao gravar índice de símbolos %s: %s", path, e)
    return index


__all__ = ["SourceScanner", "SymbolIndex", "is_implicit", "index_path", "load_or_build_index"]
