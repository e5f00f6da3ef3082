#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
modules/dependency.py — Construtor do grafo de dependências do mbuild

Funcionalidades principais:
- Dependências declaradas (module.meta 'dependencies')
- Dependências detectadas pelos fontes (imports resolvidos no SymbolIndex)
- União sem duplicatas por identidade do fornecedor, sem self-loops
- Filtro por plataforma: arestas para fornecedores que não suportam a plataforma são descartadas
- Símbolos não resolvidos são reportados (módulo + símbolo), nunca descartados em silêncio
- Grafo da árvore (build_graph) e grafo transitivo de um módulo (build_transitive_graph)
- API: DependencyGraphBuilder(registry).build_graph(root) -> DependencyGraph
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Set, Tuple

from mbuild.modules import log, toposort
from mbuild.modules.errors import ConfigurationError, UnresolvedSymbolError
from mbuild.modules.scanner import SourceScanner, SymbolIndex, is_implicit
from mbuild.modules.target import Platform
from mbuild.modules.tree import Module, ModuleRegistry, ProjectModule, sort_key
from mbuild.modules.utils import Lazy

logger = log.get_logger("dependency")

# ---------------------------------------------------------------------
# Grafo
# ---------------------------------------------------------------------


class DependencyGraph(Mapping):
    """
    Módulo -> tupla ordenada e sem duplicatas das dependências diretas.
    Imutável depois de construído; seguro para leitores concorrentes.
    """

    def __init__(self, edges: Mapping[Module, Iterable[Module]]):
        self._edges: Dict[Module, Tuple[Module, ...]] = {}
        for consumer in sorted(edges, key=sort_key):
            deps = tuple(dict.fromkeys(edges[consumer]))
            if consumer in deps:
                raise ConfigurationError(f"Módulo {consumer.name} depende de si mesmo")
            self._edges[consumer] = deps

    def __getitem__(self, module: Module) -> Tuple[Module, ...]:
        return self._edges[module]

    def __iter__(self) -> Iterator[Module]:
        return iter(self._edges)

    def __len__(self) -> int:
        return len(self._edges)

    def nodes(self) -> List[Module]:
        """Consumidores e fornecedores, ordenados por nome"""
        out: Set[Module] = set(self._edges)
        for deps in self._edges.values():
            out.update(deps)
        return sorted(out, key=sort_key)

    def edges(self) -> Set[Tuple[str, str]]:
        return {(c.name, p.name) for c, deps in self._edges.items() for p in deps}

    def to_names(self) -> Dict[str, List[str]]:
        return {c.name: [p.name for p in deps] for c, deps in self._edges.items()}

    def sort_descending(self) -> List[Module]:
        return toposort.sort_descending(self._edges, key=sort_key)

    def __repr__(self):
        return f"<DependencyGraph {self.to_names()!r}>"


# ---------------------------------------------------------------------
# Construtor
# ---------------------------------------------------------------------


class DependencyGraphBuilder:
    """
    Calcula as arestas consumidor -> fornecedor para a árvore de módulos.
    - registry: ModuleRegistry da invocação
    - index: SymbolIndex (construído a partir da árvore raiz se omitido)
    - platform: plataforma analisada (None = sem filtro)
    """

    def __init__(self, registry: ModuleRegistry, index: Optional[SymbolIndex] = None,
                 scanner: Optional[SourceScanner] = None, platform: Optional[Platform] = None,
                 implicit_packages: Optional[Iterable[str]] = None):
        self.registry = registry
        self.scanner = scanner or SourceScanner()
        self.platform = platform
        self.implicit_packages = list(implicit_packages) if implicit_packages is not None else None
        self._index = index
        self._direct: Dict[Module, Lazy[Tuple[Module, ...]]] = {}
        self._loaded_roots: Set[ProjectModule] = set()
        self._lock = threading.RLock()

    # ----------------------
    # Preparação
    # ----------------------
    def _ensure_loaded(self, module: Module):
        """Carrega a árvore inteira do repositório (lookups por nome precisam dela)"""
        if not module.is_project_module:
            return
        root = module.root_module
        with self._lock:
            if root in self._loaded_roots:
                return
            self.registry.load_tree(root)
            if self._index is None:
                self._index = SymbolIndex.build(root.this_and_children_in_depth(), self.scanner)
            self._loaded_roots.add(root)

    @property
    def index(self) -> SymbolIndex:
        if self._index is None:
            raise ConfigurationError("Índice de símbolos ainda não construído")
        return self._index

    # ----------------------
    # Dependências diretas
    # ----------------------
    def direct_dependencies(self, module: Module) -> Tuple[Module, ...]:
        if not module.is_project_module:
            return ()
        self._ensure_loaded(module)
        with self._lock:
            lazy = self._direct.get(module)
            if lazy is None:
                lazy = Lazy(lambda: self._compute_direct(module))
                self._direct[module] = lazy
        return lazy.get()

    def _declared(self, module: ProjectModule) -> List[Module]:
        out = []
        for name in module.declared_dependencies:
            if name == module.name:
                raise ConfigurationError(f"Módulo {module.name} declara dependência de si mesmo")
            out.append(self.registry.find_or_library(name))
        return out

    def _scanned(self, module: ProjectModule) -> Tuple[List[Module], List[Tuple[str, str]]]:
        found: List[Module] = []
        unresolved: List[Tuple[str, str]] = []
        for symbol in self.scanner.referenced_symbols(module):
            if is_implicit(symbol, self.implicit_packages):
                continue
            owner = self.index.resolve(symbol)
            provider = self.registry.find(owner) if owner else None
            if provider is None:
                unresolved.append((module.name, symbol))
                continue
            if provider is module:
                continue  # referência interna
            found.append(provider)
        found.sort(key=sort_key)
        return found, unresolved

    def _compute_direct(self, module: ProjectModule) -> Tuple[Module, ...]:
        declared = self._declared(module)
        scanned, unresolved = self._scanned(module)
        if unresolved:
            raise UnresolvedSymbolError(unresolved)

        deps: Dict[Module, None] = {}
        for provider in declared + scanned:
            if provider in deps:
                continue
            if self.platform is not None and not provider.target.is_any_platform_supported(self.platform):
                logger.debug("Aresta %s -> %s descartada (plataforma %s)",
                              module.name, provider.name, self.platform.value)
                continue
            deps[provider] = None
        logger.debug("%s -> %s", module.name, [d.name for d in deps])
        return tuple(deps)

    # ----------------------
    # Grafos
    # ----------------------
    def build_graph(self, root: ProjectModule) -> DependencyGraph:
        """Grafo de todos os módulos da subárvore de root"""
        self._ensure_loaded(root)
        edges: Dict[Module, Tuple[Module, ...]] = {}
        unresolved: List[Tuple[str, str]] = []
        for module in root.this_and_children_in_depth():
            try:
                edges[module] = self.direct_dependencies(module)
            except UnresolvedSymbolError as e:
                unresolved.extend(e.references)
        if unresolved:
            raise UnresolvedSymbolError(unresolved)
        return DependencyGraph(edges)

    def build_transitive_graph(self, module: Module) -> DependencyGraph:
        """Grafo de tudo que é alcançável a partir de module pelas arestas de dependência"""
        edges: Dict[Module, Tuple[Module, ...]] = {}
        queue = deque([module])
        while queue:
            m = queue.popleft()
            if m in edges:
                continue
            deps = self.direct_dependencies(m)
            edges[m] = deps
            queue.extend(d for d in deps if d not in edges)
        return DependencyGraph(edges)

    def transitive_dependencies(self, module: Module) -> List[Module]:
        """Dependências transitivas, mais dependentes primeiro (sem o próprio módulo)"""
        order = self.build_transitive_graph(module).sort_descending()
        return [m for m in order if m is not module]


# module exports
__all__ = [
    "DependencyGraph",
    "DependencyGraphBuilder",
]
