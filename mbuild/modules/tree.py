# -*- coding: utf-8 -*-
"""
tree.py — Árvore de módulos baseada em diretórios

- Module: identidade (name, group, artifact, version); variante simples, sem diretório
  (bibliotecas declaradas que não pertencem à árvore carregada)
- ProjectModule: módulo com home directory, pai e filhos (floresta estrita)
- ModuleRegistry: cache de nós por caminho canônico, com escopo de uma invocação

Os nós são criados no primeiro acesso ao caminho e reutilizados durante toda a
invocação. Fatos sobre diretórios (fontes, recursos, testes) são calculados uma
única vez.
"""

from __future__ import annotations

import os
import threading
from typing import Dict, Iterator, List, Optional

from mbuild.modules import config, log, meta
from mbuild.modules.errors import ConfigurationError, DuplicateModuleError, MetaError
from mbuild.modules.meta import ModuleDeclaration
from mbuild.modules.target import AGNOSTIC, Platform, Target
from mbuild.modules.utils import Lazy, LazySequence

logger = log.get_logger("tree")

DEFAULT_VERSION = "0.0.0"

def sort_key(module: "Module"):
    """Ordem estável entre módulos: nome declarado, depois grupo e identidade"""
    return (module.name, module.group or "", module.identity)


class Module:
    """Módulo identificado apenas por nome/grupo/versão (sem fontes próprias)"""

    is_project_module = False

    def __init__(self, name: str, group: Optional[str] = None,
                 version: Optional[str] = None, abstract: bool = False):
        self._name = name
        self.group = group
        self.version = version
        self.abstract = abstract
        self._artifact: Optional[str] = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def artifact(self) -> str:
        # derivado do nome até ser definido; rename() invalida
        if self._artifact is None:
            self._artifact = self._name
        return self._artifact

    @property
    def identity(self) -> str:
        return f"{self.group or ''}:{self.artifact}:{self.version or ''}"

    @property
    def target(self) -> Target:
        return AGNOSTIC

    def is_executable(self, platform: Optional[Platform] = None) -> bool:
        return self.target.is_executable(platform)

    def __str__(self):
        return self.name

    def __repr__(self):
        return f"<{type(self).__name__} {self.identity}>"


class ProjectModule(Module):
    """Módulo com diretório próprio, declarado por um module.meta"""

    is_project_module = True

    def __init__(self, registry: "ModuleRegistry", home_directory: str,
                 parent: Optional["ProjectModule"], declaration: ModuleDeclaration):
        name = declaration.name or os.path.basename(home_directory)
        group = declaration.group or (parent.group if parent else None)
        version = declaration.version or (parent.version if parent else DEFAULT_VERSION)
        super().__init__(name, group, version, abstract=declaration.aggregate)
        self.registry = registry
        self.home_directory = home_directory
        self.parent = parent
        self.declaration = declaration

        layout = registry.layout
        self.source_directory = os.path.join(home_directory, layout["source_dir"])
        self.main_source_directory = os.path.join(home_directory, layout["main_source_dir"])
        self.main_resources_directory = os.path.join(home_directory, layout["main_resources_dir"])
        self.test_source_directory = os.path.join(home_directory, layout["test_source_dir"])
        self.conf_directory = os.path.join(home_directory, layout["conf_dir"])
        self.target_directory = os.path.join(home_directory, layout["target_dir"])

        self._has_source = Lazy(lambda: os.path.isdir(self.source_directory))
        self._has_main_source = Lazy(lambda: self.has_source_directory and os.path.isdir(self.main_source_directory))
        self._has_main_resources = Lazy(lambda: self.has_source_directory and os.path.isdir(self.main_resources_directory))
        self._has_test_source = Lazy(lambda: self.has_source_directory and os.path.isdir(self.test_source_directory))
        self._has_conf = Lazy(lambda: self.has_source_directory and os.path.isdir(self.conf_directory))
        self._children = Lazy(lambda: registry.discover_children(self))

    # -------------------------
    # Identidade
    # -------------------------
    @property
    def target(self) -> Target:
        return self.declaration.target

    @property
    def declared_dependencies(self):
        return self.declaration.dependencies

    def rename(self, new_name: str):
        """Troca o nome do módulo; o artifact derivado é recalculado"""
        old = self._name
        self.registry.rename(self, old, new_name)
        self._name = new_name
        self._artifact = None
        logger.info("Módulo %s renomeado para %s", old, new_name)

    # -------------------------
    # Fatos de diretório (calculados uma vez)
    # -------------------------
    @property
    def has_source_directory(self) -> bool:
        return self._has_source.get()

    @property
    def has_main_source_directory(self) -> bool:
        return self._has_main_source.get()

    @property
    def has_main_resources_directory(self) -> bool:
        return self._has_main_resources.get()

    @property
    def has_test_source_directory(self) -> bool:
        return self._has_test_source.get()

    @property
    def has_conf_directory(self) -> bool:
        return self._has_conf.get()

    # -------------------------
    # Hierarquia
    # -------------------------
    @property
    def children(self) -> LazySequence["ProjectModule"]:
        return self._children.get()

    def child(self, name: str) -> Optional["ProjectModule"]:
        return next((c for c in self.children if c.name == name), None)

    def this_and_children_in_depth(self) -> LazySequence["ProjectModule"]:
        """Este módulo e todos os descendentes, em pré-ordem"""
        def walk(module: "ProjectModule") -> Iterator["ProjectModule"]:
            yield module
            for c in module.children:
                yield from walk(c)
        return LazySequence(lambda: walk(self), name=f"{self.name}.in_depth")

    def ancestors(self) -> List["ProjectModule"]:
        out = []
        p = self.parent
        while p is not None:
            out.append(p)
            p = p.parent
        return out

    @property
    def root_module(self) -> "ProjectModule":
        m = self
        while m.parent is not None:
            m = m.parent
        return m

    @property
    def is_root(self) -> bool:
        return self.parent is None

    def is_descendant_of(self, other: "ProjectModule") -> bool:
        return other in self.ancestors()


class ModuleRegistry:
    """
    Registro de módulos de uma invocação: nós por caminho canônico,
    índice de nomes e bibliotecas externas. Não é global: é passado
    explicitamente a quem precisa de lookup.
    """

    def __init__(self, declaration_files: Optional[List[str]] = None, layout: Optional[Dict[str, str]] = None):
        self.declaration_files = list(declaration_files or meta.declaration_files())
        self.layout = config.layout()
        if layout:
            self.layout.update(layout)
        self._by_path: Dict[str, ProjectModule] = {}
        self._by_name: Dict[str, ProjectModule] = {}
        self._libraries: Dict[str, Module] = {}
        self._lock = threading.RLock()

    @staticmethod
    def canonical(path: str) -> str:
        return os.path.realpath(os.path.abspath(os.path.expanduser(path)))

    # -------------------------
    # Criação / lookup
    # -------------------------
    def load_root(self, path: str) -> ProjectModule:
        """Pedido explícito de raiz de módulo: sem declaração é erro de configuração"""
        home = self.canonical(path)
        if not os.path.isdir(home):
            raise ConfigurationError(f"Diretório de módulo inexistente: {home}")
        return self.get_or_create(home)

    def get_or_create(self, path: str, parent: Optional[ProjectModule] = None) -> ProjectModule:
        """
        Nó em cache para o diretório, criado no primeiro acesso lendo no máximo um
        arquivo de declaração. Sem `parent`, o diretório pai é usado se for um módulo.
        """
        home = self.canonical(path)
        with self._lock:
            module = self._by_path.get(home)
            if module is not None:
                return module

            declaration = meta.load_declaration(home, self.declaration_files)
            if declaration is None:
                raise MetaError(
                    "Declaração ausente (esperado um de: " + ", ".join(self.declaration_files) + ")", home)

            if parent is None:
                up = os.path.dirname(home)
                if up != home and meta.is_module_directory(up, self.declaration_files):
                    candidate = self.get_or_create(up)
                    # o pai pode já ter descoberto (e criado) este diretório
                    if home in self._by_path:
                        return self._by_path[home]
                    if self._claims(candidate, home):
                        parent = candidate
                    else:
                        logger.debug("%s não está na lista 'modules' de %s: tratado como raiz",
                                     home, candidate.name)

            module = ProjectModule(self, home, parent, declaration)
            self._register_name(module.name, module)
            self._by_path[home] = module
            logger.debug("Módulo carregado: %s (%s)", module.name, home)
            return module

    def _claims(self, parent: ProjectModule, home: str) -> bool:
        listed = parent.declaration.modules
        if listed is None:
            return True
        return any(self.canonical(os.path.join(parent.home_directory, n)) == home for n in listed)

    def get_or_create_library(self, name: str) -> Module:
        with self._lock:
            lib = self._libraries.get(name)
            if lib is None:
                lib = Module(name)
                self._libraries[name] = lib
            return lib

    def discover_children(self, module: ProjectModule) -> LazySequence[ProjectModule]:
        home = module.home_directory
        listed = module.declaration.modules
        if listed is not None:
            # filhos listados explicitamente: todos precisam de declaração
            paths = [os.path.join(home, name) for name in listed]
            for p in paths:
                if not os.path.isdir(p):
                    raise ConfigurationError(f"Submódulo declarado por {module.name} não existe: {p}")
        else:
            paths = []
            for entry in sorted(os.listdir(home)):
                p = os.path.join(home, entry)
                if entry.startswith(".") or not os.path.isdir(p):
                    continue
                if meta.is_module_directory(p, self.declaration_files):
                    paths.append(p)
        children = [self.get_or_create(p, module) for p in paths]
        seen: Dict[str, ProjectModule] = {}
        for c in children:
            if c.name in seen:
                raise DuplicateModuleError(
                    f"Submódulos com o mesmo nome '{c.name}' em {module.name}: "
                    f"{seen[c.name].home_directory}, {c.home_directory}")
            seen[c.name] = c
        children.sort(key=sort_key)
        return LazySequence.of(children)

    def load_tree(self, root: ProjectModule) -> List[ProjectModule]:
        """Força a descoberta de toda a subárvore (necessário antes de lookups por nome)"""
        return root.this_and_children_in_depth().to_list()

    # -------------------------
    # Índice de nomes
    # -------------------------
    def _register_name(self, name: str, module: ProjectModule):
        other = self._by_name.get(name)
        if other is not None and other is not module:
            raise DuplicateModuleError(
                f"Nome de módulo duplicado '{name}': {other.home_directory}, {module.home_directory}")
        self._by_name[name] = module

    def rename(self, module: ProjectModule, old: str, new: str):
        with self._lock:
            self._register_name(new, module)
            if old != new and self._by_name.get(old) is module:
                del self._by_name[old]

    def find(self, name: str) -> Optional[ProjectModule]:
        return self._by_name.get(name)

    def find_or_library(self, name: str) -> Module:
        return self.find(name) or self.get_or_create_library(name)

    def modules(self) -> List[ProjectModule]:
        with self._lock:
            return sorted(self._by_path.values(), key=sort_key)

    def __contains__(self, path: str) -> bool:
        return self.canonical(path) in self._by_path

    def __len__(self):
        return len(self._by_path)
