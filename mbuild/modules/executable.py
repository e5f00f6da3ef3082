# -*- coding: utf-8 -*-
"""
executable.py — Resolução do módulo executável de uma invocação

- Selection: flags nomeadas de plataforma/empacotamento (web, desktop_archive, ...)
- ExecutableResolver.resolve(): encontra o único módulo executável que casa com a seleção
  * busca a partir do módulo de trabalho; se vazio, amplia para a raiz do repositório
  * native_only filtra os candidatos depois da ampliação
  * mais de um candidato -> AmbiguousExecutableError (nunca chuta)
- ExecutableResolver.locate(): caminhos dos artefatos de todos os candidatos, sem
  exigir um único (opção --locate)
- executable_paths(): caminhos esperados dos artefatos em target/

Computação pura sobre metadados já carregados: nenhuma escrita no filesystem.
"""

from __future__ import annotations

import os
import platform as _platform
from dataclasses import dataclass, fields, replace
from typing import Dict, List, Optional, Set, Tuple

from mbuild.modules import log
from mbuild.modules.errors import AmbiguousExecutableError, ExecutableNotFoundError
from mbuild.modules.target import Platform, TargetTag
from mbuild.modules.tree import ProjectModule
from mbuild.modules.utils import LazySequence

logger = log.get_logger("executable")

NATIVE_FLAGS = ("native_desktop", "native_android", "native_ios")
DESKTOP_FLAGS = ("desktop_archive", "desktop_package")

ALIASES = {
    "desktop": DESKTOP_FLAGS,
    "native": NATIVE_FLAGS,
    "archive": ("desktop_archive",),
    "fatjar": ("desktop_archive",),
    "package": ("desktop_package",),
    "android": ("native_android",),
    "ios": ("native_ios",),
}


@dataclass(frozen=True)
class Selection:
    """Combinações plataforma/empacotamento pedidas para esta invocação"""
    web: bool = False
    desktop_archive: bool = False
    desktop_package: bool = False
    native_desktop: bool = False
    native_android: bool = False
    native_ios: bool = False
    # mantém apenas módulos com a tag native-mobile
    native_only: bool = False

    @classmethod
    def from_names(cls, *names: str) -> "Selection":
        flags = {}
        valid = {f.name for f in fields(cls)}
        for raw in names:
            name = raw.strip().lower().replace("-", "_")
            for flag in ALIASES.get(name, (name,)):
                if flag not in valid:
                    raise ValueError(f"Seleção desconhecida: {raw}")
                flags[flag] = True
        return cls(**flags)

    def enabled(self) -> Set[str]:
        return {f.name for f in fields(self) if f.name != "native_only" and getattr(self, f.name)}

    def is_empty(self) -> bool:
        return not self.enabled()

    @property
    def desktop(self) -> bool:
        return self.desktop_archive or self.desktop_package

    @property
    def native(self) -> bool:
        return any(getattr(self, f) for f in NATIVE_FLAGS)

    def with_flags(self, **flags) -> "Selection":
        return replace(self, **flags)


def _is_native(module) -> bool:
    target = module.target
    return target.is_executable(Platform.NATIVE) or (
        target.is_executable(Platform.DESKTOP) and target.has_tag(TargetTag.NATIVE_MOBILE))


def module_flags(module) -> Set[str]:
    """Flags de seleção que fazem este módulo ser candidato"""
    target = module.target
    flags: Set[str] = set()
    if target.is_executable(Platform.WEB):
        flags.add("web")
    if _is_native(module):
        flags.add("native_desktop")
        android, ios = target.has_tag(TargetTag.ANDROID), target.has_tag(TargetTag.IOS)
        if android or not ios:
            flags.add("native_android")
        if ios or not android:
            flags.add("native_ios")
    elif target.is_executable(Platform.DESKTOP):
        flags.update(DESKTOP_FLAGS)
    return flags


def matches(module, selection: Selection) -> bool:
    """Candidato pela seleção; native_only é aplicado depois da busca (ver resolve)"""
    if not module.is_executable():
        return False
    return bool(module_flags(module) & selection.enabled())


def native_mobile_only(candidates: LazySequence) -> LazySequence:
    return candidates.filter(lambda m: m.target.has_tag(TargetTag.NATIVE_MOBILE))


@dataclass(frozen=True)
class Resolution:
    module: ProjectModule
    widened: bool = False
    searched_from: Optional[ProjectModule] = None


class ExecutableResolver:

    def find_executable_modules(self, starting_module: ProjectModule,
                                selection: Selection) -> LazySequence[ProjectModule]:
        return starting_module.this_and_children_in_depth().filter(lambda m: matches(m, selection))

    def search(self, starting_module: ProjectModule,
               selection: Selection) -> Tuple[LazySequence[ProjectModule], bool, ProjectModule]:
        """(candidatos, ampliou?, módulo de onde a busca partiu)"""
        candidates = self.find_executable_modules(starting_module, selection)
        if candidates.is_empty() and not starting_module.is_root:
            root = starting_module.root_module
            wide = self.find_executable_modules(root, selection)
            if not wide.is_empty():
                logger.info("NOTE: nenhum módulo executável em %s, buscando no repositório inteiro",
                            starting_module.name)
                return wide, True, root
        return candidates, False, starting_module

    def resolve(self, starting_module: ProjectModule, selection: Selection,
                strict: bool = False) -> Optional[Resolution]:
        """
        Único módulo executável que casa com a seleção.
        native_only filtra os candidatos já encontrados, sem nova ampliação.
        Zero candidatos: None, ou ExecutableNotFoundError se strict.
        """
        candidates, widened, searched_from = self.search(starting_module, selection)
        if selection.native_only:
            candidates = native_mobile_only(candidates)

        if candidates.count() > 1:
            raise AmbiguousExecutableError(m.name for m in candidates)
        module = candidates.first()
        if module is None:
            if strict:
                raise ExecutableNotFoundError(
                    f"Nenhum módulo executável encontrado para {sorted(selection.enabled()) or 'seleção vazia'}")
            return None
        logger.debug("Executável resolvido: %s", module.name)
        return Resolution(module, widened, searched_from)

    def locate(self, starting_module: ProjectModule, selection: Selection,
               family: Optional[str] = None) -> Tuple[Dict[str, List[str]], bool]:
        """
        Caminhos dos artefatos de todos os candidatos (nome -> caminhos) e se a
        busca foi ampliada. Vários candidatos não são ambiguidade aqui.
        """
        candidates, widened, _ = self.search(starting_module, selection)
        located = {m.name: executable_paths(m, selection, family) for m in candidates}
        return located, widened


# -------------------------
# Caminhos dos artefatos
# -------------------------
def os_family() -> str:
    system = _platform.system().lower()
    if system.startswith("win"):
        return "windows"
    if system == "darwin":
        return "macos"
    return "linux"


def executable_paths(module: ProjectModule, selection: Selection, family: Optional[str] = None) -> List[str]:
    """Caminhos esperados dos artefatos executáveis do módulo para a seleção"""
    family = family or os_family()
    target = module.target_directory
    name, version = module.name, module.version
    app = name
    paths: List[str] = []

    if module.is_executable(Platform.WEB) and selection.web:
        paths.append(os.path.join(target, f"{name}-{version}", name.replace("-", "_"), "index.html"))

    if _is_native(module):
        native_dir = os.path.join(target, "native")
        flags = module_flags(module)
        if family == "linux":
            if selection.native_desktop:
                paths.append(os.path.join(native_dir, "x86_64-linux", app))
            if selection.native_android and "native_android" in flags:
                paths.append(os.path.join(native_dir, "aarch64-android", "gvm", app + ".apk"))
        elif family == "macos":
            if selection.native_desktop:
                paths.append(os.path.join(native_dir, "x86_64-darwin", app))
            if selection.native_ios and "native_ios" in flags:
                paths.append(os.path.join(native_dir, "arm64-ios", app + ".ipa"))
        elif family == "windows":
            if selection.native_desktop:
                paths.append(os.path.join(native_dir, "x86_64-windows", app + ".exe"))
    elif module.is_executable(Platform.DESKTOP):
        if selection.desktop_archive:
            paths.append(os.path.join(target, f"{name}-{version}-fat.jar"))
        if selection.desktop_package:
            suffix = {"macos": ".app", "windows": ".exe"}.get(family, "")
            paths.append(os.path.join(target, "package", app, app + suffix))
    return paths


__all__ = [
    "Selection", "Resolution", "ExecutableResolver",
    "module_flags", "matches", "native_mobile_only", "executable_paths", "os_family",
]
