# -*- coding: utf-8 -*-
"""
errors.py — Hierarquia de exceções do mbuild

- ConfigurationError: declaração ausente/malformada, ciclo no grafo, nomes duplicados
- ResolutionError: símbolo não resolvido, executável ambíguo ou não encontrado
- CacheError: entrada de cache corrompida ou ilegível (sempre recuperada localmente)
"""

from __future__ import annotations

from typing import Iterable, List, Tuple


class MbuildError(Exception):
    """Base de todos os erros do mbuild"""
    pass


# -------------------------
# Configuração
# -------------------------
class ConfigurationError(MbuildError):
    """Árvore de módulos ou grafo de dependências inválido"""
    pass


class MetaError(ConfigurationError):
    """Erro ao carregar ou validar module.meta"""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(f"{message} ({path})" if path else message)
        self.path = path


class DuplicateModuleError(ConfigurationError):
    pass


class CycleError(ConfigurationError):
    """Dependência cíclica; `members` lista todos os módulos envolvidos"""

    def __init__(self, members: Iterable[str]):
        self.members: List[str] = sorted(members)
        super().__init__("Dependência cíclica entre os módulos: " + ", ".join(self.members))


# -------------------------
# Resolução
# -------------------------
class ResolutionError(MbuildError):
    pass


class UnresolvedSymbolError(ResolutionError):
    """
    Referências de código que não pertencem a nenhum módulo conhecido.
    `references` é uma lista ordenada de (módulo consumidor, símbolo).
    """

    def __init__(self, references: Iterable[Tuple[str, str]]):
        self.references: List[Tuple[str, str]] = sorted(set(references))
        lines = [f"  {module}: {symbol}" for module, symbol in self.references]
        super().__init__("Símbolos não resolvidos:\n" + "\n".join(lines))


class AmbiguousExecutableError(ResolutionError):
    def __init__(self, candidates: Iterable[str]):
        self.candidates: List[str] = list(candidates)
        super().__init__(
            "Módulos executáveis ambíguos. Escolha um dos seguintes:\n"
            + "\n".join(f"-M {name}" for name in self.candidates)
        )


class ExecutableNotFoundError(ResolutionError):
    pass


# -------------------------
# Cache / escrita
# -------------------------
class CacheError(MbuildError):
    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class TransactionError(MbuildError):
    pass


__all__ = [
    "MbuildError", "ConfigurationError", "MetaError", "DuplicateModuleError", "CycleError",
    "ResolutionError", "UnresolvedSymbolError", "AmbiguousExecutableError",
    "ExecutableNotFoundError", "CacheError", "TransactionError",
]
