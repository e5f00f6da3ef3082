# -*- coding: utf-8 -*-
"""
target.py — Plataformas e tags suportadas por um módulo

Um módulo pode ser biblioteca numa plataforma e ponto de entrada em outra,
por isso a executabilidade é declarada por plataforma.
Um Target sem plataformas é agnóstico: suporta todas.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable


class Platform(str, Enum):
    DESKTOP = "desktop"   # runtime JVM desktop
    WEB = "web"           # transpilado para web
    NATIVE = "native"     # compilado nativo (AOT)

    @classmethod
    def parse(cls, value: str) -> "Platform":
        return cls(str(value).strip().lower())


class TargetTag(str, Enum):
    DESKTOP_UI = "desktop-ui"
    WEB_TOOLKIT = "web-toolkit"
    NATIVE_MOBILE = "native-mobile"
    ANDROID = "android"
    IOS = "ios"

    @classmethod
    def parse(cls, value: str) -> "TargetTag":
        return cls(str(value).strip().lower())


@dataclass(frozen=True)
class Target:
    platforms: FrozenSet[Platform] = field(default_factory=frozenset)
    tags: FrozenSet[TargetTag] = field(default_factory=frozenset)
    executable_platforms: FrozenSet[Platform] = field(default_factory=frozenset)

    @classmethod
    def of(cls, platforms: Iterable[Platform] = (), tags: Iterable[TargetTag] = (),
           executable: Iterable[Platform] = ()) -> "Target":
        return cls(frozenset(platforms), frozenset(tags), frozenset(executable))

    def is_any_platform_supported(self, *platforms: Platform) -> bool:
        if not self.platforms:
            return True
        return any(p in self.platforms for p in platforms)

    def has_tag(self, tag: TargetTag) -> bool:
        return tag in self.tags

    def is_executable(self, platform: Platform | None = None) -> bool:
        """Sem plataforma: executável em alguma plataforma."""
        if platform is None:
            return bool(self.executable_platforms)
        return platform in self.executable_platforms

    def __str__(self):
        plats = ",".join(sorted(p.value for p in self.platforms)) or "*"
        tags = ",".join(sorted(t.value for t in self.tags))
        return f"{plats}[{tags}]" if tags else plats


# Target de módulos sem declaração de plataforma (bibliotecas externas, agregados)
AGNOSTIC = Target()
