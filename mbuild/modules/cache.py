#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
cache.py — Cache persistente dos caminhos transitivos de configuração

Para um módulo, calcula o mapa ordenado nome do módulo -> diretório de conf de
todos os módulos alcançáveis pelas dependências (mais dependentes primeiro) e
persiste em <cache_dir>/<home com '/' -> '~'>-transitive-conf.txt:

    nome-do-modulo:file:///caminho/src/main/conf
    outro:jar:file:///repo/lib.jar!/conf/

URIs permitem recuperar o caminho mesmo dentro de um arquivo zip/jar.
A gravação é atômica (temporário + replace): uma entrada nunca fica truncada.
Entrada corrompida -> CacheError, tratado aqui recalculando.
"""

from __future__ import annotations

import os
import threading
import zipfile
from pathlib import Path
from typing import Dict, Optional, Union
from urllib.parse import urlparse
from urllib.request import url2pathname

from mbuild.modules import config, log, utils
from mbuild.modules.errors import CacheError

logger = log.get_logger("cache")

PathLike = Union[Path, zipfile.Path]

CACHE_SUFFIX = "-transitive-conf.txt"


# -------------------------
# URI <-> caminho
# -------------------------
def _file_uri_to_path(uri: str) -> str:
    parsed = urlparse(uri)
    if parsed.scheme != "file":
        raise ValueError(f"URI não suportada: {uri}")
    return url2pathname(parsed.path)


def path_to_uri(path: PathLike) -> str:
    if isinstance(path, zipfile.Path):
        archive = Path(os.path.abspath(path.root.filename)).as_uri()
        return f"jar:{archive}!/{path.at}"
    return Path(os.path.abspath(path)).as_uri()


def uri_to_path(uri: str) -> PathLike:
    if uri.startswith("jar:"):
        archive_uri, sep, entry = uri[len("jar:"):].partition("!/")
        if not sep:
            raise ValueError(f"URI de arquivo compactado sem '!/': {uri}")
        return zipfile.Path(_file_uri_to_path(archive_uri), at=entry)
    return Path(_file_uri_to_path(uri))


# -------------------------
# Serialização
# -------------------------
def serialize(mapping: Dict[str, PathLike]) -> str:
    lines = [f"{name}:{path_to_uri(path)}" for name, path in mapping.items()]
    return "\n".join(lines) + ("\n" if lines else "")


def deserialize(text: str, source: Optional[str] = None) -> Dict[str, PathLike]:
    out: Dict[str, PathLike] = {}
    for lineno, line in enumerate(text.splitlines(), 1):
        if not line.strip():
            continue
        name, sep, uri = line.partition(":")
        if not sep or not name or not uri:
            raise CacheError(f"Linha {lineno} inválida no cache: {line!r}", source)
        try:
            out[name] = uri_to_path(uri)
        except (ValueError, OSError, zipfile.BadZipFile) as e:
            raise CacheError(f"URI inválida na linha {lineno}: {e}", source) from e
    return out


class TransitivePathCache:
    """
    Mapa transitivo nome -> diretório de conf, por módulo.
    - builder: DependencyGraphBuilder da invocação
    - cache_dir: diretório oculto do cache (config 'cache_dir')
    """

    def __init__(self, builder, cache_dir: Optional[str] = None):
        self.builder = builder
        self.cache_dir = cache_dir or config.get_path("cache_dir")
        self._memo: Dict[str, Dict[str, PathLike]] = {}
        self._lock = threading.Lock()

    def cache_file(self, module) -> str:
        name = os.path.abspath(module.home_directory).replace(os.sep, "~") + CACHE_SUFFIX
        return os.path.join(self.cache_dir, name)

    def get_or_compute(self, module, can_use_cache: bool = True, tx=None) -> Dict[str, PathLike]:
        """
        Com tx (FileTransaction), uma entrada recalculada é apenas registrada na
        transação e não fica memorizada: só chega ao disco no commit do lote.
        """
        key = module.home_directory
        if can_use_cache:
            with self._lock:
                cached = self._memo.get(key)
            if cached is not None:
                return dict(cached)
            try:
                mapping = self.read(module)
            except CacheError as e:
                logger.warning("Cache ignorado para %s: %s", module.name, e)
                mapping = None
            if mapping is not None:
                logger.debug("Cache lido para %s (%d módulos)", module.name, len(mapping))
                with self._lock:
                    self._memo[key] = mapping
                return dict(mapping)

        mapping = self.compute(module)
        if tx is not None:
            tx.stage(self.cache_file(module), serialize(mapping))
            return dict(mapping)
        try:
            self.write(module, mapping)
        except OSError as e:
            logger.warning("Falha ao gravar cache de %s: %s", module.name, e)
        with self._lock:
            self._memo[key] = mapping
        return dict(mapping)

    def compute(self, module) -> Dict[str, PathLike]:
        """Módulos transitivos com diretório de conf, mais dependentes primeiro"""
        order = self.builder.build_transitive_graph(module).sort_descending()
        mapping: Dict[str, PathLike] = {}
        for m in order:
            if m.is_project_module and m.has_conf_directory:
                mapping[m.name] = Path(m.conf_directory)
        return mapping

    def read(self, module) -> Optional[Dict[str, PathLike]]:
        """Entrada persistida, None se não existir; CacheError se ilegível/corrompida"""
        path = self.cache_file(module)
        try:
            text = utils.read_text(path)
        except (OSError, UnicodeDecodeError) as e:
            raise CacheError(f"Cache ilegível: {e}", path) from e
        if text is None:
            return None
        return deserialize(text, path)

    def write(self, module, mapping: Dict[str, PathLike]):
        utils.ensure_dir(self.cache_dir)
        utils.atomic_write_text(self.cache_file(module), serialize(mapping))

    def owns(self, path: str) -> bool:
        """path é uma entrada deste cache"""
        return (os.path.dirname(os.path.abspath(path)) == os.path.abspath(self.cache_dir)
                and path.endswith(CACHE_SUFFIX))

    def invalidate(self, module):
        with self._lock:
            self._memo.pop(module.home_directory, None)
        utils.rm(self.cache_file(module))

    def clear(self):
        with self._lock:
            self._memo.clear()
        if os.path.isdir(self.cache_dir):
            for fn in os.listdir(self.cache_dir):
                if fn.endswith(CACHE_SUFFIX):
                    os.remove(os.path.join(self.cache_dir, fn))


__all__ = [
    "TransitivePathCache", "serialize", "deserialize",
    "path_to_uri", "uri_to_path", "CACHE_SUFFIX",
]
