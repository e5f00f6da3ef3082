# -*- coding: utf-8 -*-
"""
transaction.py — Transação de escrita de arquivos para operações em lote

Os geradores apenas registram (stage) o conteúdo desejado de cada arquivo.
Nada toca o disco até commit():
  1. arquivos com conteúdo idêntico ao atual são ignorados (não contam como alterados)
  2. todos os alterados são gravados em temporários no diretório de destino
  3. só então cada temporário substitui o destino (os.replace)
Qualquer falha descarta os temporários; se ocorrer no passo 3, os destinos já
substituídos voltam ao conteúdo anterior. Uma exceção dentro do bloco `with`
descarta a transação inteira.
"""

from __future__ import annotations

import os
import threading
from typing import Dict, List, Optional, Tuple

from mbuild.modules import log, utils
from mbuild.modules.errors import TransactionError

logger = log.get_logger("transaction")


class FileTransaction:

    def __init__(self):
        self._staged: Dict[str, str] = {}
        self._lock = threading.Lock()
        self._state = "open"
        self.changed_files: List[str] = []

    # -------------------------
    # Contexto
    # -------------------------
    def __enter__(self) -> "FileTransaction":
        return self

    def __exit__(self, exc_type, exc, tb):
        if self._state == "open":
            if exc_type is not None:
                logger.warning("Transação descartada (%d arquivos): %s", len(self._staged), exc)
            self.rollback()
        return False

    # -------------------------
    # Operações
    # -------------------------
    def stage(self, path: str, content: str):
        path = os.path.abspath(path)
        with self._lock:
            if self._state != "open":
                raise TransactionError(f"Transação já encerrada ({self._state})")
            previous = self._staged.get(path)
            if previous is not None and previous != content:
                raise TransactionError(f"Conteúdos diferentes gerados para {path}")
            self._staged[path] = content

    @property
    def state(self) -> str:
        return self._state

    def staged_paths(self) -> List[str]:
        with self._lock:
            return sorted(self._staged)

    def pending_changes(self) -> List[Tuple[str, str]]:
        """(path, conteúdo) dos arquivos cujo conteúdo difere do disco"""
        return [(p, c) for p, c, _ in self._diff()]

    def _diff(self) -> List[Tuple[str, str, Optional[str]]]:
        with self._lock:
            items = sorted(self._staged.items())
        out = []
        for path, content in items:
            current = utils.read_text(path)
            if current != content:
                out.append((path, content, current))
        return out

    def commit(self) -> int:
        """Grava os arquivos alterados; retorna quantos foram alterados"""
        if self._state != "open":
            raise TransactionError(f"Transação já encerrada ({self._state})")
        changes = self._diff()

        created_dirs = []
        temps: List[Tuple[str, str, Optional[str]]] = []
        try:
            for path, content, original in changes:
                d = os.path.dirname(path)
                while d and not os.path.isdir(d) and d not in created_dirs:
                    created_dirs.append(d)
                    d = os.path.dirname(d)
                temps.append((utils.stage_temp(path, content), path, original))
        except BaseException:
            self._discard(temps, [], created_dirs)
            raise

        replaced = []
        try:
            for entry in temps:
                tmp, path, _ = entry
                os.replace(tmp, path)
                replaced.append(entry)
                logger.debug("Atualizado: %s", path)
        except BaseException:
            self._discard(temps[len(replaced):], replaced, created_dirs)
            raise

        self.changed_files = [p for _, p, _ in temps]
        self._state = "committed"
        return len(self.changed_files)

    def _discard(self, temps, replaced, created_dirs):
        """
        Desfaz um commit interrompido: remove os temporários restantes e
        devolve aos arquivos já substituídos o conteúdo anterior.
        Se algum não puder ser restaurado a transação fica 'partial'.
        """
        for tmp, _, _ in temps:
            if os.path.exists(tmp):
                os.unlink(tmp)
        not_restored = []
        for _, path, original in reversed(replaced):
            try:
                if original is None:
                    os.unlink(path)
                else:
                    utils.atomic_write_text(path, original)
            except OSError as e:
                logger.error("Não foi possível restaurar %s: %s", path, e)
                not_restored.append(path)
        for d in sorted(created_dirs, key=len, reverse=True):
            if os.path.isdir(d) and not os.listdir(d):
                os.rmdir(d)
        if not_restored:
            with self._lock:
                self._staged.clear()
                self._state = "partial"
            self.changed_files = not_restored
            raise TransactionError(
                f"Commit interrompido; gravados e não restaurados: {', '.join(not_restored)}")
        self.rollback()

    def rollback(self):
        with self._lock:
            self._staged.clear()
            self._state = "rolled_back"

    def executed_operations_count(self) -> int:
        return len(self.changed_files)


__all__ = ["FileTransaction"]
