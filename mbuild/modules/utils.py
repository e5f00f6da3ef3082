import os
import shutil
import tempfile
import threading
import yaml
import json
from typing import Any, Callable, Generic, Iterable, Iterator, List, Optional, TypeVar

T = TypeVar("T")
R = TypeVar("R")


# -------------------------
# Sistema de arquivos
# -------------------------
def ensure_dir(path: str):
    """Cria diretório se não existir"""
    os.makedirs(path, exist_ok=True)


def rm(path: str):
    """Remove arquivo ou diretório"""
    if os.path.isdir(path):
        shutil.rmtree(path)
    elif os.path.isfile(path):
        os.remove(path)


def read_text(path: str) -> Optional[str]:
    """Conteúdo do arquivo, ou None se não existir"""
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except FileNotFoundError:
        return None


def stage_temp(path: str, content: str) -> str:
    """
    Grava content num arquivo temporário no mesmo diretório de path
    (mesmo filesystem, para que os.replace seja atômico). Retorna o temporário.
    """
    directory = os.path.dirname(os.path.abspath(path))
    ensure_dir(directory)
    fd, tmp = tempfile.mkstemp(prefix="." + os.path.basename(path) + ".", suffix=".tmp", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
    except BaseException:
        os.unlink(tmp)
        raise
    return tmp


def atomic_write_text(path: str, content: str):
    """Escrita completa em temporário e depois replace atômico"""
    tmp = stage_temp(path, content)
    try:
        os.replace(tmp, path)
    except BaseException:
        os.unlink(tmp)
        raise


# -------------------------
# Leitura de configs
# -------------------------
def load_yaml(path: str) -> Any:
    """Carrega YAML (qualquer tipo; quem chama valida)"""
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def load_json(path: str) -> dict:
    """Carrega JSON em dict"""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


# -------------------------
# Avaliação preguiçosa
# -------------------------
_UNSET = object()


class Lazy(Generic[T]):
    """
    Valor calculado no máximo uma vez, no primeiro get().
    Protegido por lock para leitores concorrentes (batch update em threads).
    """

    def __init__(self, compute: Callable[[], T]):
        self._compute = compute
        self._value: Any = _UNSET
        self._lock = threading.Lock()

    def get(self) -> T:
        value = self._value
        if value is _UNSET:
            with self._lock:
                if self._value is _UNSET:
                    self._value = self._compute()
                value = self._value
        return value

    def is_computed(self) -> bool:
        return self._value is not _UNSET


class LazySequence(Generic[T]):
    """
    Sequência finita e reiniciável: o factory só roda na primeira iteração,
    o resultado fica em cache e cada item é produzido exatamente uma vez.
    filter e map devolvem novas sequências preguiçosas, sem efeitos colaterais.
    """

    def __init__(self, factory: Callable[[], Iterable[T]], name: Optional[str] = None):
        self._items: Lazy[tuple] = Lazy(lambda: tuple(factory()))
        self.name = name

    @classmethod
    def of(cls, items: Iterable[T]) -> "LazySequence[T]":
        items = tuple(items)
        return cls(lambda: items)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items.get())

    def __len__(self) -> int:
        return len(self._items.get())

    def __bool__(self) -> bool:
        return len(self) > 0

    def filter(self, predicate: Callable[[T], bool]) -> "LazySequence[T]":
        return LazySequence(lambda: (x for x in self if predicate(x)))

    def map(self, fn: Callable[[T], R]) -> "LazySequence[R]":
        return LazySequence(lambda: (fn(x) for x in self))

    def first(self) -> Optional[T]:
        for x in self:
            return x
        return None

    def count(self) -> int:
        return len(self)

    def is_empty(self) -> bool:
        return len(self) == 0

    def to_list(self) -> List[T]:
        return list(self)

    def __repr__(self):
        label = self.name or "LazySequence"
        if not self._items.is_computed():
            return f"<{label} (não avaliada)>"
        return f"<{label} {list(self._items.get())!r}>"
