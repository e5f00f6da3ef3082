from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

from mbuild.modules import utils
from mbuild.modules.utils import Lazy, LazySequence


def test_lazy_computes_once_across_threads():
    calls = []
    gate = threading.Event()

    def compute():
        gate.wait(1)
        calls.append(1)
        return "valor"

    lazy = Lazy(compute)
    assert not lazy.is_computed()
    with ThreadPoolExecutor(max_workers=4) as ex:
        futures = [ex.submit(lazy.get) for _ in range(8)]
        gate.set()
        results = [f.result() for f in futures]
    assert results == ["valor"] * 8
    assert calls == [1]
    assert lazy.is_computed()


def test_lazy_sequence_is_restartable_and_produces_items_once():
    produced = []

    def factory():
        for i in range(3):
            produced.append(i)
            yield i

    seq = LazySequence(factory, name="nums")
    assert "não avaliada" in repr(seq)
    assert list(seq) == [0, 1, 2]
    assert list(seq) == [0, 1, 2]
    assert produced == [0, 1, 2]
    assert seq.count() == 3
    assert seq.first() == 0


def test_filter_and_map_are_lazy():
    seen = []
    seq = LazySequence.of([1, 2, 3, 4])
    evens = seq.filter(lambda x: seen.append(x) or x % 2 == 0)
    assert seen == []
    assert evens.map(lambda x: x * 10).to_list() == [20, 40]
    assert LazySequence.of([]).is_empty()
    assert LazySequence.of([]).first() is None


def test_atomic_write_replaces_whole_file(tmp_path):
    target = tmp_path / "dir" / "file.txt"
    utils.atomic_write_text(str(target), "primeiro")
    utils.atomic_write_text(str(target), "segundo")
    assert target.read_text() == "segundo"
    assert [p.name for p in target.parent.iterdir()] == ["file.txt"]
    assert utils.read_text(str(tmp_path / "absent")) is None
