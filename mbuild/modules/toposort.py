# -*- coding: utf-8 -*-
"""
toposort.py — Ordenação topológica determinística

sort_descending(): módulos mais dependentes primeiro (consumidor antes do fornecedor).
É a ordem usada nos merges onde "a primeira ocorrência de uma chave vence".
Empates são desfeitos pelo nome declarado, nunca pela ordem de inserção.
"""

from __future__ import annotations

import heapq
from typing import Callable, Dict, Hashable, Iterable, List, Mapping, Optional, Set

from mbuild.modules import log
from mbuild.modules.errors import CycleError

logger = log.get_logger("toposort")


def _default_key(node):
    name = getattr(node, "name", None)
    if name is None:
        return (str(node), "", "")
    return (name, getattr(node, "group", None) or "", getattr(node, "identity", ""))


def _normalize(graph: Mapping) -> Dict[Hashable, List[Hashable]]:
    """Inclui como nós também os fornecedores que não aparecem como chave"""
    out: Dict[Hashable, List[Hashable]] = {}
    for node, deps in graph.items():
        out.setdefault(node, [])
        for d in deps:
            if d not in out[node]:
                out[node].append(d)
            out.setdefault(d, [])
    return out


def find_cycles(graph: Mapping, nodes: Optional[Iterable] = None) -> List[Set]:
    """
    Componentes fortemente conexos com ciclo (Tarjan, iterativo), restritos a `nodes`.
    """
    adj = _normalize(graph)
    subset = set(nodes) if nodes is not None else set(adj)
    index: Dict = {}
    low: Dict = {}
    on_stack: Set = set()
    stack: List = []
    counter = 0
    cycles: List[Set] = []

    for start in subset:
        if start in index:
            continue
        work = [(start, iter([d for d in adj[start] if d in subset]))]
        index[start] = low[start] = counter
        counter += 1
        stack.append(start)
        on_stack.add(start)
        while work:
            node, it = work[-1]
            advanced = False
            for d in it:
                if d not in index:
                    index[d] = low[d] = counter
                    counter += 1
                    stack.append(d)
                    on_stack.add(d)
                    work.append((d, iter([x for x in adj[d] if x in subset])))
                    advanced = True
                    break
                if d in on_stack:
                    low[node] = min(low[node], index[d])
            if advanced:
                continue
            work.pop()
            if work:
                parent = work[-1][0]
                low[parent] = min(low[parent], low[node])
            if low[node] == index[node]:
                component = set()
                while True:
                    x = stack.pop()
                    on_stack.discard(x)
                    component.add(x)
                    if x == node:
                        break
                if len(component) > 1 or node in adj[node]:
                    cycles.append(component)
    return cycles


def sort_descending(graph: Mapping, key: Optional[Callable] = None) -> List:
    """
    Lineariza o grafo (nó -> dependências diretas) com os consumidores antes
    dos fornecedores. Levanta CycleError nomeando todos os membros dos ciclos.
    """
    key = key or _default_key
    adj = _normalize(graph)

    # rank estável de cada nó pela chave; o heap trabalha sobre ranks
    ordered = sorted(adj, key=key)
    rank = {node: i for i, node in enumerate(ordered)}

    consumers = {node: 0 for node in adj}
    for node, deps in adj.items():
        for d in deps:
            consumers[d] += 1

    heap = [rank[n] for n, c in consumers.items() if c == 0]
    heapq.heapify(heap)
    order: List = []
    while heap:
        node = ordered[heapq.heappop(heap)]
        order.append(node)
        for d in adj[node]:
            consumers[d] -= 1
            if consumers[d] == 0:
                heapq.heappush(heap, rank[d])

    if len(order) != len(adj):
        placed = set(order)
        remaining = [n for n in ordered if n not in placed]
        members = set()
        for component in find_cycles(adj, remaining):
            members.update(component)
        names = [getattr(m, "name", str(m)) for m in members]
        logger.debug("Ciclo detectado: %s", sorted(names))
        raise CycleError(names)
    return order


def sort_ascending(graph: Mapping, key: Optional[Callable] = None) -> List:
    """Fornecedores antes dos consumidores (ordem de build)"""
    return list(reversed(sort_descending(graph, key)))


__all__ = ["sort_descending", "sort_ascending", "find_cycles"]
