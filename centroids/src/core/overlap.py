"""Pile-up suppression over groups of overlapping fitting windows."""

from __future__ import annotations

from typing import Sequence, TypeVar

from centroids.src.core.types import ParameterSet, Seed

T = TypeVar("T")


class _DisjointSet:
    def __init__(self, size: int):
        self.parent = list(range(size))

    def find(self, i: int) -> int:
        while self.parent[i] != i:
            self.parent[i] = self.parent[self.parent[i]]
            i = self.parent[i]
        return i

    def union(self, a: int, b: int) -> None:
        ra, rb = self.find(a), self.find(b)
        if ra != rb:
            self.parent[max(ra, rb)] = min(ra, rb)


def windows_overlap(a: Seed, b: Seed, box: int) -> bool:
    """True if the two (2*box+1)^2 windows share at least one pixel."""
    span = 2 * box
    return a.frame == b.frame and abs(a.x - b.x) <= span and abs(a.y - b.y) <= span


class OverlapResolver:
    def group(self, seeds: Sequence[Seed], params: ParameterSet) -> list[list[int]]:
        """Connected overlap groups as lists of indices, ordered by first member."""
        n = len(seeds)
        dsu = _DisjointSet(n)
        span = 2 * params.box
        order = sorted(range(n), key=lambda i: (seeds[i].frame, seeds[i].y, seeds[i].x))
        for pos, i in enumerate(order):
            si = seeds[i]
            for j in order[pos + 1:]:
                sj = seeds[j]
                if sj.frame != si.frame or sj.y - si.y > span:
                    break
                if abs(sj.x - si.x) <= span:
                    dsu.union(i, j)

        groups: dict[int, list[int]] = {}
        for i in range(n):
            groups.setdefault(dsu.find(i), []).append(i)
        return sorted(groups.values(), key=lambda g: g[0])

    def resolve(self, candidates: Sequence[T], params: ParameterSet) -> list[T]:
        """
        Drop every group larger than overlap_max; keep the rest in input
        order. Candidates must expose the originating ``seed``.
        """
        if not candidates:
            return []
        groups = self.group([c.seed for c in candidates], params)
        keep = [False] * len(candidates)
        for members in groups:
            if len(members) <= params.overlap_max:
                for i in members:
                    keep[i] = True
        return [c for c, k in zip(candidates, keep) if k]
