"""Core UsageGraph class with adjacency list representation."""

from __future__ import annotations

from featureslice.core.models import ImportRef, Symbol, UsageEdge


class UsageGraph:
    """Directed file reference graph plus symbol define/use edges.

    F1 -> F2 when F1 imports a symbol F2 defines (or imports F2 as a module).
    Uses adjacency lists for O(1) neighbor lookup.
    """

    __slots__ = ("_out", "_in", "_symbols", "_uses", "_boundary")

    def __init__(self) -> None:
        self._out: dict[str, list[str]] = {}
        self._in: dict[str, list[str]] = {}
        self._symbols: dict[str, Symbol] = {}
        self._uses: list[UsageEdge] = []
        self._boundary: dict[str, list[ImportRef]] = {}

    def add_file(self, path: str) -> None:
        """Add a file node. O(1)."""
        self._out.setdefault(path, [])
        self._in.setdefault(path, [])

    def define(self, symbol: Symbol) -> None:
        """Record that a file defines a symbol."""
        self.add_file(symbol.file)
        self._symbols[symbol.qualified_name] = symbol

    def use(self, edge: UsageEdge) -> None:
        self._uses.append(edge)

    def add_edge(self, source: str, target: str) -> None:
        """Add a file reference edge, ignoring duplicates. O(out-degree)."""
        self.add_file(source)
        self.add_file(target)
        if target not in self._out[source]:
            self._out[source].append(target)
            self._in[target].append(source)

    def add_boundary(self, ref: ImportRef) -> None:
        """Record an import into an excluded folder. Never part of the graph."""
        self._boundary.setdefault(ref.source, []).append(ref)

    def successors(self, path: str) -> list[str]:
        """Files imported by ``path``. O(1)."""
        return self._out.get(path, [])

    def predecessors(self, path: str) -> list[str]:
        """Files importing ``path``. O(1)."""
        return self._in.get(path, [])

    def boundary_refs(self, path: str) -> list[ImportRef]:
        return self._boundary.get(path, [])

    def symbols_of(self, path: str) -> list[Symbol]:
        """Symbols defined by a file. O(symbols)."""
        return [s for s in self._symbols.values() if s.file == path]

    def users_of(self, qualified_name: str) -> list[str]:
        """Files using a symbol. O(uses)."""
        return sorted({e.referencing_file for e in self._uses if e.symbol == qualified_name})

    @property
    def files(self) -> list[str]:
        return list(self._out)

    @property
    def num_nodes(self) -> int:
        return len(self._out)

    @property
    def num_edges(self) -> int:
        return sum(len(targets) for targets in self._out.values())

    def __contains__(self, path: object) -> bool:
        return path in self._out

    def __repr__(self) -> str:
        return f"UsageGraph(nodes={self.num_nodes}, edges={self.num_edges})"
