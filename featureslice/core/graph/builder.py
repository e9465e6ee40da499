"""Build a UsageGraph from a SourceIndex."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from featureslice.core.graph.base import UsageGraph
from featureslice.core.models import UsageEdge

if TYPE_CHECKING:
    from featureslice.core.indexer import SourceIndex

logger = logging.getLogger(__name__)


def build_usage_graph(index: SourceIndex) -> UsageGraph:
    """Merge per-file index records into one graph. O(V + E).

    This is the sequential barrier after parallel parsing: symbol uses can
    only be resolved once every file's exports are known.
    """
    graph = UsageGraph()

    for source_file in index:
        graph.add_file(source_file.path)
        for symbol in source_file.exports:
            graph.define(symbol)

    for source_file in index:
        for ref in source_file.imports:
            if ref.target is None:
                continue
            if ref.target in index.excluded_paths:
                logger.debug("Boundary import %s -> %s", ref.source, ref.target)
                graph.add_boundary(ref)
                continue

            target = index.get(ref.target)
            if target is None:
                continue
            graph.add_edge(ref.source, ref.target)

            if ref.name == "*":
                for symbol in target.exports:
                    graph.use(UsageEdge(symbol.qualified_name, ref.source))
            elif ref.name in target.exported_names():
                graph.use(UsageEdge(f"{target.path}#{ref.name}", ref.source))
            else:
                logger.debug("%s imports %r, not exported by %s", ref.source, ref.name, target.path)

    logger.info("Built %r", graph)
    return graph
