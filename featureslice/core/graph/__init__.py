"""
Usage graph data structures and algorithms.

This module provides in-memory graph operations over file references:

Data Structures:
    - UsageGraph: File adjacency lists plus symbol define/use edges
    - Condensation: Strongly connected file groups collapsed to single nodes
    - ImportChain: A sequence of files linked by imports

Algorithms:
    - analysis: Tarjan SCCs, condensation, cycle listing
    - traversal: BFS reachability over the condensation or the file graph
    - pathfinding: BFS shortest import chain

Building:
    - build_usage_graph(): Merge a SourceIndex into one graph (sequential barrier)
"""

from featureslice.core.graph.analysis import condense, find_cycles
from featureslice.core.graph.base import UsageGraph
from featureslice.core.graph.builder import build_usage_graph
from featureslice.core.graph.models import Condensation, ImportChain

__all__ = [
    "Condensation",
    "ImportChain",
    "UsageGraph",
    "build_usage_graph",
    "condense",
    "find_cycles",
]
