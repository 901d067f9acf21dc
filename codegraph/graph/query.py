from typing import List, Optional
from collections import deque

from ..config import settings
from ..types import EdgeType, GraphStats, IMPORT_EDGE_TYPES, NodeType
from .store import CodeGraph


class GraphQuery:
    """Derived read operations over a CodeGraph."""

    def __init__(self, graph: CodeGraph):
        self.graph = graph

    def callees(self, function_id: str) -> List[str]:
        """Functions called by function_id."""
        return [e.target for e in self.graph.outgoing(function_id) if e.type == EdgeType.CALLS]

    def callers(self, function_id: str) -> List[str]:
        """Functions that call function_id."""
        return [e.source for e in self.graph.incoming(function_id) if e.type == EdgeType.CALLS]

    def imports_of(self, module_id: str) -> List[str]:
        """Modules imported, used or aliased by module_id."""
        return [e.target for e in self.graph.outgoing(module_id) if e.type in IMPORT_EDGE_TYPES]

    def imported_by(self, module_id: str) -> List[str]:
        """Modules that import, use or alias module_id."""
        return [e.source for e in self.graph.incoming(module_id) if e.type in IMPORT_EDGE_TYPES]

    def functions_of(self, module_id: str) -> List[str]:
        """Functions defined by module_id."""
        with self.graph.locked():
            functions = []
            for edge in self.graph.outgoing(module_id):
                if edge.type != EdgeType.DEFINES:
                    continue
                target = self.graph.get_node(edge.target)
                if target is not None and target.type == NodeType.FUNCTION:
                    functions.append(edge.target)
            return functions

    def find_path(self, source: str, target: str, max_depth: Optional[int] = None) -> Optional[List[str]]:
        """
        Shortest path from source to target over edges of any type.

        Returns the node ids including both endpoints, or None when target
        is not reachable within max_depth hops. Neighbors are expanded in
        sorted order so ties between equally short paths are reproducible.
        """
        if max_depth is None:
            max_depth = settings.path_max_depth
        if source == target:
            return [source]

        with self.graph.locked():
            queue = deque([(source, [source])])
            visited = {source}

            while queue:
                current, path = queue.popleft()
                if len(path) - 1 >= max_depth:
                    continue

                neighbors = sorted({e.target for e in self.graph.outgoing(current)})
                for neighbor in neighbors:
                    if neighbor in visited:
                        continue
                    if neighbor == target:
                        return path + [neighbor]
                    visited.add(neighbor)
                    queue.append((neighbor, path + [neighbor]))

        return None

    def stats(self) -> GraphStats:
        """Get graph statistics."""
        return self.graph.stats()
