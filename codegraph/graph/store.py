from typing import List, Dict, Any, Optional, Iterator
from contextlib import contextmanager
import threading

from ..types import GraphNode, GraphEdge, GraphStats, NodeType
from ..utils.logger import app_logger


class CodeGraph:
    """In-memory typed, directed multigraph.

    Nodes are keyed by caller-chosen string ids. Edges are appended without
    validation or de-duplication, and indexed by source and by target so
    neighborhood lookups cost O(degree). Every read and write holds the same
    re-entrant lock; use ``locked()`` to keep it across several calls.
    """

    def __init__(self, name: str = "code_graph"):
        self.name = name
        self.logger = app_logger.bind(component="graph_store", graph=name)
        self._lock = threading.RLock()
        self._data = self._initialize_data()

    def _initialize_data(self) -> Dict[str, Any]:
        """Initialize empty data structure."""
        return {
            "nodes": {},
            "edges": [],
            "outgoing": {},
            "incoming": {},
        }

    @contextmanager
    def locked(self) -> Iterator["CodeGraph"]:
        """Hold the graph lock for a multi-step read or write."""
        with self._lock:
            yield self

    def add_node(self, node: GraphNode) -> GraphNode:
        """Add a node, replacing any node with the same id."""
        with self._lock:
            self._data["nodes"][node.id] = node
        return node

    def add_edge(self, edge: GraphEdge) -> GraphEdge:
        """Append an edge. Endpoints are not required to exist."""
        with self._lock:
            self._data["edges"].append(edge)
            self._data["outgoing"].setdefault(edge.source, []).append(edge)
            self._data["incoming"].setdefault(edge.target, []).append(edge)
        return edge

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        """Return the node with this id, or None if it does not exist."""
        with self._lock:
            return self._data["nodes"].get(node_id)

    def has_node(self, node_id: str) -> bool:
        with self._lock:
            return node_id in self._data["nodes"]

    def nodes(self) -> List[GraphNode]:
        """Get all nodes in the graph."""
        with self._lock:
            return list(self._data["nodes"].values())

    def edges(self) -> List[GraphEdge]:
        """Get all edges in the graph, in insertion order."""
        with self._lock:
            return list(self._data["edges"])

    def nodes_by_type(self, node_type: NodeType) -> List[GraphNode]:
        """Get all nodes of one type, in insertion order."""
        with self._lock:
            return [node for node in self._data["nodes"].values() if node.type == node_type]

    def outgoing(self, node_id: str) -> List[GraphEdge]:
        """Edges whose source is node_id."""
        with self._lock:
            return list(self._data["outgoing"].get(node_id, []))

    def incoming(self, node_id: str) -> List[GraphEdge]:
        """Edges whose target is node_id."""
        with self._lock:
            return list(self._data["incoming"].get(node_id, []))

    def clear(self):
        """Remove all nodes and edges."""
        with self._lock:
            self._data = self._initialize_data()
        self.logger.info("Cleared all data from in-memory graph")

    def stats(self) -> GraphStats:
        """Get graph statistics."""
        with self._lock:
            node_counts: Dict[NodeType, int] = {}
            for node in self._data["nodes"].values():
                node_counts[node.type] = node_counts.get(node.type, 0) + 1

            edge_counts = {}
            for edge in self._data["edges"]:
                edge_counts[edge.type] = edge_counts.get(edge.type, 0) + 1

            return GraphStats(
                node_count=len(self._data["nodes"]),
                edge_count=len(self._data["edges"]),
                nodes_by_type=node_counts,
                edges_by_type=edge_counts,
            )

    def get_node_details(self, node_id: str) -> Optional[Dict[str, Any]]:
        """Get a node together with its edges and neighbor nodes."""
        with self._lock:
            node = self._data["nodes"].get(node_id)
            if node is None:
                return None

            outgoing = self._data["outgoing"].get(node_id, [])
            incoming = self._data["incoming"].get(node_id, [])
            related_edges = list(outgoing) + [e for e in incoming if e.source != node_id]

            related_ids = set()
            for edge in related_edges:
                related_ids.add(edge.source)
                related_ids.add(edge.target)
            related_ids.discard(node_id)

            related_nodes = [
                self._data["nodes"][related_id]
                for related_id in sorted(related_ids)
                if related_id in self._data["nodes"]
            ]

            return {
                "node": node,
                "related_edges": related_edges,
                "related_nodes": related_nodes,
            }

    def get_graph_data(self) -> Dict[str, Any]:
        """Get the complete graph data as plain dictionaries."""
        with self._lock:
            return {
                "name": self.name,
                "nodes": [node.to_dict() for node in self._data["nodes"].values()],
                "edges": [edge.to_dict() for edge in self._data["edges"]],
            }
