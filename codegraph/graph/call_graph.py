"""
Call graph analysis on top of a CodeGraph.

Every traversal here uses an explicit queue or stack and a visited set, so
deep or cyclic call graphs neither overflow the interpreter stack nor loop.
"""
from typing import Dict, List, Optional, Union
from collections import deque

import networkx as nx

from ..config import settings
from ..types import CYCLE_DETECTED, DepthMarker, GraphNode, HotPath, ModuleCallStats, NodeType
from ..utils.logger import app_logger
from .query import GraphQuery
from .store import CodeGraph

Depth = Union[int, DepthMarker]


class CallGraphAnalyzer:
    """Analyses over the Calls edges of a code graph."""

    def __init__(self, graph: CodeGraph):
        self.graph = graph
        self.query = GraphQuery(graph)
        self.logger = app_logger.bind(component="call_graph")

    def transitive_callees(self, function_id: str, max_depth: Optional[int] = None) -> List[str]:
        """
        Every function reachable from function_id through Calls edges.

        Callees of nodes up to max_depth hops away are collected, so
        max_depth=0 returns the direct callees only. The start node is never
        part of the result, even when it is reachable through a cycle.
        """
        if max_depth is None:
            max_depth = settings.transitive_max_depth
        with self.graph.locked():
            return self._reachable(function_id, self.query.callees, max_depth)

    def transitive_callers(self, function_id: str, max_depth: Optional[int] = None) -> List[str]:
        """Every function that reaches function_id through Calls edges."""
        if max_depth is None:
            max_depth = settings.transitive_max_depth
        with self.graph.locked():
            return self._reachable(function_id, self.query.callers, max_depth)

    def find_cycles(self, max_cycles: Optional[int] = None) -> List[List[str]]:
        """
        Circular call chains, at most one per starting function.

        Each cycle lists its functions in call order; the last one calls the
        first. Cycles over the same set of functions are reported once.
        """
        if max_cycles is None:
            max_cycles = settings.max_cycles

        cycles = []
        seen = set()
        with self.graph.locked():
            for func in self.graph.nodes_by_type(NodeType.FUNCTION):
                if len(cycles) >= max_cycles:
                    break
                cycle = self._find_cycle_from(func.id)
                if cycle is None:
                    continue
                key = tuple(sorted(cycle))
                if key not in seen:
                    seen.add(key)
                    cycles.append(cycle)

        self.logger.debug(f"Found {len(cycles)} call cycles")
        return cycles

    def entry_points(self) -> List[GraphNode]:
        """Functions no other function calls."""
        with self.graph.locked():
            return [f for f in self.graph.nodes_by_type(NodeType.FUNCTION) if not self.query.callers(f.id)]

    def leaf_functions(self) -> List[GraphNode]:
        """Functions that call nothing."""
        with self.graph.locked():
            return [f for f in self.graph.nodes_by_type(NodeType.FUNCTION) if not self.query.callees(f.id)]

    def call_depth(self, function_id: str) -> Depth:
        """Length of the longest call chain from function_id down to a leaf.

        Leaves have depth 0. Returns CYCLE_DETECTED when some chain from
        function_id runs into a cycle.
        """
        with self.graph.locked():
            return self._depth(function_id, {})

    def all_call_depths(self) -> Dict[str, Depth]:
        """Call depth of every function; cyclic ones map to CYCLE_DETECTED."""
        memo: Dict[str, Depth] = {}
        with self.graph.locked():
            return {f.id: self._depth(f.id, memo) for f in self.graph.nodes_by_type(NodeType.FUNCTION)}

    def hot_paths(self, limit: Optional[int] = None) -> List[HotPath]:
        """Functions ranked by callers + callees, most connected first."""
        if limit is None:
            limit = settings.hot_paths_limit
        with self.graph.locked():
            ranked = [
                HotPath(node=f, callers=len(self.query.callers(f.id)), callees=len(self.query.callees(f.id)))
                for f in self.graph.nodes_by_type(NodeType.FUNCTION)
            ]
        ranked.sort(key=lambda h: (-h.connectivity, h.id))
        return ranked[:limit]

    def call_chain(self, source: str, target: str, max_depth: Optional[int] = None) -> Optional[List[str]]:
        """Shortest chain of calls from source to target, or None."""
        if max_depth is None:
            max_depth = settings.call_chain_max_depth
        return self.query.find_path(source, target, max_depth=max_depth)

    def module_call_stats(self, module_id: str) -> ModuleCallStats:
        """Internal calls, outside callees and cohesion of one module."""
        with self.graph.locked():
            functions = self.query.functions_of(module_id)
            func_set = set(functions)

            internal_calls = 0
            external = set()
            for func_id in functions:
                for callee in self.query.callees(func_id):
                    if callee in func_set:
                        internal_calls += 1
                    else:
                        external.add(callee)

        return ModuleCallStats(
            module=module_id,
            function_count=len(functions),
            internal_calls=internal_calls,
            external_dependencies=len(external),
            cohesion=internal_calls / len(functions) if functions else 0.0,
        )

    def strongly_connected_components(self) -> List[List[str]]:
        """
        Groups of two or more functions that can all reach each other.

        Computed by networkx over Function nodes and the Calls edges between
        them. Members are sorted; components are ordered by their first member.
        """
        call_graph = nx.DiGraph()
        with self.graph.locked():
            function_ids = [f.id for f in self.graph.nodes_by_type(NodeType.FUNCTION)]
            call_graph.add_nodes_from(function_ids)
            for func_id in function_ids:
                call_graph.add_edges_from(
                    (func_id, callee) for callee in self.query.callees(func_id) if callee in call_graph
                )

        return sorted(sorted(c) for c in nx.strongly_connected_components(call_graph) if len(c) > 1)

    def _reachable(self, start: str, neighbors, max_depth: int) -> List[str]:
        visited = {start}
        queue = deque([(start, 0)])
        while queue:
            current, depth = queue.popleft()
            if depth > max_depth:
                continue
            for neighbor in neighbors(current):
                if neighbor not in visited:
                    visited.add(neighbor)
                    queue.append((neighbor, depth + 1))
        visited.discard(start)
        return sorted(visited)

    def _find_cycle_from(self, start: str) -> Optional[List[str]]:
        path = [start]
        visited = {start}
        stack = [iter(self.query.callees(start))]

        while stack:
            descended = False
            for callee in stack[-1]:
                if callee == start and len(path) > 1:
                    return list(path)
                if callee in visited:
                    continue
                visited.add(callee)
                path.append(callee)
                stack.append(iter(self.query.callees(callee)))
                descended = True
                break
            if not descended:
                stack.pop()
                path.pop()
        return None

    def _depth(self, start: str, memo: Dict[str, Depth]) -> Depth:
        if start in memo:
            return memo[start]

        # frame: [node, remaining callees, deepest child seen + 1]
        stack = [[start, iter(self.query.callees(start)), 0]]
        on_path = {start}

        while stack:
            frame = stack[-1]
            child = next(frame[1], None)

            if child is None:
                stack.pop()
                on_path.discard(frame[0])
                memo[frame[0]] = frame[2]
                if stack:
                    stack[-1][2] = max(stack[-1][2], frame[2] + 1)
                continue

            known = memo.get(child)
            if child in on_path or known is CYCLE_DETECTED:
                for pending in stack:
                    memo[pending[0]] = CYCLE_DETECTED
                return CYCLE_DETECTED
            if known is not None:
                frame[2] = max(frame[2], known + 1)
                continue

            on_path.add(child)
            stack.append([child, iter(self.query.callees(child)), 0])

        return memo[start]
