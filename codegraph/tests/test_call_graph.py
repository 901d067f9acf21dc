import pytest
from pathlib import Path
import sys

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from codegraph.graph.call_graph import CallGraphAnalyzer
from codegraph.graph.store import CodeGraph
from codegraph.types import CYCLE_DETECTED, DepthMarker, EdgeType, GraphEdge, GraphNode, NodeType
from codegraph.tests.conftest import add_call, add_function, make_call_graph


def is_call(graph: CodeGraph, caller: str, callee: str) -> bool:
    return any(e.type == EdgeType.CALLS and e.target == callee for e in graph.outgoing(caller))


class TestTransitiveCalls:
    """Test transitive closure over Calls edges."""

    def test_linear_chain(self, linear_call_graph: CodeGraph):
        """Test f1 -> f2 -> f3 reaches both callees."""
        analyzer = CallGraphAnalyzer(linear_call_graph)

        assert analyzer.transitive_callees("func_a/0") == ["func_b/0", "func_c/0"]
        assert analyzer.transitive_callers("func_c/0") == ["func_a/0", "func_b/0"]
        assert analyzer.transitive_callees("func_c/0") == []

    def test_max_depth_zero_returns_direct_callees(self, linear_call_graph: CodeGraph):
        """Test max_depth bounds how far the closure expands."""
        analyzer = CallGraphAnalyzer(linear_call_graph)

        assert analyzer.transitive_callees("func_a/0", max_depth=0) == ["func_b/0"]
        assert analyzer.transitive_callees("func_a/0", max_depth=1) == ["func_b/0", "func_c/0"]
        assert analyzer.transitive_callers("func_c/0", max_depth=0) == ["func_b/0"]

    def test_branching(self, branching_call_graph: CodeGraph):
        """Test every branch is followed."""
        analyzer = CallGraphAnalyzer(branching_call_graph)

        assert analyzer.transitive_callees("root/0") == ["branch_a/0", "branch_b/0", "leaf_a/0", "leaf_b/0"]
        assert analyzer.transitive_callers("leaf_b/0") == ["branch_b/0", "root/0"]

    def test_cycle_terminates_and_excludes_start(self, cyclic_call_graph: CodeGraph):
        """Test closure on a cycle stops and never contains the start."""
        analyzer = CallGraphAnalyzer(cyclic_call_graph)

        assert analyzer.transitive_callees("cycle_a/0") == ["cycle_b/0", "cycle_c/0"]
        assert analyzer.transitive_callers("cycle_a/0") == ["cycle_b/0", "cycle_c/0"]

    def test_unknown_function(self, graph: CodeGraph):
        """Test unknown ids have empty closures."""
        assert CallGraphAnalyzer(graph).transitive_callees("nope/0") == []


class TestCycles:
    """Test call cycle detection."""

    def test_finds_cycle_in_call_order(self, cyclic_call_graph: CodeGraph):
        """Test the cycle is reported once and follows real Calls edges."""
        cycles = CallGraphAnalyzer(cyclic_call_graph).find_cycles()

        assert len(cycles) == 1
        cycle = cycles[0]
        assert sorted(cycle) == ["cycle_a/0", "cycle_b/0", "cycle_c/0"]
        for caller, callee in zip(cycle, cycle[1:] + cycle[:1]):
            assert is_call(cyclic_call_graph, caller, callee)

    def test_no_cycles_in_dag(self, branching_call_graph: CodeGraph):
        """Test acyclic graphs report nothing."""
        assert CallGraphAnalyzer(branching_call_graph).find_cycles() == []

    def test_self_recursion_not_reported(self):
        """Test direct self-recursion is not a cycle."""
        graph = make_call_graph(["loop/1"], [("loop/1", "loop/1")])

        assert CallGraphAnalyzer(graph).find_cycles() == []

    def test_two_cycles(self):
        """Test separate cycles are both found."""
        graph = make_call_graph(
            ["a/0", "b/0", "x/0", "y/0", "z/0"],
            [("a/0", "b/0"), ("b/0", "a/0"), ("x/0", "y/0"), ("y/0", "z/0"), ("z/0", "x/0")],
        )

        cycles = CallGraphAnalyzer(graph).find_cycles()

        assert sorted(sorted(c) for c in cycles) == [["a/0", "b/0"], ["x/0", "y/0", "z/0"]]

    def test_max_cycles_caps_result(self):
        """Test the cap on reported cycles."""
        graph = make_call_graph(
            ["a/0", "b/0", "x/0", "y/0"],
            [("a/0", "b/0"), ("b/0", "a/0"), ("x/0", "y/0"), ("y/0", "x/0")],
        )

        assert len(CallGraphAnalyzer(graph).find_cycles(max_cycles=1)) == 1


class TestEntryAndLeafFunctions:
    """Test entry point and leaf discovery."""

    def test_linear(self, linear_call_graph: CodeGraph):
        """Test the chain has one entry and one leaf."""
        analyzer = CallGraphAnalyzer(linear_call_graph)

        assert [f.id for f in analyzer.entry_points()] == ["func_a/0"]
        assert [f.id for f in analyzer.leaf_functions()] == ["func_c/0"]

    def test_isolated_function_is_both(self, graph: CodeGraph):
        """Test a function with no calls is an entry point and a leaf."""
        add_function(graph, "alone/0")
        analyzer = CallGraphAnalyzer(graph)

        assert [f.id for f in analyzer.entry_points()] == ["alone/0"]
        assert [f.id for f in analyzer.leaf_functions()] == ["alone/0"]

    def test_only_function_nodes(self, graph: CodeGraph):
        """Test modules and externals are never reported."""
        graph.add_node(GraphNode(id="M", type=NodeType.MODULE, name="M"))
        graph.add_node(GraphNode(id="IO.puts/1", type=NodeType.EXTERNAL, name="IO.puts/1"))
        add_function(graph, "M.run/0")
        add_call(graph, "M.run/0", "IO.puts/1")
        analyzer = CallGraphAnalyzer(graph)

        assert [f.id for f in analyzer.entry_points()] == ["M.run/0"]
        assert analyzer.leaf_functions() == []


class TestCallDepth:
    """Test longest call chain computation."""

    def test_linear_depths(self, linear_call_graph: CodeGraph):
        """Test depths along f1 -> f2 -> f3."""
        analyzer = CallGraphAnalyzer(linear_call_graph)

        assert analyzer.call_depth("func_c/0") == 0
        assert analyzer.call_depth("func_b/0") == 1
        assert analyzer.call_depth("func_a/0") == 2

    def test_longest_branch_wins(self):
        """Test depth follows the longest chain."""
        graph = make_call_graph(
            ["top/0", "short/0", "long/0", "longer/0", "end/0"],
            [("top/0", "short/0"), ("top/0", "long/0"), ("long/0", "longer/0"), ("longer/0", "end/0")],
        )

        assert CallGraphAnalyzer(graph).call_depth("top/0") == 3

    def test_cycle_detected(self, cyclic_call_graph: CodeGraph):
        """Test cycles produce the marker instead of a number."""
        depth = CallGraphAnalyzer(cyclic_call_graph).call_depth("cycle_a/0")

        assert depth is CYCLE_DETECTED
        assert isinstance(depth, DepthMarker)

    def test_cycle_below_propagates(self, cyclic_call_graph: CodeGraph):
        """Test a caller of a cycle is reported as cyclic too."""
        add_function(cyclic_call_graph, "entry/0")
        add_call(cyclic_call_graph, "entry/0", "cycle_a/0")

        assert CallGraphAnalyzer(cyclic_call_graph).call_depth("entry/0") is CYCLE_DETECTED

    def test_self_recursion_is_cycle(self):
        """Test a function calling itself has no finite depth."""
        graph = make_call_graph(["loop/1"], [("loop/1", "loop/1")])

        assert CallGraphAnalyzer(graph).call_depth("loop/1") is CYCLE_DETECTED

    def test_all_call_depths(self, cyclic_call_graph: CodeGraph):
        """Test depths of every function with shared memo."""
        add_function(cyclic_call_graph, "helper/0")
        add_function(cyclic_call_graph, "util/0")
        add_call(cyclic_call_graph, "helper/0", "util/0")

        depths = CallGraphAnalyzer(cyclic_call_graph).all_call_depths()

        assert depths == {
            "cycle_a/0": CYCLE_DETECTED,
            "cycle_b/0": CYCLE_DETECTED,
            "cycle_c/0": CYCLE_DETECTED,
            "helper/0": 1,
            "util/0": 0,
        }

    def test_deep_chain_does_not_overflow(self):
        """Test long chains are handled without recursion."""
        ids = [f"f{i}/0" for i in range(5000)]
        graph = make_call_graph(ids, list(zip(ids, ids[1:])))
        analyzer = CallGraphAnalyzer(graph)

        assert analyzer.call_depth("f0/0") == 4999
        assert len(analyzer.transitive_callees("f0/0", max_depth=10000)) == 4999


class TestHotPathsAndChains:
    """Test connectivity ranking and call chains."""

    def test_hub_ranks_first(self, hub_call_graph: CodeGraph):
        """Test the most connected function comes first."""
        hot = CallGraphAnalyzer(hub_call_graph).hot_paths(limit=1)

        assert len(hot) == 1
        assert hot[0].id == "hub/0"
        assert hot[0].callers == 3
        assert hot[0].callees == 2
        assert hot[0].connectivity == 5
        assert hot[0].to_dict()["connectivity"] == 5

    def test_ties_broken_by_id(self, hub_call_graph: CodeGraph):
        """Test equal connectivity is ordered by id."""
        hot = CallGraphAnalyzer(hub_call_graph).hot_paths()

        assert [h.id for h in hot] == ["hub/0", "in_a/0", "in_b/0", "in_c/0", "out_a/0", "out_b/0"]

    def test_call_chain(self, linear_call_graph: CodeGraph):
        """Test shortest chain between two functions."""
        analyzer = CallGraphAnalyzer(linear_call_graph)

        assert analyzer.call_chain("func_a/0", "func_c/0") == ["func_a/0", "func_b/0", "func_c/0"]
        assert analyzer.call_chain("func_c/0", "func_a/0") is None
        assert analyzer.call_chain("func_a/0", "func_c/0", max_depth=1) is None


class TestModuleCallStats:
    """Test per-module call statistics."""

    def _module_graph(self) -> CodeGraph:
        graph = CodeGraph()
        graph.add_node(GraphNode(id="M", type=NodeType.MODULE, name="M"))
        for func_id in ["M.a/0", "M.b/0", "M.c/0"]:
            add_function(graph, func_id)
            graph.add_edge(GraphEdge(source="M", target=func_id, type=EdgeType.DEFINES))
        add_call(graph, "M.a/0", "M.b/0")
        add_call(graph, "M.b/0", "M.c/0")
        add_call(graph, "M.a/0", "Other.x/0")
        add_call(graph, "M.c/0", "Other.x/0")
        add_call(graph, "M.c/0", "IO.puts/1")
        return graph

    def test_stats(self):
        """Test internal calls, external callees and cohesion."""
        stats = CallGraphAnalyzer(self._module_graph()).module_call_stats("M")

        assert stats.module == "M"
        assert stats.function_count == 3
        assert stats.internal_calls == 2
        assert stats.external_dependencies == 2
        assert stats.cohesion == pytest.approx(2 / 3)

    def test_empty_module(self, graph: CodeGraph):
        """Test modules without functions have zero cohesion."""
        graph.add_node(GraphNode(id="Empty", type=NodeType.MODULE, name="Empty"))
        stats = CallGraphAnalyzer(graph).module_call_stats("Empty")

        assert stats.function_count == 0
        assert stats.cohesion == 0.0


class TestStronglyConnectedComponents:
    """Test SCC discovery."""

    def test_cycle_is_one_component(self, cyclic_call_graph: CodeGraph):
        """Test a three-function cycle forms one component."""
        assert CallGraphAnalyzer(cyclic_call_graph).strongly_connected_components() == [
            ["cycle_a/0", "cycle_b/0", "cycle_c/0"]
        ]

    def test_acyclic_has_none(self, branching_call_graph: CodeGraph):
        """Test DAGs have no component larger than one."""
        assert CallGraphAnalyzer(branching_call_graph).strongly_connected_components() == []

    def test_components_with_bridges(self):
        """Test components joined one way stay separate."""
        graph = make_call_graph(
            ["d/0", "e/0", "a/0", "b/0", "c/0", "solo/0"],
            [
                ("a/0", "b/0"), ("b/0", "a/0"),
                ("b/0", "c/0"),
                ("c/0", "d/0"), ("d/0", "e/0"), ("e/0", "c/0"),
                ("e/0", "solo/0"),
                ("solo/0", "solo/0"),
            ],
        )

        assert CallGraphAnalyzer(graph).strongly_connected_components() == [
            ["a/0", "b/0"],
            ["c/0", "d/0", "e/0"],
        ]

    def test_externals_are_ignored(self):
        """Test only Function nodes take part."""
        graph = make_call_graph(["a/0"], [("a/0", "ext/0"), ("ext/0", "a/0")])

        assert CallGraphAnalyzer(graph).strongly_connected_components() == []

    def test_long_cycle_is_one_component(self):
        """Test a long call cycle is grouped without hitting recursion limits."""
        ids = [f"f{i:04d}/0" for i in range(3000)]
        graph = make_call_graph(ids, list(zip(ids, ids[1:] + ids[:1])))

        components = CallGraphAnalyzer(graph).strongly_connected_components()

        assert len(components) == 1
        assert components[0] == sorted(ids)
