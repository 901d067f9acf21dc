import pytest
import os
from pathlib import Path
from typing import Dict, Any, List
import sys

# Keep test runs from writing log files
os.environ.setdefault("CODEGRAPH_LOG_FILE", "")

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from codegraph.graph.store import CodeGraph
from codegraph.types import EdgeType, GraphEdge, GraphNode, NodeType


def add_function(graph: CodeGraph, func_id: str):
    graph.add_node(GraphNode(id=func_id, type=NodeType.FUNCTION, name=func_id.split("/")[0]))


def add_call(graph: CodeGraph, caller: str, callee: str):
    graph.add_edge(GraphEdge(source=caller, target=callee, type=EdgeType.CALLS))


def make_call_graph(functions: List[str], calls: List[tuple]) -> CodeGraph:
    graph = CodeGraph()
    for func_id in functions:
        add_function(graph, func_id)
    for caller, callee in calls:
        add_call(graph, caller, callee)
    return graph


@pytest.fixture
def graph() -> CodeGraph:
    """Empty graph."""
    return CodeGraph("test")


@pytest.fixture
def linear_call_graph() -> CodeGraph:
    """func_a -> func_b -> func_c"""
    return make_call_graph(
        ["func_a/0", "func_b/0", "func_c/0"],
        [("func_a/0", "func_b/0"), ("func_b/0", "func_c/0")],
    )


@pytest.fixture
def branching_call_graph() -> CodeGraph:
    """root -> branch_a -> leaf_a, root -> branch_b -> leaf_b"""
    return make_call_graph(
        ["root/0", "branch_a/0", "branch_b/0", "leaf_a/0", "leaf_b/0"],
        [
            ("root/0", "branch_a/0"),
            ("root/0", "branch_b/0"),
            ("branch_a/0", "leaf_a/0"),
            ("branch_b/0", "leaf_b/0"),
        ],
    )


@pytest.fixture
def cyclic_call_graph() -> CodeGraph:
    """cycle_a -> cycle_b -> cycle_c -> cycle_a"""
    return make_call_graph(
        ["cycle_a/0", "cycle_b/0", "cycle_c/0"],
        [("cycle_a/0", "cycle_b/0"), ("cycle_b/0", "cycle_c/0"), ("cycle_c/0", "cycle_a/0")],
    )


@pytest.fixture
def hub_call_graph() -> CodeGraph:
    """Three callers and two callees around hub/0."""
    return make_call_graph(
        ["hub/0", "in_a/0", "in_b/0", "in_c/0", "out_a/0", "out_b/0"],
        [
            ("in_a/0", "hub/0"),
            ("in_b/0", "hub/0"),
            ("in_c/0", "hub/0"),
            ("hub/0", "out_a/0"),
            ("hub/0", "out_b/0"),
        ],
    )


@pytest.fixture
def sample_parsed() -> Dict[str, Any]:
    """Parser output for a file with one module, two functions and references."""
    return {
        "language": "elixir",
        "symbols": [
            {"type": "module", "name": "MyApp.User", "line": 1, "visibility": "public"},
            {"type": "function", "name": "new", "line": 5, "arity": 1, "visibility": "public"},
            {"type": "function", "name": "validate", "line": 12, "arity": 2, "visibility": "private"},
        ],
        "references": [
            {"type": "import", "module": "Ecto.Changeset", "line": 2},
            {"type": "alias", "module": "MyApp.Repo", "line": 3},
            {"type": "use", "module": "GenServer", "line": 4},
        ],
    }


@pytest.fixture
def sample_repos() -> List[Dict[str, Any]]:
    """A small portfolio: app_core is used by app_web and app_api."""
    return [
        {
            "name": "app_core",
            "dependencies": ["phoenix", "ecto"],
            "dev_dependencies": ["ex_doc", "dialyxir"],
        },
        {
            "name": "app_web",
            "dependencies": ["app_core", "phoenix_live_view"],
            "dev_dependencies": ["credo"],
        },
        {
            "name": "app_api",
            "dependencies": ["app_core", "phoenix", "jason"],
            "dev_dependencies": [],
        },
    ]
