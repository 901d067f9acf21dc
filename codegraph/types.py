from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field
from enum import Enum


class NodeType(Enum):
    """Node type enumeration."""
    FILE = "file"
    MODULE = "module"
    FUNCTION = "function"
    CLASS = "class"
    EXTERNAL = "external"
    REPO = "repo"


class EdgeType(Enum):
    """Edge type enumeration."""
    DEFINES = "defines"
    CALLS = "calls"
    IMPORTS = "imports"
    USES = "uses"
    ALIAS = "alias"
    DEPENDS_ON = "depends_on"
    DEV_DEPENDS_ON = "dev_depends_on"


# Edge types that count as a module reference
IMPORT_EDGE_TYPES = frozenset({EdgeType.IMPORTS, EdgeType.USES, EdgeType.ALIAS})


class DepthMarker(Enum):
    """Non-numeric outcome of a depth computation."""
    CYCLE_DETECTED = "cycle_detected"


CYCLE_DETECTED = DepthMarker.CYCLE_DETECTED


class RiskLevel(Enum):
    """Portfolio impact classification."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class GraphNode:
    """Represents a node in the code graph."""
    id: str
    type: NodeType
    name: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "type": self.type.value,
            "name": self.name,
            "metadata": self.metadata,
        }


@dataclass
class GraphEdge:
    """Represents a directed, typed edge in the code graph."""
    source: str
    target: str
    type: EdgeType
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "source": self.source,
            "target": self.target,
            "type": self.type.value,
            "metadata": self.metadata,
        }


@dataclass
class GraphStats:
    """Aggregate counts for a graph."""
    node_count: int
    edge_count: int
    nodes_by_type: Dict[NodeType, int]
    edges_by_type: Dict[EdgeType, int]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "node_count": self.node_count,
            "edge_count": self.edge_count,
            "nodes_by_type": {k.value: v for k, v in self.nodes_by_type.items()},
            "edges_by_type": {k.value: v for k, v in self.edges_by_type.items()},
        }


@dataclass
class HotPath:
    """A function ranked by how many calls pass through it."""
    node: GraphNode
    callers: int
    callees: int

    @property
    def id(self) -> str:
        return self.node.id

    @property
    def connectivity(self) -> int:
        return self.callers + self.callees

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "node": self.node.to_dict(),
            "callers": self.callers,
            "callees": self.callees,
            "connectivity": self.connectivity,
        }


@dataclass
class ModuleCallStats:
    """Call structure of a single module."""
    module: str
    function_count: int
    internal_calls: int
    external_dependencies: int
    cohesion: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "module": self.module,
            "function_count": self.function_count,
            "internal_calls": self.internal_calls,
            "external_dependencies": self.external_dependencies,
            "cohesion": self.cohesion,
        }


@dataclass
class ImpactResult:
    """Repos affected by a change to one repo."""
    repo: str
    directly_affected: List[Dict[str, str]]
    transitively_affected: List[Dict[str, str]]
    risk_level: RiskLevel

    @property
    def total_affected(self) -> int:
        return len(self.directly_affected) + len(self.transitively_affected)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "repo": self.repo,
            "directly_affected": self.directly_affected,
            "transitively_affected": self.transitively_affected,
            "risk_level": self.risk_level.value,
        }


@dataclass
class SharedDependency:
    """A dependency declared by two or more repos."""
    dependency: str
    used_by: List[str]
    count: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "dependency": self.dependency,
            "used_by": self.used_by,
            "count": self.count,
        }


@dataclass
class DependencyVersions:
    """Every versioned declaration of one dependency."""
    dependency: str
    versions: List[Dict[str, str]]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {"dependency": self.dependency, "versions": self.versions}


@dataclass
class VersionConflict:
    """Repos that disagree on the major version of a dependency."""
    dependency: str
    repos: List[Dict[str, str]]
    severity: str = "major"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "dependency": self.dependency,
            "repos": self.repos,
            "severity": self.severity,
        }


@dataclass
class CrossRepoGraph:
    """Repository-level dependency graph."""
    nodes: List[GraphNode]
    edges: List[GraphEdge]
    repos: List[Any]

    def repo_names(self) -> List[str]:
        """Names of repo nodes, in manifest order."""
        return [node.id for node in self.nodes if node.type == NodeType.REPO]

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
            "repos": [repo.model_dump() for repo in self.repos],
        }
