"""
Cross-repository dependency analysis.

Builds a repository-level dependency graph from manifests and answers
portfolio questions over it: who is affected by a change, which
dependencies are shared or disagree on versions, in what order repos can be
upgraded and where repos depend on each other in a cycle.
"""
import heapq
import re
from typing import Any, Dict, Iterable, List, Set, Union

from ..models import RepoManifest
from ..types import (
    CYCLE_DETECTED,
    CrossRepoGraph,
    DependencyVersions,
    DepthMarker,
    EdgeType,
    GraphEdge,
    GraphNode,
    ImpactResult,
    NodeType,
    RiskLevel,
    SharedDependency,
    VersionConflict,
)
from ..utils.logger import app_logger

MAJOR_VERSION_PATTERN = re.compile(r"(\d+)")

# (minimum affected ratio, level), checked in order
RISK_THRESHOLDS = (
    (0.5, RiskLevel.CRITICAL),
    (0.3, RiskLevel.HIGH),
    (0.1, RiskLevel.MEDIUM),
)


def extract_major_version(version: str) -> int:
    """
    First integer in a version constraint, or 0 if there is none.

    This is a heuristic: it ignores operators and ranges, so "~> 1.0",
    ">= 1.5, < 3" and "1.x" all count as major version 1.
    """
    match = MAJOR_VERSION_PATTERN.search(version)
    return int(match.group(1)) if match else 0


def calculate_risk_level(affected: int, total: int) -> RiskLevel:
    """Classify the share of a portfolio touched by a change."""
    if total <= 0:
        return RiskLevel.LOW
    ratio = affected / total
    for threshold, level in RISK_THRESHOLDS:
        if ratio >= threshold:
            return level
    return RiskLevel.LOW


class CrossRepoAnalyzer:
    """Dependency analyses across the repositories of a portfolio."""

    def __init__(self):
        self.logger = app_logger.bind(component="cross_repo")

    def build_cross_repo_graph(self, repos: Iterable[Union[RepoManifest, Dict[str, Any]]]) -> CrossRepoGraph:
        """One node per repo and per outside dependency, one edge per declaration."""
        manifests = [r if isinstance(r, RepoManifest) else RepoManifest.model_validate(r) for r in repos]
        repo_names = {m.name for m in manifests}

        nodes = [
            GraphNode(id=m.name, type=NodeType.REPO, name=m.name, metadata={"repo": m.model_dump()})
            for m in manifests
        ]

        external = []
        for m in manifests:
            for dep in m.dependency_names() + m.dev_dependency_names():
                if dep not in repo_names and dep not in external:
                    external.append(dep)
        nodes.extend(GraphNode(id=dep, type=NodeType.EXTERNAL, name=dep) for dep in external)

        edges = []
        for m in manifests:
            edges.extend(GraphEdge(source=m.name, target=dep, type=EdgeType.DEPENDS_ON)
                         for dep in m.dependency_names())
            edges.extend(GraphEdge(source=m.name, target=dep, type=EdgeType.DEV_DEPENDS_ON)
                         for dep in m.dev_dependency_names())

        self.logger.info(
            f"Built cross-repo graph: {len(manifests)} repos, {len(external)} external dependencies, "
            f"{len(edges)} edges"
        )
        return CrossRepoGraph(nodes=nodes, edges=edges, repos=manifests)

    def impact_analysis(self, graph: CrossRepoGraph, repo_name: str, include_dev: bool = False) -> ImpactResult:
        """Repos affected, directly and transitively, by a change to repo_name."""
        edge_types = self._edge_types(include_dev)

        direct_names = []
        for edge in graph.edges:
            if (edge.target == repo_name and edge.source != repo_name
                    and edge.type in edge_types and edge.source not in direct_names):
                direct_names.append(edge.source)

        reached = self._transitive_dependents(graph, set(direct_names), {repo_name}, edge_types)
        transitive_names = sorted(reached - set(direct_names) - {repo_name})

        directly_affected = [{"name": name} for name in direct_names]
        transitively_affected = [{"name": name} for name in transitive_names]
        total_affected = len(directly_affected) + len(transitively_affected)

        return ImpactResult(
            repo=repo_name,
            directly_affected=directly_affected,
            transitively_affected=transitively_affected,
            risk_level=calculate_risk_level(total_affected, len(graph.repo_names())),
        )

    def find_shared_dependencies(self, graph: CrossRepoGraph) -> List[SharedDependency]:
        """Runtime dependencies declared by at least two repos."""
        usage: Dict[str, List[str]] = {}
        for repo in graph.repos:
            for dep in repo.dependency_names():
                users = usage.setdefault(dep, [])
                if repo.name not in users:
                    users.append(repo.name)

        shared = [
            SharedDependency(dependency=dep, used_by=users, count=len(users))
            for dep, users in usage.items()
            if len(users) >= 2
        ]
        shared.sort(key=lambda s: (-s.count, s.dependency))
        return shared

    def find_dependency_versions(self, graph: CrossRepoGraph) -> List[DependencyVersions]:
        """Versioned runtime declarations, grouped by dependency."""
        grouped: Dict[str, List[Dict[str, str]]] = {}
        for repo in graph.repos:
            for dep in repo.versioned_dependencies():
                grouped.setdefault(dep.name, []).append({"repo": repo.name, "version": dep.version})

        return [DependencyVersions(dependency=name, versions=versions) for name, versions in grouped.items()]

    def find_version_conflicts(self, graph: CrossRepoGraph) -> List[VersionConflict]:
        """Dependencies whose users disagree on the major version."""
        conflicts = []
        for info in self.find_dependency_versions(graph):
            if len(info.versions) < 2:
                continue
            majors = {extract_major_version(v["version"]) for v in info.versions}
            if len(majors) > 1:
                conflicts.append(VersionConflict(dependency=info.dependency, repos=info.versions))
        return conflicts

    def suggest_upgrade_order(self, graph: CrossRepoGraph) -> List[str]:
        """
        Repos ordered so every repo comes after the repos it depends on.

        Kahn's algorithm over repo-to-repo edges, picking the
        lexicographically smallest ready repo each step. Repos caught in a
        dependency cycle can't be ordered and are left out.
        """
        repo_names = graph.repo_names()
        adjacency = self._repo_adjacency(graph)

        in_degree = {name: 0 for name in repo_names}
        dependents: Dict[str, List[str]] = {name: [] for name in repo_names}
        for repo, deps in adjacency.items():
            for dep in deps:
                in_degree[repo] += 1
                dependents[dep].append(repo)

        ready = [name for name, degree in in_degree.items() if degree == 0]
        heapq.heapify(ready)

        order = []
        while ready:
            repo = heapq.heappop(ready)
            order.append(repo)
            for dependent in dependents[repo]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    heapq.heappush(ready, dependent)

        if len(order) < len(in_degree):
            stuck = sorted(set(in_degree) - set(order))
            self.logger.warning(f"Cannot order repos in dependency cycles: {stuck}")
        return order

    def find_cycles(self, graph: CrossRepoGraph) -> List[List[str]]:
        """
        Circular dependencies between repos.

        Each cycle starts and ends on the same repo, e.g.
        ["a", "b", "c", "a"].
        """
        adjacency = self._repo_adjacency(graph)
        visited: Set[str] = set()
        cycles = []

        for root in sorted(adjacency):
            if root in visited:
                continue

            visited.add(root)
            path = [root]
            on_path = {root}
            stack = [iter(adjacency[root])]

            while stack:
                descended = False
                for dep in stack[-1]:
                    if dep in on_path:
                        cycles.append(path[path.index(dep):] + [dep])
                        continue
                    if dep in visited:
                        continue
                    visited.add(dep)
                    path.append(dep)
                    on_path.add(dep)
                    stack.append(iter(adjacency[dep]))
                    descended = True
                    break
                if not descended:
                    stack.pop()
                    on_path.discard(path.pop())

        return cycles

    def dependency_depth(self, graph: CrossRepoGraph, repo_name: str) -> Union[int, DepthMarker]:
        """Longest chain of repo dependencies below repo_name, or CYCLE_DETECTED."""
        adjacency = self._repo_adjacency(graph)
        if repo_name not in adjacency:
            return 0

        depths: Dict[str, int] = {}
        stack = [[repo_name, iter(adjacency[repo_name]), 0]]
        on_path = {repo_name}

        while stack:
            frame = stack[-1]
            dep = next(frame[1], None)

            if dep is None:
                stack.pop()
                on_path.discard(frame[0])
                depths[frame[0]] = frame[2]
                if stack:
                    stack[-1][2] = max(stack[-1][2], frame[2] + 1)
                continue

            if dep in on_path:
                return CYCLE_DETECTED
            if dep in depths:
                frame[2] = max(frame[2], depths[dep] + 1)
                continue

            on_path.add(dep)
            stack.append([dep, iter(adjacency[dep]), 0])

        return depths[repo_name]

    def get_all_dependents(self, graph: CrossRepoGraph, repo_name: str, include_dev: bool = False) -> List[Dict[str, str]]:
        """Every repo that depends on repo_name, directly or not."""
        reached = self._transitive_dependents(graph, {repo_name}, set(), self._edge_types(include_dev))
        return [{"name": name} for name in sorted(reached - {repo_name})]

    def _edge_types(self, include_dev: bool):
        if include_dev:
            return {EdgeType.DEPENDS_ON, EdgeType.DEV_DEPENDS_ON}
        return {EdgeType.DEPENDS_ON}

    def _transitive_dependents(self, graph: CrossRepoGraph, frontier: Set[str], visited: Set[str], edge_types) -> Set[str]:
        """Expand frontier with dependents until nothing new turns up."""
        visited = set(visited)
        while frontier:
            visited |= frontier
            frontier = {
                edge.source
                for edge in graph.edges
                if edge.type in edge_types and edge.target in frontier and edge.source not in visited
            }
        return visited

    def _repo_adjacency(self, graph: CrossRepoGraph) -> Dict[str, List[str]]:
        """repo -> repos it depends on (either edge type), in declaration order."""
        repo_names = set(graph.repo_names())
        adjacency: Dict[str, List[str]] = {name: [] for name in graph.repo_names()}
        for edge in graph.edges:
            if edge.source in repo_names and edge.target in repo_names:
                if edge.target not in adjacency[edge.source]:
                    adjacency[edge.source].append(edge.target)
        return adjacency
