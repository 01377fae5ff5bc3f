"""Dependency graph construction.

Turns grouped dependency data (ecosystem -> dependencies, each optionally
carrying its own nested transitive graph) into one node/edge graph per
ecosystem. Only dependencies that carry risk are represented: a dependency is
included when it, or at least one of its transitive dependencies, has a known
vulnerability.
"""

import logging
from dataclasses import dataclass, field

from .constants import MANIFEST_FILES, UNKNOWN_ECOSYSTEM
from .models import (
    Dependency,
    EcosystemGraphMap,
    GraphData,
    GraphEdge,
    GraphNode,
    GroupedDependencies,
    ManifestAnalysis,
    Relation,
)
from .severity import max_severity

logger = logging.getLogger(__name__)


@dataclass
class GraphBuildResult:
    """Graphs per ecosystem plus the identity keys seen more than once."""
    graphs: EcosystemGraphMap = field(default_factory=dict)
    duplicates: dict[str, list[str]] = field(default_factory=dict)


def group_dependencies(analysis: ManifestAnalysis) -> GroupedDependencies:
    """Group an analysis response by ecosystem.

    Each dependency is stamped with the manifest file it came from. A missing
    ecosystem tag lands in the ``unknown`` bucket.
    """
    grouped: GroupedDependencies = {}
    for file_path, deps in analysis.dependencies.items():
        for dep in deps:
            stamped = dep.model_copy(update={"file_path": file_path})
            grouped.setdefault(stamped.ecosystem or UNKNOWN_ECOSYSTEM, []).append(stamped)
    return grouped


def _has_vulnerable_transitives(dep: Dependency) -> bool:
    trans = dep.transitive_dependencies
    if trans is None:
        return False
    return any(node.is_vulnerable for node in trans.nodes)


class _EcosystemGraph:
    """Accumulates one ecosystem's nodes and edges with id/edge dedup."""

    def __init__(self, ecosystem: str):
        self.ecosystem = ecosystem
        self.nodes: list[GraphNode] = []
        self.edges: list[GraphEdge] = []
        self.node_ids: set[str] = set()
        self._edge_keys: set[tuple[str, str, Relation]] = set()

    def add_node(self, node: GraphNode) -> bool:
        if node.id in self.node_ids:
            return False
        self.node_ids.add(node.id)
        self.nodes.append(node)
        return True

    def add_edge(self, source: str, target: str, relation: Relation) -> None:
        key = (source, target, relation)
        if key in self._edge_keys:
            return
        self._edge_keys.add(key)
        self.edges.append(GraphEdge(source=source, target=target, type=relation))

    def to_graph_data(self) -> GraphData:
        return GraphData(nodes=self.nodes, edges=self.edges)


class GraphBuilder:
    """Builds per-ecosystem vulnerability graphs for one repository."""

    def __init__(self, owner: str, repo: str):
        self.owner = owner
        self.repo = repo

    @property
    def center_id(self) -> str:
        return f"{self.owner}/{self.repo}"

    def build(self, grouped: GroupedDependencies) -> GraphBuildResult:
        result = GraphBuildResult()
        for ecosystem, deps in grouped.items():
            ecosystem = ecosystem or UNKNOWN_ECOSYSTEM
            graph, duplicates = self._build_ecosystem(ecosystem, deps or [])
            result.graphs[ecosystem] = graph
            if duplicates:
                result.duplicates[ecosystem] = duplicates
        return result

    def _build_ecosystem(
        self, ecosystem: str, deps: list[Dependency]
    ) -> tuple[GraphData, list[str]]:
        graph = _EcosystemGraph(ecosystem)
        duplicates: list[str] = []

        graph.add_node(GraphNode(
            id=self.center_id,
            label=MANIFEST_FILES.get(ecosystem, ecosystem),
            type=Relation.CENTER,
        ))

        for dep in deps:
            if not dep.is_vulnerable and not _has_vulnerable_transitives(dep):
                continue

            dep_id = dep.identity_key
            graph.add_edge(self.center_id, dep_id, Relation.PRIMARY)

            added = graph.add_node(GraphNode(
                id=dep_id,
                label=dep.name,
                type=Relation.PRIMARY,
                version=dep.version,
                ecosystem=dep.ecosystem,
                severity=max_severity(dep.vulnerabilities),
                vuln_count=len(dep.vulnerabilities),
            ))
            if not added:
                logger.warning(f"Duplicate dependency node found: {dep_id}")
                duplicates.append(dep_id)
                continue

            self._expand_transitives(graph, dep)

        return graph.to_graph_data(), duplicates

    def _expand_transitives(self, graph: _EcosystemGraph, dep: Dependency) -> None:
        trans = dep.transitive_dependencies
        if trans is None or not trans.nodes:
            return

        for node in trans.nodes:
            if not node.is_vulnerable or node.dependency_type == Relation.SELF:
                continue
            graph.add_node(GraphNode(
                id=node.identity_key,
                label=node.name,
                type=Relation.TRANSITIVE,
                version=node.version,
                ecosystem=node.ecosystem,
                severity=max_severity(node.vulnerabilities),
                vuln_count=len(node.vulnerabilities),
            ))

        if trans.edges:
            for edge in trans.edges:
                if not (0 <= edge.source < len(trans.nodes)) or not (0 <= edge.target < len(trans.nodes)):
                    logger.debug(
                        f"Skipping transitive edge {edge.source}->{edge.target} "
                        f"outside the node list of {dep.identity_key}"
                    )
                    continue
                source = trans.nodes[edge.source]
                target = trans.nodes[edge.target]
                if Relation.SELF in (source.dependency_type, target.dependency_type):
                    continue
                # Endpoints filtered out for having no vulnerabilities still get the edge
                graph.add_edge(source.identity_key, target.identity_key, Relation.TRANSITIVE)
        else:
            for node in trans.nodes:
                if not node.is_vulnerable or node.dependency_type == Relation.SELF:
                    continue
                graph.add_edge(dep.identity_key, node.identity_key, Relation.TRANSITIVE)


def build_graph(grouped: GroupedDependencies, owner: str, repo: str) -> EcosystemGraphMap:
    """Build the per-ecosystem graph map for ``owner/repo``."""
    return GraphBuilder(owner, repo).build(grouped).graphs
