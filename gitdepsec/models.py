"""Data model shared by the graph builder, caches and fix-plan aggregator.

Wire payloads use camelCase names; every model accepts either the wire alias
or the Python attribute name and ignores unknown fields.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import UNKNOWN_ECOSYSTEM


class Relation(str, Enum):
    """Node and edge kinds in a dependency graph."""
    PRIMARY = "PRIMARY"
    TRANSITIVE = "TRANSITIVE"
    CENTER = "CENTER"
    SELF = "SELF"


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict[str, Any]:
        """Serialize with wire (camelCase) names."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class SeverityScore(WireModel):
    cvss_v3: str | float | None = None
    cvss_v4: str | float | None = None


class Vulnerability(WireModel):
    id: str = ""
    summary: str | None = None
    details: str | None = None
    aliases: list[str] = Field(default_factory=list)
    severity_score: SeverityScore | None = Field(default=None, alias="severityScore")
    affected: list[Any] = Field(default_factory=list)
    references: list[Any] = Field(default_factory=list)
    fix_available: str | None = Field(default=None, alias="fixAvailable")

    @field_validator("aliases", "affected", "references", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return [] if value is None else value


class TransitiveEdge(WireModel):
    source: int
    target: int
    requirement: str = ""


class TransitiveDependencies(WireModel):
    nodes: list["Dependency"] = Field(default_factory=list)
    edges: list[TransitiveEdge] | None = None

    @field_validator("nodes", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return [] if value is None else value


class Dependency(WireModel):
    name: str
    version: str = ""
    ecosystem: str = UNKNOWN_ECOSYSTEM
    file_path: str = Field(default="", alias="filePath")
    vulnerabilities: list[Vulnerability] = Field(default_factory=list)
    transitive_dependencies: TransitiveDependencies | None = Field(
        default=None, alias="transitiveDependencies"
    )
    dependency_type: Relation = Field(default=Relation.PRIMARY, alias="dependencyType")

    @field_validator("ecosystem", mode="before")
    @classmethod
    def _default_ecosystem(cls, value: Any) -> Any:
        return value or UNKNOWN_ECOSYSTEM

    @field_validator("vulnerabilities", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("version", mode="before")
    @classmethod
    def _version_to_str(cls, value: Any) -> Any:
        if value is None:
            return ""
        return str(value)

    @property
    def identity_key(self) -> str:
        return f"{self.name}@{self.version}"

    @property
    def is_vulnerable(self) -> bool:
        return len(self.vulnerabilities) > 0


TransitiveDependencies.model_rebuild()

GroupedDependencies = dict[str, list[Dependency]]


class GraphNode(WireModel):
    id: str
    type: Relation
    label: str
    version: str | None = None
    ecosystem: str | None = None
    severity: float | None = None
    vuln_count: int | None = Field(default=None, alias="vulnCount")


class GraphEdge(WireModel):
    source: str
    target: str
    type: Relation


class GraphData(WireModel):
    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)


EcosystemGraphMap = dict[str, GraphData]


class HistoryItem(WireModel):
    """A saved analysis snapshot for one owner/repo/branch."""

    username: str
    repo: str
    branch: str
    graph_data: dict[str, GraphData] = Field(default_factory=dict, alias="graphData")
    dependencies: dict[str, list[Dependency]] = Field(default_factory=dict)
    branches: list[str] = Field(default_factory=list)
    cached_at: int | None = Field(default=None, alias="cachedAt")

    @property
    def repo_key(self) -> str:
        return f"{self.username}/{self.repo}/{self.branch}"


class BranchesResponse(WireModel):
    """One page returned by the branch-listing collaborator."""

    branches: list[str] | None = None
    default_branch: str | None = Field(default=None, alias="defaultBranch")
    has_more: bool | None = Field(default=None, alias="hasMore")
    total: int | None = None
    error: str | None = None


class ManifestAnalysis(WireModel):
    """Dependency analysis response: manifest file path to its dependencies."""

    dependencies: dict[str, list[Dependency]] = Field(default_factory=dict)
    error: list[str] | None = None

    @field_validator("error", mode="before")
    @classmethod
    def _error_to_list(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value]
        return value
