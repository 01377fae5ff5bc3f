"""Shared fixtures for GitDepSec tests."""

import pytest

from gitdepsec.models import Dependency, GraphData, GraphNode, HistoryItem, Relation
from gitdepsec.state import AppState, StateStore


def _dependency(name, version, scores=(), **kwargs):
    vulns = [
        {"id": f"VULN-{i}", "severityScore": {"cvss_v3": score}}
        for i, score in enumerate(scores)
    ]
    return Dependency(name=name, version=version, vulnerabilities=vulns, **kwargs)


def _graph(center_id="octo/repo"):
    return {
        "npm": GraphData(nodes=[GraphNode(id=center_id, type=Relation.CENTER, label="package.json")])
    }


def _history_item(owner="octo", repo="repo", branch="main", cached_at=None, branches=None):
    return HistoryItem(
        username=owner,
        repo=repo,
        branch=branch,
        graph_data=_graph(f"{owner}/{repo}"),
        branches=branches if branches is not None else ["main", "dev"],
        cached_at=cached_at,
    )


@pytest.fixture
def make_dependency():
    """Factory for dependencies with one vulnerability per CVSS v3 score."""
    return _dependency


@pytest.fixture
def make_graph():
    return _graph


@pytest.fixture
def make_history_item():
    return _history_item


@pytest.fixture
def store():
    return StateStore(AppState())


@pytest.fixture
def store_with_graph():
    return StateStore(AppState(graph_data=_graph()))
