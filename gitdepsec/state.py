"""Application state, reducers and the persisted projection.

``AppState`` is an immutable snapshot. Every mutation is a reducer: a pure
function taking the current snapshot and returning a replacement. A reducer
that has nothing to change returns the snapshot it was given, which is how
``StateStore`` tells a real transition from a no-op and avoids notifying
listeners twice for the same content.

Reducers that touch fix-plan, progress or error state take an optional
``ecosystem`` scope; ``None`` means the global scope.
"""

import time
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .constants import GLOBAL_ERROR_KEY
from .fixplan.merge import deep_merge_plan, has_plan_changed, order_plan
from .models import Dependency, GraphData, HistoryItem


PlanDocument = dict[str, Any]


def now_ms() -> int:
    return int(time.time() * 1000)


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class EcosystemProgress(FrozenModel):
    phase: str | None = None
    progress: float = 0


class FixPlanCacheEntry(FrozenModel):
    """Fix plans generated for one ``owner/repo/branch``."""

    global_fix_plan: str = Field(default="", alias="globalFixPlan")
    is_fix_plan_generated: bool = Field(default=False, alias="isFixPlanGenerated")
    timestamp: int = 0
    ecosystem_fix_plans: dict[str, str] = Field(default_factory=dict, alias="ecosystemFixPlans")
    ecosystem_partial_fix_plans: dict[str, PlanDocument] = Field(
        default_factory=dict, alias="ecosystemPartialFixPlans"
    )
    has_multiple_ecosystems: bool = Field(default=False, alias="hasMultipleEcosystems")

    @property
    def has_plan(self) -> bool:
        return bool(self.global_fix_plan.strip() or self.ecosystem_fix_plans)


class AppState(FrozenModel):
    # Branch listing
    branches: list[str] = Field(default_factory=list)
    selected_branch: str | None = Field(default=None, alias="selectedBranch")
    loading_branches: bool = False
    has_more: bool = Field(default=False, alias="hasMore")
    total_branches: int = Field(default=0, alias="totalBranches")
    page: int = 1
    current_url: str | None = Field(default=None, alias="currentUrl")
    loaded_repo_key: str | None = Field(default=None, alias="loadedRepoKey")

    # Errors
    error: str | None = None
    branch_error: str | None = None
    manifest_error: list[str] = Field(default_factory=list)
    fix_plan_error: dict[str, str] = Field(default_factory=dict)

    # Graph
    dependencies: dict[str, list[Dependency]] = Field(default_factory=dict)
    graph_data: dict[str, GraphData] = Field(default_factory=dict)
    graph_repo_key: str | None = None
    loading: bool = False

    # Fix plan
    fix_plans_by_repo: dict[str, FixPlanCacheEntry] = Field(
        default_factory=dict, alias="fixPlansByRepo"
    )
    current_fix_plan_repo_key: str | None = Field(default=None, alias="currentFixPlanRepoKey")
    partial_fix_plan: PlanDocument = Field(default_factory=dict)
    is_fix_plan_loading: bool = False
    current_fix_plan_phase: str | None = None
    current_fix_plan_step: str | None = None
    fix_plan_progress: float = 0
    ecosystem_progress: dict[str, EcosystemProgress] = Field(
        default_factory=dict, alias="ecosystemProgress"
    )
    selected_ecosystem: str | None = Field(default=None, alias="selectedEcosystem")

    # Saved history, bucketed by the date it was saved
    saved_history_items: dict[str, list[HistoryItem]] = Field(
        default_factory=dict, alias="savedHistoryItems"
    )

    def current_fix_plan_entry(self) -> FixPlanCacheEntry | None:
        if not self.current_fix_plan_repo_key:
            return None
        return self.fix_plans_by_repo.get(self.current_fix_plan_repo_key)


Reducer = Callable[..., AppState]


def _replace(state: AppState, **changes: Any) -> AppState:
    if all(getattr(state, name) == value for name, value in changes.items()):
        return state
    return state.model_copy(update=changes)


def _with_entry(state: AppState, key: str, entry: FixPlanCacheEntry) -> AppState:
    return state.model_copy(update={"fix_plans_by_repo": {**state.fix_plans_by_repo, key: entry}})


# =============================================================================
# Repository / branch reducers
# =============================================================================

def set_branches(state: AppState, branches: list[str]) -> AppState:
    return _replace(state, branches=list(branches))


def set_selected_branch(state: AppState, branch: str | None) -> AppState:
    return _replace(state, selected_branch=branch)


def set_loading_branches(state: AppState, loading: bool) -> AppState:
    return _replace(state, loading_branches=loading)


def set_branch_page(
    state: AppState, *, has_more: bool, total: int, page: int | None = None
) -> AppState:
    changes: dict[str, Any] = {"has_more": has_more, "total_branches": total}
    if page is not None:
        changes["page"] = page
    return _replace(state, **changes)


def load_next_page(state: AppState) -> AppState:
    """Advance to the next page only when more exist and none is loading."""
    if state.has_more and not state.loading_branches:
        return _replace(state, page=state.page + 1)
    return state


def set_current_url(state: AppState, url: str | None) -> AppState:
    return _replace(state, current_url=url)


def set_loaded_repo_key(state: AppState, key: str | None) -> AppState:
    return _replace(state, loaded_repo_key=key)


def reset_repo_state(state: AppState) -> AppState:
    return _replace(
        state,
        branches=[],
        selected_branch=None,
        loading_branches=False,
        has_more=False,
        total_branches=0,
        page=1,
        current_url=None,
        loaded_repo_key=None,
    )


# =============================================================================
# Error reducers
# =============================================================================

def set_error(state: AppState, error: str | None) -> AppState:
    return _replace(state, error=error)


def set_branch_error(state: AppState, error: str | None) -> AppState:
    return _replace(state, branch_error=error)


def add_manifest_errors(state: AppState, errors: list[str] | None) -> AppState:
    if not errors:
        return state
    return _replace(state, manifest_error=[*state.manifest_error, *errors])


def set_fix_plan_errors(state: AppState, errors: dict[str, str]) -> AppState:
    return _replace(state, fix_plan_error=dict(errors))


def record_fix_plan_error(state: AppState, key: str, message: str) -> AppState:
    if state.fix_plan_error.get(key) == message:
        return state
    return _replace(state, fix_plan_error={**state.fix_plan_error, key: message})


def reset_error_state(state: AppState) -> AppState:
    return _replace(state, error=None, manifest_error=[], branch_error=None, fix_plan_error={})


# =============================================================================
# Graph reducers
# =============================================================================

def set_dependencies(state: AppState, dependencies: dict[str, list[Dependency]]) -> AppState:
    return _replace(state, dependencies=dependencies)


def set_graph_data(
    state: AppState, graph_data: dict[str, GraphData], repo_key: str | None = None
) -> AppState:
    return _replace(state, graph_data=graph_data, graph_repo_key=repo_key)


def set_loading(state: AppState, loading: bool) -> AppState:
    return _replace(state, loading=loading)


# =============================================================================
# Fix plan reducers
# =============================================================================

def set_fix_plan_repo_key(state: AppState, key: str | None) -> AppState:
    return _replace(state, current_fix_plan_repo_key=key)


def set_global_fix_plan(
    state: AppState, plan: str, repo_key: str | None = None, *, now: int | None = None
) -> AppState:
    key = repo_key or state.current_fix_plan_repo_key
    if not key:
        return state
    entry = state.fix_plans_by_repo.get(key) or FixPlanCacheEntry()
    return _with_entry(state, key, entry.model_copy(update={
        "global_fix_plan": plan,
        "is_fix_plan_generated": bool(plan.strip()),
        "timestamp": now if now is not None else now_ms(),
    }))


def set_ecosystem_fix_plan(
    state: AppState,
    ecosystem: str,
    plan: str,
    repo_key: str | None = None,
    *,
    now: int | None = None,
) -> AppState:
    key = repo_key or state.current_fix_plan_repo_key
    if not key:
        return state
    entry = state.fix_plans_by_repo.get(key) or FixPlanCacheEntry()
    plans = {**entry.ecosystem_fix_plans, ecosystem: plan}
    return _with_entry(state, key, entry.model_copy(update={
        "ecosystem_fix_plans": plans,
        "has_multiple_ecosystems": len(plans) > 1,
        "is_fix_plan_generated": True,
        "timestamp": now if now is not None else now_ms(),
    }))


def update_partial_fix_plan(
    state: AppState, fragment: PlanDocument, ecosystem: str | None = None
) -> AppState:
    """Deep-merge plan sections into the partial plan of a scope.

    Returns ``state`` unchanged if the merge does not alter any section.
    """
    if not fragment:
        return state

    if ecosystem:
        key = state.current_fix_plan_repo_key
        if not key:
            return state
        entry = state.fix_plans_by_repo.get(key) or FixPlanCacheEntry()
        current = entry.ecosystem_partial_fix_plans.get(ecosystem, {})
        merged = deep_merge_plan(current, fragment)
        if not has_plan_changed(current, merged):
            return state
        partials = {**entry.ecosystem_partial_fix_plans, ecosystem: order_plan(merged)}
        return _with_entry(
            state, key, entry.model_copy(update={"ecosystem_partial_fix_plans": partials})
        )

    merged = deep_merge_plan(state.partial_fix_plan, fragment)
    if not has_plan_changed(state.partial_fix_plan, merged):
        return state
    return state.model_copy(update={"partial_fix_plan": order_plan(merged)})


def clear_partial_fix_plan(state: AppState, ecosystem: str | None = None) -> AppState:
    if not ecosystem:
        return _replace(state, partial_fix_plan={})

    key = state.current_fix_plan_repo_key
    if not key:
        return state
    entry = state.fix_plans_by_repo.get(key) or FixPlanCacheEntry()
    if ecosystem not in entry.ecosystem_partial_fix_plans:
        return state
    partials = {
        name: plan for name, plan in entry.ecosystem_partial_fix_plans.items() if name != ecosystem
    }
    return _with_entry(state, key, entry.model_copy(update={"ecosystem_partial_fix_plans": partials}))


def set_fix_plan_loading(state: AppState, loading: bool) -> AppState:
    return _replace(state, is_fix_plan_loading=loading)


def set_fix_plan_phase(state: AppState, phase: str | None, ecosystem: str | None = None) -> AppState:
    if not ecosystem:
        return _replace(state, current_fix_plan_phase=phase)
    current = state.ecosystem_progress.get(ecosystem) or EcosystemProgress()
    if current.phase == phase and ecosystem in state.ecosystem_progress:
        return state
    return state.model_copy(update={"ecosystem_progress": {
        **state.ecosystem_progress,
        ecosystem: EcosystemProgress(phase=phase, progress=current.progress),
    }})


def set_fix_plan_step(state: AppState, step: str | None) -> AppState:
    return _replace(state, current_fix_plan_step=step)


def set_fix_plan_progress(state: AppState, progress: float, ecosystem: str | None = None) -> AppState:
    if not ecosystem:
        return _replace(state, fix_plan_progress=progress)
    current = state.ecosystem_progress.get(ecosystem) or EcosystemProgress()
    if current.progress == progress and ecosystem in state.ecosystem_progress:
        return state
    return state.model_copy(update={"ecosystem_progress": {
        **state.ecosystem_progress,
        ecosystem: EcosystemProgress(phase=current.phase, progress=progress),
    }})


def set_selected_ecosystem(state: AppState, ecosystem: str | None) -> AppState:
    return _replace(state, selected_ecosystem=ecosystem)


def reset_fix_plan_state(state: AppState) -> AppState:
    """Reset progress and partial plans; drop per-ecosystem plans of the current key."""
    state = _replace(
        state,
        partial_fix_plan={},
        is_fix_plan_loading=False,
        current_fix_plan_phase=None,
        current_fix_plan_step=None,
        fix_plan_progress=0,
        ecosystem_progress={},
        selected_ecosystem=None,
    )
    key = state.current_fix_plan_repo_key
    if not key:
        return state
    entry = state.fix_plans_by_repo.get(key) or FixPlanCacheEntry()
    if not entry.ecosystem_fix_plans and not entry.ecosystem_partial_fix_plans and key in state.fix_plans_by_repo:
        return state
    return _with_entry(state, key, entry.model_copy(update={
        "ecosystem_fix_plans": {},
        "ecosystem_partial_fix_plans": {},
    }))


def start_fix_plan_generation(state: AppState) -> AppState:
    """Clear errors and previous plan data for the current key, then mark loading."""
    state = set_fix_plan_errors(state, {})
    state = set_global_fix_plan(state, "")
    state = clear_partial_fix_plan(state)
    state = reset_fix_plan_state(state)
    state = set_error(state, "")
    return set_fix_plan_loading(state, True)


def fail_fix_plan_generation(state: AppState, message: str) -> AppState:
    """Record a critical generation error under the reserved global key."""
    state = record_fix_plan_error(state, GLOBAL_ERROR_KEY, message)
    return set_fix_plan_loading(state, False)


# =============================================================================
# Saved history reducers
# =============================================================================

def set_saved_history_items(state: AppState, items: dict[str, list[HistoryItem]]) -> AppState:
    return _replace(state, saved_history_items={**state.saved_history_items, **items})


def reset_saved_history(state: AppState) -> AppState:
    return _replace(state, saved_history_items={})


# =============================================================================
# Store
# =============================================================================

class StateStore:
    """Single owner of the current AppState snapshot."""

    def __init__(self, state: AppState | None = None):
        self._state = state or AppState()
        self._listeners: list[Callable[[AppState], None]] = []
        self.version = 0

    @property
    def state(self) -> AppState:
        return self._state

    def subscribe(self, listener: Callable[[AppState], None]) -> Callable[[], None]:
        """Register a listener called with each new snapshot; returns an unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def apply(self, reducer: Reducer, *args: Any, **kwargs: Any) -> bool:
        """Run a reducer against the current snapshot.

        Returns True if the snapshot was replaced (listeners notified).
        """
        new_state = reducer(self._state, *args, **kwargs)
        return self.replace(new_state)

    def replace(self, new_state: AppState) -> bool:
        if new_state is self._state:
            return False
        self._state = new_state
        self.version += 1
        for listener in list(self._listeners):
            listener(new_state)
        return True


# =============================================================================
# Persistence projection
# =============================================================================

class PersistedSnapshot(FrozenModel):
    """The only AppState fields that survive a session."""

    branches: list[str] = Field(default_factory=list)
    selected_branch: str | None = Field(default=None, alias="selectedBranch")
    loaded_repo_key: str | None = Field(default=None, alias="loadedRepoKey")
    has_more: bool = Field(default=False, alias="hasMore")
    total_branches: int = Field(default=0, alias="totalBranches")
    current_url: str | None = Field(default=None, alias="currentUrl")
    saved_history_items: dict[str, list[HistoryItem]] = Field(
        default_factory=dict, alias="savedHistoryItems"
    )
    fix_plans_by_repo: dict[str, FixPlanCacheEntry] = Field(
        default_factory=dict, alias="fixPlansByRepo"
    )
    current_fix_plan_repo_key: str | None = Field(default=None, alias="currentFixPlanRepoKey")
    ecosystem_progress: dict[str, EcosystemProgress] = Field(
        default_factory=dict, alias="ecosystemProgress"
    )
    selected_ecosystem: str | None = Field(default=None, alias="selectedEcosystem")


PERSISTED_FIELDS = tuple(PersistedSnapshot.model_fields)


def to_persisted(state: AppState) -> dict[str, Any]:
    """Project the allow-listed fields of a snapshot to a JSON-ready dict."""
    snapshot = PersistedSnapshot(**{name: getattr(state, name) for name in PERSISTED_FIELDS})
    return snapshot.model_dump(by_alias=True, mode="json")


def from_persisted(data: dict[str, Any] | None) -> AppState:
    """Rebuild a fresh AppState seeded with persisted fields.

    Anything outside the allow-list is ignored.
    """
    if not data:
        return AppState()
    snapshot = PersistedSnapshot.model_validate(data)
    return AppState(**{name: getattr(snapshot, name) for name in PERSISTED_FIELDS})
