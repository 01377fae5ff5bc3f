"""Paged branch listing for the repository in view.

Page 1 is served from the saved-analysis cache when possible; every later
page is fetched and unioned into the branches already in memory. Input-driven
fetches are debounced so a burst of URL edits costs one request.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from .constants import BRANCH_FETCH_DEBOUNCE_MS, BRANCH_PAGE_SIZE
from .core.exceptions import ClientError, InvalidRepositoryError
from .models import BranchesResponse
from .repo_cache import RepoCache
from .repo_url import RepoRef, parse_repo_url
from .state import (
    StateStore,
    load_next_page,
    reset_repo_state,
    set_branch_error,
    set_branch_page,
    set_branches,
    set_current_url,
    set_loaded_repo_key,
    set_loading_branches,
    set_selected_branch,
)

logger = logging.getLogger(__name__)

BranchFetcher = Callable[[str, str, int, int], Awaitable[BranchesResponse]]


class Debouncer:
    """Runs only the last of a burst of calls, after a quiet window."""

    def __init__(self, delay_ms: int = BRANCH_FETCH_DEBOUNCE_MS):
        self.delay_ms = delay_ms
        self._task: asyncio.Task[Any] | None = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def call(self, fn: Callable[[], Awaitable[Any]]) -> None:
        """Schedule ``fn``, cancelling any call still waiting out its window."""
        self.cancel()
        self._task = asyncio.create_task(self._run(fn))

    async def _run(self, fn: Callable[[], Awaitable[Any]]) -> Any:
        await asyncio.sleep(self.delay_ms / 1000)
        return await fn()

    def cancel(self) -> None:
        if self.pending:
            self._task.cancel()  # type: ignore[union-attr]
        self._task = None

    async def wait(self) -> None:
        """Wait for the scheduled call, if any, to run."""
        if self._task is not None:
            await self._task


def merge_branch_names(existing: list[str], new: list[str]) -> list[str]:
    """Union two branch lists keeping the first occurrence order."""
    return list(dict.fromkeys([*existing, *new]))


class BranchPaginator:
    """Loads the branch list of one repository page by page.

    Args:
        store: Application state receiving the branch list
        repo_cache: Saved analyses used to seed page 1
        fetcher: Branch-listing collaborator ``(owner, repo, page, page_size)``
        debouncer: Debouncer for input-driven fetches
    """

    def __init__(
        self,
        store: StateStore,
        repo_cache: RepoCache,
        fetcher: BranchFetcher,
        debouncer: Debouncer | None = None,
        page_size: int = BRANCH_PAGE_SIZE,
    ):
        self.store = store
        self.repo_cache = repo_cache
        self.fetcher = fetcher
        self.debouncer = debouncer or Debouncer()
        self.page_size = page_size
        self._branch_synced = False
        self._generation = 0

    async def fetch_page(self, owner: str, repo: str, page: int | None = None) -> bool:
        """Load one page of branches for ``owner/repo``.

        Returns:
            True if the page was loaded, False on a fetch error or when a
            repository switch superseded the request
        """
        page = page or self.store.state.page
        repo_key = f"{owner}/{repo}"

        if page == 1 and self._serve_from_cache(owner, repo):
            return True

        generation = self._generation
        self.store.apply(set_loading_branches, True)
        try:
            response = await self.fetcher(owner, repo, page, self.page_size)
        except ClientError as e:
            logger.error(f"Branch fetch failed for {repo_key}: {e}")
            response = BranchesResponse(error=str(e))

        if generation != self._generation:
            logger.debug(f"Discarding branch page {page} of {repo_key} after repository switch")
            return False

        if response.error:
            logger.warning(f"Branch listing error for {repo_key} page {page}: {response.error}")
            self.store.apply(set_branch_error, response.error)
            self.store.apply(reset_repo_state)
            self.store.apply(set_loading_branches, False)
            return False

        fetched = response.branches or []
        if page == 1:
            branches = list(fetched)
            default = response.default_branch
            if default and default not in branches:
                branches.insert(0, default)
            self.store.apply(set_branches, branches)
            self.store.apply(set_selected_branch, default)
            self.store.apply(set_loaded_repo_key, repo_key)
        else:
            merged = merge_branch_names(self.store.state.branches, fetched)
            self.store.apply(set_branches, merged)

        self.store.apply(
            set_branch_page, has_more=bool(response.has_more), total=response.total or 0, page=page
        )
        self.store.apply(set_branch_error, None)
        self.store.apply(set_loading_branches, False)

        self.repo_cache.refresh_branches(owner, repo, self.store.state.branches)
        return True

    def _serve_from_cache(self, owner: str, repo: str) -> bool:
        cached = self.repo_cache.lookup_branches(owner, repo)
        if cached is None:
            return False

        logger.info(f"Serving branches of {owner}/{repo} from saved analysis")
        branches = list(cached.branches)
        self.store.apply(set_branches, branches)
        self.store.apply(set_selected_branch, cached.branch)
        self.store.apply(
            set_branch_page,
            has_more=len(branches) >= self.page_size,
            total=len(branches),
            page=1,
        )
        self.store.apply(set_loaded_repo_key, f"{owner}/{repo}")
        self.store.apply(set_branch_error, None)
        return True

    async def load_next_page(self, owner: str, repo: str) -> bool:
        """Fetch the next page if more exist and no fetch is pending."""
        state = self.store.state
        if not self.store.apply(load_next_page):
            logger.debug(
                f"Not loading next page (has_more={state.has_more}, loading={state.loading_branches})"
            )
            return False
        return await self.fetch_page(owner, repo, self.store.state.page)

    async def switch_repository(self, owner: str, repo: str) -> bool:
        """Drop the in-memory branch list and load page 1 of another repository."""
        self._generation += 1
        self.debouncer.cancel()
        self.store.apply(reset_repo_state)
        self._branch_synced = False
        return await self.fetch_page(owner, repo, 1)

    def on_url_input(self, url: str) -> RepoRef | None:
        """React to an edited repository URL.

        An invalid URL records a branch error and schedules nothing. A URL for
        a repository other than the loaded one resets the branch state and
        schedules a debounced page 1 fetch.

        Returns:
            The parsed repository, or None if the input is empty or invalid
        """
        if not url:
            self._generation += 1
            self.debouncer.cancel()
            self.store.apply(reset_repo_state)
            return None

        try:
            ref = parse_repo_url(url)
        except InvalidRepositoryError as e:
            self.store.apply(set_branch_error, str(e))
            return None

        state = self.store.state
        if state.loaded_repo_key == ref.key:
            self.store.apply(set_current_url, url)
            return ref

        if state.current_url and state.current_url != url:
            self.store.apply(reset_repo_state)
            self._generation += 1
            self._branch_synced = False

        self.store.apply(set_current_url, url)
        self.debouncer.call(lambda: self.fetch_page(ref.owner, ref.repo, 1))
        return ref

    def sync_selected_branch(self, requested: str | None) -> str | None:
        """Select the requested branch if loaded, else the first branch once."""
        branches = self.store.state.branches
        if not branches:
            return self.store.state.selected_branch

        if requested and requested in branches:
            self.store.apply(set_selected_branch, requested)
            self._branch_synced = True
        elif not self._branch_synced:
            self.store.apply(set_selected_branch, branches[0])
            self._branch_synced = True

        return self.store.state.selected_branch
