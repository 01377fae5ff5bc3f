import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from ..config import BackendConfig
from ..constants import BRANCH_PAGE_SIZE
from ..core.exceptions import APIError, CriticalStreamError, NetworkError
from ..fixplan.events import CompletionEvent, ErrorEvent, parse_stream_message
from ..models import BranchesResponse, ManifestAnalysis

logger = logging.getLogger(__name__)

BRANCHES_ERROR = "Failed to fetch branches. Please try again later."
ANALYSIS_ERROR = "Failed to analyse dependencies. Please try again later."
TIMEOUT_ERROR = "Request timed out. Please try again."
CONNECTION_ERROR = "Server connection error. Please try again."

SSE_END_EVENT = "end"


async def iter_sse_messages(lines: AsyncIterator[str]) -> AsyncIterator[tuple[str, str]]:
    """Group server-sent event lines into ``(event, data)`` pairs.

    Events without an ``event:`` field are named ``message``. Comment lines
    are skipped.
    """
    event_name = "message"
    data: list[str] = []

    async for line in lines:
        line = line.rstrip("\r")
        if not line:
            if data:
                yield event_name, "\n".join(data)
            event_name, data = "message", []
            continue
        if line.startswith(":"):
            continue

        field, _, value = line.partition(":")
        value = value[1:] if value.startswith(" ") else value
        if field == "event":
            event_name = value
        elif field == "data":
            data.append(value)

    if data:
        yield event_name, "\n".join(data)


class BackendClient:
    """HTTP client for the dependency analysis backend."""

    def __init__(
        self,
        config: BackendConfig | None = None,
        async_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or BackendConfig.from_env()
        self.headers = {"Content-Type": "application/json"}
        self.client = httpx.Client(
            base_url=self.config.base_url, timeout=self.config.timeout, headers=self.headers
        )
        self._async_transport = async_transport

    def __enter__(self) -> "BackendClient":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.client.close()

    def _async_client(self, timeout: httpx.Timeout | float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=timeout,
            headers=self.headers,
            transport=self._async_transport,
        )

    def _branches_body(self, owner: str, repo: str, page: int, page_size: int) -> dict[str, Any]:
        return {
            "username": owner,
            "repo": repo,
            "github_pat": self.config.github_pat,
            "page": page,
            "pageSize": page_size,
        }

    def get_branches(
        self, owner: str, repo: str, page: int = 1, page_size: int = BRANCH_PAGE_SIZE
    ) -> BranchesResponse:
        """Fetch one page of branch names.

        Failures are reported in the response's ``error`` field, never raised.
        """
        try:
            response = self.client.post(
                "/branches", json=self._branches_body(owner, repo, page, page_size)
            )
            return BranchesResponse.model_validate(response.json())
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error fetching branches for {owner}/{repo}: {e}")
            return BranchesResponse(error=BRANCHES_ERROR)

    async def get_branches_async(
        self, owner: str, repo: str, page: int = 1, page_size: int = BRANCH_PAGE_SIZE
    ) -> BranchesResponse:
        try:
            async with self._async_client(self.config.timeout) as client:
                response = await client.post(
                    "/branches", json=self._branches_body(owner, repo, page, page_size)
                )
                return BranchesResponse.model_validate(response.json())
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error fetching branches for {owner}/{repo}: {e}")
            return BranchesResponse(error=BRANCHES_ERROR)

    def analyse_dependencies(
        self, owner: str, repo: str, branch: str, force_refresh: bool = False
    ) -> ManifestAnalysis:
        """Request a dependency/vulnerability analysis of one branch.

        Raises:
            NetworkError: If the request fails or times out
            APIError: If the backend answers with an error status
        """
        body = {
            "username": owner,
            "repo": repo,
            "branch": branch,
            "github_pat": self.config.github_pat,
            "forceRefresh": force_refresh,
        }
        try:
            response = self.client.post(
                "/analyseDependencies", json=body, timeout=self.config.analysis_timeout
            )
            # Rate-limited responses carry their error in the body
            if response.status_code != 429:
                response.raise_for_status()
            return ManifestAnalysis.model_validate(response.json())
        except httpx.TimeoutException as e:
            raise NetworkError(TIMEOUT_ERROR) from e
        except httpx.HTTPStatusError as e:
            raise APIError(
                ANALYSIS_ERROR,
                status_code=e.response.status_code,
                response_body=e.response.text,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error analysing {owner}/{repo}@{branch}: {e}")
            raise NetworkError(ANALYSIS_ERROR) from e

    async def stream_fix_plan(self, owner: str, repo: str, branch: str) -> AsyncIterator[Any]:
        """Stream fix plan generation events for one branch.

        Yields typed stream events.

        Raises:
            CriticalStreamError: If the connection fails or the backend answers
                with an error status
        """
        params = {"username": owner, "repo": repo, "branch": branch}
        timeout = httpx.Timeout(self.config.timeout, read=None)

        try:
            async with self._async_client(timeout) as client:
                async with client.stream("GET", "/fixPlan", params=params) as response:
                    response.raise_for_status()
                    async for event_name, data in iter_sse_messages(response.aiter_lines()):
                        if event_name == SSE_END_EVENT:
                            yield CompletionEvent()
                            return

                        event = parse_stream_message(data)
                        if event is None:
                            continue
                        yield event
                        if isinstance(event, CompletionEvent) or (
                            isinstance(event, ErrorEvent) and event.critical
                        ):
                            return
        except httpx.HTTPError as e:
            logger.error(f"Fix plan stream error for {owner}/{repo}/{branch}: {e}")
            raise CriticalStreamError(CONNECTION_ERROR) from e
