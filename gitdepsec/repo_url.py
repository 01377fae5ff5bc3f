"""GitHub repository URL validation."""

import re
from dataclasses import dataclass

from .core.exceptions import InvalidRepositoryError

GITHUB_URL_PATTERN = re.compile(
    r"^https?://github\.com/([a-zA-Z0-9\-_]+)/([a-zA-Z0-9\-_.]+)/?$"
)


@dataclass(frozen=True)
class RepoRef:
    """Owner and repository name parsed from a GitHub URL."""
    owner: str
    repo: str

    @property
    def key(self) -> str:
        return f"{self.owner}/{self.repo}"

    def branch_key(self, branch: str) -> str:
        return f"{self.owner}/{self.repo}/{branch}"


def parse_repo_url(url: str) -> RepoRef:
    """Parse ``https://github.com/<owner>/<repo>`` into a RepoRef.

    Raises:
        InvalidRepositoryError: If the URL is not a plain repository URL
    """
    match = GITHUB_URL_PATTERN.match(url.strip())
    if not match:
        raise InvalidRepositoryError("Please enter a valid GitHub repository URL")

    owner, repo = match.group(1), match.group(2)
    if not owner or not repo:
        raise InvalidRepositoryError("Invalid repository URL format")

    return RepoRef(owner=owner, repo=repo)


def repo_key_from_url(url: str) -> str | None:
    """Return ``owner/repo`` for a valid URL, else None."""
    try:
        return parse_repo_url(url).key
    except InvalidRepositoryError:
        return None
