"""Tests for GitHub repository URL validation."""

import pytest

from gitdepsec.core.exceptions import InvalidRepositoryError, ValidationError
from gitdepsec.repo_url import RepoRef, parse_repo_url, repo_key_from_url


class TestParseRepoUrl:
    """Test parse_repo_url."""

    def test_valid_url(self):
        ref = parse_repo_url("https://github.com/octo/hello-world")
        assert ref == RepoRef(owner="octo", repo="hello-world")
        assert ref.key == "octo/hello-world"
        assert ref.branch_key("main") == "octo/hello-world/main"

    def test_trailing_slash_and_dots(self):
        ref = parse_repo_url("http://github.com/some_org/my.repo/")
        assert ref.owner == "some_org"
        assert ref.repo == "my.repo"

    @pytest.mark.parametrize("url", [
        "https://gitlab.com/octo/repo",
        "https://github.com/octo",
        "https://github.com/octo/repo/tree/main",
        "github.com/octo/repo",
        "not a url",
    ])
    def test_invalid_urls(self, url):
        with pytest.raises(InvalidRepositoryError):
            parse_repo_url(url)

    def test_invalid_repository_is_validation_error(self):
        with pytest.raises(ValidationError, match="valid GitHub repository URL"):
            parse_repo_url("https://example.com/")


class TestRepoKeyFromUrl:
    def test_valid(self):
        assert repo_key_from_url("https://github.com/octo/repo") == "octo/repo"

    def test_invalid(self):
        assert repo_key_from_url("https://github.com/") is None
