"""GitHub API client for listing repositories to clone."""

import os
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import requests

from .runner import CommandRunner, get_runner
from .timeout import whole_seconds

logger = logging.getLogger('multirepo')

PER_PAGE = 100


class GitHubError(Exception):
    """Raised when the GitHub API returns an error response."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        super().__init__(f"GitHub API error ({status_code}): {message}")


class GitHubTimeoutError(TimeoutError):
    """Raised when a GitHub API request times out."""


class GitHubConnectionError(ConnectionError):
    """Raised when the GitHub API host cannot be reached."""


def get_auth_token(host: str = "github.com", runner: Optional[CommandRunner] = None) -> Optional[str]:
    """Find a token for a GitHub host.

    The gh CLI is asked first, then the environment: GITHUB_TOKEN or
    GH_TOKEN for github.com, GH_ENTERPRISE_TOKEN (then GITHUB_TOKEN) for
    other hosts.

    Args:
        host: GitHub host name
        runner: Optional command runner

    Returns:
        Token, or None for unauthenticated access
    """
    runner = runner or get_runner()
    try:
        result = runner.run(["gh", "auth", "token", "--hostname", host])
        if result.ok and result.stdout.strip():
            return result.stdout.strip()
    except OSError:
        logger.debug("gh CLI not available")

    if host == "github.com":
        return os.getenv('GITHUB_TOKEN') or os.getenv('GH_TOKEN')
    return os.getenv('GH_ENTERPRISE_TOKEN') or os.getenv('GITHUB_TOKEN')


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def filter_active_repos(
    repos: List[Dict[str, Any]],
    days_threshold: int,
    now: Optional[datetime] = None
) -> List[Dict[str, Any]]:
    """Keep unarchived repositories with recent activity.

    Activity is the later of pushed_at and updated_at.

    Args:
        repos: Repository dictionaries from the API
        days_threshold: Maximum age of the last activity in days
        now: Reference time (default: current UTC time)

    Returns:
        Active repositories, in input order
    """
    now = now or datetime.now(timezone.utc)
    threshold = now - timedelta(days=days_threshold)

    active = []
    for repo in repos:
        if repo.get('archived'):
            continue
        stamps = [
            stamp for stamp in (
                _parse_timestamp(repo.get('pushed_at')),
                _parse_timestamp(repo.get('updated_at')),
            )
            if stamp is not None
        ]
        if stamps and max(stamps) >= threshold:
            active.append(repo)
    return active


def get_clone_url(repo: Dict[str, Any], prefer_ssh: bool = False) -> str:
    """Get the clone URL of a repository.

    Args:
        repo: Repository dictionary from the API
        prefer_ssh: Use the SSH URL instead of HTTPS

    Returns:
        Clone URL
    """
    if prefer_ssh:
        return repo['ssh_url']
    return repo['clone_url']


class GitHubClient:
    """Client for the GitHub (or GitHub Enterprise) REST API."""

    def __init__(
        self,
        api_url: str = "https://api.github.com",
        token: Optional[str] = None,
        timeout_ms: int = 30000,
        host: str = "github.com",
        session: Optional[requests.Session] = None
    ):
        """Initialize GitHub client.

        Args:
            api_url: REST API base URL
            token: Optional personal access token
            timeout_ms: Per-request timeout in milliseconds
            host: Host name, used in error messages
            session: Optional requests session
        """
        self.api_url = api_url.rstrip("/")
        self.token = token
        self.timeout_ms = timeout_ms
        self.host = host
        self.session = session or requests.Session()
        self.headers = {
            'Accept': 'application/vnd.github.v3+json',
            'User-Agent': 'repos',
        }

        if token:
            self.headers['Authorization'] = f'Bearer {token}'
            logger.debug("Using GitHub token for authentication")
        else:
            logger.info("Using unauthenticated mode (public repos only)")

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def _get(self, endpoint: str) -> Any:
        """GET an API endpoint and decode the JSON body.

        Raises:
            GitHubTimeoutError: If the request times out
            GitHubConnectionError: If the host cannot be reached
            GitHubError: On a non-2xx response
        """
        url = f"{self.api_url}{endpoint}"
        logger.debug(f"GET {url}")
        try:
            response = self.session.get(url, headers=self.headers, timeout=self.timeout_ms / 1000)
        except requests.exceptions.Timeout:
            raise GitHubTimeoutError(
                f"Request to {self.host} timed out after {whole_seconds(self.timeout_ms)}s"
            )
        except requests.exceptions.ConnectionError:
            raise GitHubConnectionError(f"Unable to connect to {self.host}")

        if not response.ok:
            raise GitHubError(response.status_code, response.text)
        return response.json()

    def _paginate(self, endpoint: str) -> List[Dict[str, Any]]:
        all_repos: List[Dict[str, Any]] = []
        page = 1

        while True:
            repos_page = self._get(f"{endpoint}&per_page={PER_PAGE}&page={page}")
            if not repos_page:
                break

            all_repos.extend(repos_page)
            if len(repos_page) < PER_PAGE:
                break
            page += 1

        return all_repos

    def get_org_repos(self, org: str) -> List[Dict[str, Any]]:
        """Get all repositories of an organization."""
        return self._paginate(f"/orgs/{org}/repos?type=all")

    def get_user_repos(self, username: str) -> List[Dict[str, Any]]:
        """Get all repositories owned by a user."""
        return self._paginate(f"/users/{username}/repos?type=owner")

    def list_repos(self, owner: str) -> List[Dict[str, Any]]:
        """List repositories of an organization, or of a user if no such org exists.

        Args:
            owner: Organization or user login

        Returns:
            Repository dictionaries

        Raises:
            GitHubTimeoutError: If a request times out
            GitHubConnectionError: If the host cannot be reached
            GitHubError: If the user endpoint fails too
        """
        try:
            repos = self.get_org_repos(owner)
        except GitHubError as e:
            logger.debug(f"{owner} is not an organization ({e.status_code}), trying user repositories")
            repos = self.get_user_repos(owner)

        logger.info(f"Found {len(repos)} repositories for {owner}")
        return repos
