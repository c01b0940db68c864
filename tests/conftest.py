"""Shared pytest fixtures and configuration."""

import os
import shutil
import subprocess
import threading
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import pytest

from multirepo.config import Config
from multirepo.core.runner import CancelToken, CommandRunner
from multirepo.core.types import ProcessResult, RepositoryHandle


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: fast tests with no external dependencies")
    config.addinivalue_line("markers", "integration: tests that run real git commands")


class FakeRunner(CommandRunner):
    """CommandRunner returning scripted results instead of running processes.

    Responses are keyed by the git arguments after `-C <path>` (or the full
    argv for non-git commands), optionally scoped to one repository path.
    The longest matching prefix wins; unscripted commands succeed silently.
    """

    def __init__(self):
        self.responses: Dict[Tuple[Optional[str], Tuple[str, ...]], dict] = {}
        self.calls: List[dict] = []
        self._lock = threading.Lock()

    def on(
        self,
        *args: str,
        repo: Optional[str] = None,
        exit_code: int = 0,
        stdout: str = "",
        stderr: str = "",
        raises: Optional[BaseException] = None,
        delay: float = 0.0
    ) -> 'FakeRunner':
        """Script the result of a command."""
        self.responses[(repo, tuple(args))] = {
            'result': ProcessResult(exit_code=exit_code, stdout=stdout, stderr=stderr),
            'raises': raises,
            'delay': delay,
        }
        return self

    def run(
        self,
        argv: Sequence[str],
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        cancel_token: Optional[CancelToken] = None
    ) -> ProcessResult:
        argv = list(argv)
        repo = cwd
        key = tuple(argv)
        if len(argv) >= 3 and argv[0] == "git" and argv[1] == "-C":
            repo = argv[2]
            key = tuple(argv[3:])

        with self._lock:
            self.calls.append({'argv': argv, 'repo': repo, 'key': key, 'env': env})

        response = self._lookup(repo, key)
        if response is None:
            return ProcessResult(exit_code=0)

        if response['delay']:
            killed = threading.Event()
            if cancel_token is not None:
                cancel_token.on_cancel(killed.set)
            if killed.wait(response['delay']):
                return ProcessResult(exit_code=-9)
        if response['raises'] is not None:
            raise response['raises']
        return response['result']

    def _lookup(self, repo: Optional[str], key: Tuple[str, ...]) -> Optional[dict]:
        for scope in (repo, None):
            for length in range(len(key), 0, -1):
                response = self.responses.get((scope, key[:length]))
                if response is not None:
                    return response
        return None

    def commands(self, repo: Optional[str] = None) -> List[Tuple[str, ...]]:
        """Recorded command keys, optionally for one repository."""
        return [c['key'] for c in self.calls if repo is None or c['repo'] == repo]

    def ran(self, *args: str) -> bool:
        """Check if a command starting with args was run."""
        return any(key[:len(args)] == args for key in self.commands())


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def config(tmp_path) -> Config:
    """Config with short timeouts rooted at a temporary directory."""
    return Config(base_dir=str(tmp_path), parallel=4, timeout_ms=2000)


@pytest.fixture
def handle(tmp_path) -> RepositoryHandle:
    return RepositoryHandle(str(tmp_path / "repo"))


# Real git fixtures

GIT_ENV = {
    'GIT_AUTHOR_NAME': 'Test',
    'GIT_AUTHOR_EMAIL': 'test@example.com',
    'GIT_COMMITTER_NAME': 'Test',
    'GIT_COMMITTER_EMAIL': 'test@example.com',
    'GIT_CONFIG_NOSYSTEM': '1',
}


def git(cwd: str, *args: str) -> str:
    """Run git in a directory, failing the test on error."""
    env = os.environ.copy()
    env.update(GIT_ENV)
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        env=env,
        capture_output=True,
        text=True,
        check=True
    )
    return result.stdout


def commit_file(repo: str, name: str, content: str, message: str = "update") -> None:
    with open(os.path.join(repo, name), 'w') as f:
        f.write(content)
    git(repo, "add", name)
    git(repo, "commit", "-q", "-m", message)


requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


@pytest.fixture
def repos_dir(tmp_path) -> str:
    path = tmp_path / "repos"
    path.mkdir()
    return str(path)


@pytest.fixture
def make_repo(tmp_path, repos_dir) -> Callable[..., str]:
    """Factory creating real git repositories with one commit.

    With upstream=True a bare remote is created and the main branch tracks it.
    """
    if shutil.which("git") is None:
        pytest.skip("git is not installed")

    remotes_dir = tmp_path / "remotes"
    remotes_dir.mkdir(exist_ok=True)

    def factory(name: str, upstream: bool = False) -> str:
        path = os.path.join(repos_dir, name)
        os.makedirs(path)
        git(path, "init", "-q")
        git(path, "symbolic-ref", "HEAD", "refs/heads/main")
        commit_file(path, "README.md", f"# {name}\n", "initial commit")

        if upstream:
            remote = str(remotes_dir / f"{name}.git")
            git(str(remotes_dir), "init", "-q", "--bare", remote)
            git(remote, "symbolic-ref", "HEAD", "refs/heads/main")
            git(path, "remote", "add", "origin", remote)
            git(path, "push", "-q", "-u", "origin", "main")
        return path

    return factory


@pytest.fixture
def push_upstream_commit(tmp_path) -> Callable[[str, str], None]:
    """Push a new commit to a repository's remote from a second clone."""

    def push(repo: str, filename: str = "remote.txt") -> None:
        remote = git(repo, "remote", "get-url", "origin").strip()
        other = str(tmp_path / f"other-{os.path.basename(repo)}-{filename}")
        git(str(tmp_path), "clone", "-q", remote, other)
        commit_file(other, filename, "from elsewhere\n", "remote change")
        git(other, "push", "-q", "origin", "main")

    return push
