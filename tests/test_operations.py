"""Tests for the per-command operations."""

import os

import pytest

from multirepo.config import Config
from multirepo.core.runner import LFS_BYPASS_ENV
from multirepo.core.types import FailureMode, OutcomeKind, RepositoryHandle
from multirepo.operations.checkout import CheckoutOperation
from multirepo.operations.clean import CleanOperation
from multirepo.operations.clone import CloneOperation
from multirepo.operations.diff import DiffOperation
from multirepo.operations.exec import ExecOperation
from multirepo.operations.fetch import FetchOperation
from multirepo.operations.pull import PullOperation
from multirepo.operations.registry import registry
from multirepo.operations.status import StatusOperation, categorize

from .conftest import git, commit_file


def with_upstream(runner, behind: int = 0) -> None:
    runner.on("branch", "--show-current", stdout="main\n")
    runner.on("rev-parse", "--abbrev-ref", stdout="origin/main\n")
    runner.on("rev-list", "--count", "HEAD..origin/main", stdout=f"{behind}\n")
    runner.on("rev-list", "--count", "origin/main..HEAD", stdout="0\n")


@pytest.mark.unit
class TestRegistry:
    """Operation discovery."""

    def test_all_commands_registered(self) -> None:
        assert registry.list_names() == [
            "checkout", "clean", "clone", "diff", "exec", "fetch", "pull", "status",
        ]

    def test_update_is_alias_of_pull(self) -> None:
        assert registry.get("update") is PullOperation

    def test_unknown_operation(self) -> None:
        with pytest.raises(KeyError, match="Unknown Operation"):
            registry.get_or_raise("push")


@pytest.mark.unit
class TestPull:
    """PullOperation."""

    def test_skips_uncommitted_changes(self, config, fake_runner, handle) -> None:
        with_upstream(fake_runner)
        fake_runner.on("status", "--porcelain", stdout=" M a.txt\n")

        outcome = PullOperation(config, fake_runner).execute(handle)

        assert outcome.kind == OutcomeKind.SKIPPED
        assert outcome.error == "Has uncommitted changes"
        assert not fake_runner.ran("pull")

    def test_skips_without_upstream(self, config, fake_runner, handle) -> None:
        fake_runner.on("rev-parse", "--abbrev-ref", exit_code=128)

        outcome = PullOperation(config, fake_runner).execute(handle)

        assert outcome.kind == OutcomeKind.SKIPPED
        assert outcome.error == "No upstream configured"

    def test_untracked_files_do_not_block(self, config, fake_runner, handle) -> None:
        with_upstream(fake_runner)
        fake_runner.on("status", "--porcelain", stdout="?? notes.txt\n")
        fake_runner.on("pull", stdout="Already up to date.\n")

        outcome = PullOperation(config, fake_runner).execute(handle)

        assert outcome.kind == OutcomeKind.UP_TO_DATE

    def test_updated(self, config, fake_runner, handle) -> None:
        with_upstream(fake_runner)
        fake_runner.on("pull", stdout="Fast-forward\n 2 files changed, 3 insertions(+)\n")

        outcome = PullOperation(config, fake_runner).execute(handle)

        assert outcome.success is True
        assert outcome.kind == OutcomeKind.UPDATED
        assert outcome.detail == "2 file(s) changed"

    def test_connection_error(self, config, fake_runner, handle) -> None:
        with_upstream(fake_runner)
        fake_runner.on("pull", exit_code=1, stderr="ssh: connect to host github.com port 22: Connection refused\n")

        outcome = PullOperation(config, fake_runner).execute(handle)

        assert outcome.kind == OutcomeKind.ERROR
        assert outcome.error == "Pull failed: connection error"
        assert outcome.failure == FailureMode.CONNECTION

    def test_timeout(self, tmp_path, fake_runner, handle) -> None:
        config = Config(base_dir=str(tmp_path), timeout_ms=50)
        with_upstream(fake_runner)
        fake_runner.on("pull", delay=2.0)

        outcome = PullOperation(config, fake_runner).execute(handle)

        assert outcome.kind == OutcomeKind.ERROR
        assert outcome.failure == FailureMode.TIMEOUT
        assert outcome.error.startswith("Pull timed out after")

    def test_dry_run_behind(self, config, fake_runner, handle) -> None:
        with_upstream(fake_runner, behind=2)

        outcome = PullOperation(config, fake_runner, dry_run=True).execute(handle)

        assert outcome.kind == OutcomeKind.WOULD_UPDATE
        assert outcome.detail == "2 commit(s) behind"
        assert fake_runner.ran("fetch")
        assert not fake_runner.ran("pull")

    def test_dry_run_up_to_date(self, config, fake_runner, handle) -> None:
        with_upstream(fake_runner, behind=0)

        outcome = PullOperation(config, fake_runner, dry_run=True).execute(handle)

        assert outcome.kind == OutcomeKind.UP_TO_DATE

    def test_dry_run_survives_fetch_failure(self, config, fake_runner, handle) -> None:
        with_upstream(fake_runner, behind=1)
        fake_runner.on("fetch", exit_code=1, stderr="Could not resolve host: github.com")

        outcome = PullOperation(config, fake_runner, dry_run=True).execute(handle)

        assert outcome.kind == OutcomeKind.WOULD_UPDATE


@pytest.mark.unit
class TestFetch:
    """FetchOperation."""

    def test_fetched(self, config, fake_runner, handle) -> None:
        outcome = FetchOperation(config, fake_runner).execute(handle)

        assert outcome.kind == OutcomeKind.FETCHED
        assert fake_runner.commands() == [("fetch",)]

    def test_prune_and_all(self, config, fake_runner, handle) -> None:
        FetchOperation(config, fake_runner, prune=True, all_remotes=True).execute(handle)

        assert fake_runner.commands() == [("fetch", "--prune", "--all")]

    def test_error(self, config, fake_runner, handle) -> None:
        fake_runner.on("fetch", exit_code=128, stderr="fatal: 'origin' does not appear to be a git repository\n")

        outcome = FetchOperation(config, fake_runner).execute(handle)

        assert outcome.kind == OutcomeKind.ERROR
        assert "does not appear to be a git repository" in outcome.error


@pytest.mark.unit
class TestCheckout:
    """CheckoutOperation."""

    def test_switched(self, config, fake_runner, handle) -> None:
        outcome = CheckoutOperation(config, fake_runner, branch="develop").execute(handle)

        assert outcome.kind == OutcomeKind.SWITCHED
        assert outcome.detail == "→ develop"
        assert fake_runner.commands() == [("checkout", "develop")]

    def test_created(self, config, fake_runner, handle) -> None:
        outcome = CheckoutOperation(config, fake_runner, branch="feature", create=True).execute(handle)

        assert outcome.kind == OutcomeKind.CREATED
        assert fake_runner.commands() == [("checkout", "-b", "feature")]

    def test_not_found(self, config, fake_runner, handle) -> None:
        fake_runner.on("checkout", exit_code=1,
                       stderr="error: pathspec 'nope' did not match any file(s) known to git\n")

        outcome = CheckoutOperation(config, fake_runner, branch="nope").execute(handle)

        assert outcome.kind == OutcomeKind.NOT_FOUND
        assert outcome.error == "Branch 'nope' not found"

    def test_exists(self, config, fake_runner, handle) -> None:
        fake_runner.on("checkout", exit_code=128, stderr="fatal: a branch named 'main' already exists\n")

        outcome = CheckoutOperation(config, fake_runner, branch="main", create=True).execute(handle)

        assert outcome.kind == OutcomeKind.EXISTS

    def test_branch_required(self, config, fake_runner) -> None:
        with pytest.raises(ValueError):
            CheckoutOperation(config, fake_runner)


@pytest.mark.unit
class TestClean:
    """CleanOperation."""

    def test_already_clean(self, config, fake_runner, handle) -> None:
        outcome = CleanOperation(config, fake_runner).execute(handle)

        assert outcome.kind == OutcomeKind.ALREADY_CLEAN
        assert not fake_runner.ran("reset")

    def test_reverts_tracked_changes(self, config, fake_runner, handle) -> None:
        fake_runner.on("status", "--porcelain", stdout=" M a\nM  b\n?? c\n")

        outcome = CleanOperation(config, fake_runner).execute(handle)

        assert outcome.kind == OutcomeKind.CLEANED
        assert outcome.detail == "2 reverted"
        assert fake_runner.ran("reset", "--hard", "HEAD")
        assert not fake_runner.ran("clean")

    def test_removes_untracked_with_all(self, config, fake_runner, handle) -> None:
        fake_runner.on("status", "--porcelain", stdout=" D a\n?? c\n")

        outcome = CleanOperation(config, fake_runner, include_untracked=True).execute(handle)

        assert outcome.detail == "1 reverted, 1 removed"
        assert fake_runner.ran("clean", "-fd")

    def test_untracked_only_without_all_is_clean(self, config, fake_runner, handle) -> None:
        fake_runner.on("status", "--porcelain", stdout="?? c\n")

        outcome = CleanOperation(config, fake_runner).execute(handle)

        assert outcome.kind == OutcomeKind.ALREADY_CLEAN

    def test_lfs_filters_bypassed(self, config, fake_runner, handle) -> None:
        fake_runner.on("status", "--porcelain", stdout=" M a\n?? c\n")

        CleanOperation(config, fake_runner, include_untracked=True).execute(handle)

        envs = [c['env'] for c in fake_runner.calls if c['key'][0] in ("reset", "clean")]
        assert envs == [LFS_BYPASS_ENV, LFS_BYPASS_ENV]

    def test_reset_failure_reports_stderr(self, config, fake_runner, handle) -> None:
        fake_runner.on("status", "--porcelain", stdout=" M a\n")
        fake_runner.on("reset", exit_code=128, stdout="noise", stderr="fatal: Unable to create index.lock\n")

        outcome = CleanOperation(config, fake_runner).execute(handle)

        assert outcome.kind == OutcomeKind.ERROR
        assert outcome.error == "fatal: Unable to create index.lock"

    def test_dry_run(self, config, fake_runner, handle) -> None:
        fake_runner.on("status", "--porcelain", stdout=" M a\n?? c\n")

        outcome = CleanOperation(config, fake_runner, dry_run=True, include_untracked=True).execute(handle)

        assert outcome.kind == OutcomeKind.WOULD_CLEAN
        assert outcome.detail == "1 reverted, 1 removed"
        assert not fake_runner.ran("reset")


@pytest.mark.unit
class TestClone:
    """CloneOperation."""

    repo = {
        'name': 'api',
        'clone_url': 'https://github.com/acme/api.git',
        'ssh_url': 'git@github.com:acme/api.git',
        'pushed_at': '2024-05-01T10:00:00Z',
    }

    def test_clone(self, config, fake_runner) -> None:
        outcome = CloneOperation(config, fake_runner).execute(self.repo)

        target = os.path.join(config.base_dir, "api")
        assert outcome.kind == OutcomeKind.CLONED
        assert fake_runner.commands() == [("git", "clone", self.repo['clone_url'], target)]

    def test_shallow(self, config, fake_runner) -> None:
        outcome = CloneOperation(config, fake_runner, shallow=True).execute(self.repo)

        assert outcome.detail == "shallow"
        assert fake_runner.ran("git", "clone", "--depth", "1", "--single-branch")

    def test_clone_url_getter(self, config, fake_runner) -> None:
        CloneOperation(config, fake_runner, clone_url_getter=lambda r: r['ssh_url']).execute(self.repo)

        assert fake_runner.calls[0]['argv'][2] == self.repo['ssh_url']

    def test_existing_directory_is_pulled(self, config, fake_runner) -> None:
        target = os.path.join(config.base_dir, "api")
        os.makedirs(target)
        with_upstream(fake_runner)
        fake_runner.on("pull", stdout="Already up to date.\n")

        outcome = CloneOperation(config, fake_runner).execute(self.repo)

        assert outcome.kind == OutcomeKind.ALREADY_UP_TO_DATE
        assert not fake_runner.ran("git", "clone")

    def test_existing_directory_updated(self, config, fake_runner) -> None:
        os.makedirs(os.path.join(config.base_dir, "api"))
        with_upstream(fake_runner)
        fake_runner.on("pull", stdout=" 1 file changed\n")

        outcome = CloneOperation(config, fake_runner).execute(self.repo)

        assert outcome.kind == OutcomeKind.PULLED

    def test_dry_run(self, config, fake_runner) -> None:
        os.makedirs(os.path.join(config.base_dir, "web"))

        clone = CloneOperation(config, fake_runner, dry_run=True)
        missing = clone.execute(self.repo)
        present = clone.execute(dict(self.repo, name="web"))

        assert missing.kind == OutcomeKind.WOULD_CLONE
        assert missing.detail == "Last activity: 2024-05-01"
        assert present.kind == OutcomeKind.WOULD_PULL
        assert fake_runner.calls == []

    def test_clone_failure(self, config, fake_runner) -> None:
        fake_runner.on("git", "clone", exit_code=128, stderr="fatal: repository not found\n")

        outcome = CloneOperation(config, fake_runner).execute(self.repo)

        assert outcome.kind == OutcomeKind.ERROR
        assert outcome.error == "fatal: repository not found"


@pytest.mark.unit
class TestExec:
    """ExecOperation."""

    def test_success(self, config, fake_runner, handle) -> None:
        fake_runner.on("sh", "-c", stdout="hello\n")

        result = ExecOperation(config, fake_runner, command="echo hello").execute(handle)

        assert result.success is True
        assert result.exit_code == 0
        assert result.output == "hello"
        assert result.error is None
        assert fake_runner.calls[0]['repo'] == handle.path

    def test_failure_prefers_stderr(self, config, fake_runner, handle) -> None:
        fake_runner.on("sh", "-c", exit_code=2, stdout="partial", stderr="not found\n")

        result = ExecOperation(config, fake_runner, command="make").execute(handle)

        assert result.success is False
        assert result.exit_code == 2
        assert result.output == "partial"
        assert result.error == "not found"

    def test_timeout(self, tmp_path, fake_runner, handle) -> None:
        config = Config(base_dir=str(tmp_path), timeout_ms=50)
        fake_runner.on("sh", delay=2.0)

        result = ExecOperation(config, fake_runner, command="sleep 10").execute(handle)

        assert result.success is False
        assert result.exit_code == 1
        assert result.error.startswith("timed out after")

    def test_command_required(self, config, fake_runner) -> None:
        with pytest.raises(ValueError):
            ExecOperation(config, fake_runner)


@pytest.mark.unit
class TestDiffAndStatus:
    """Read-only operations."""

    def test_diff(self, config, fake_runner, handle) -> None:
        fake_runner.on("diff", "--stat", stdout=" a.txt | 1 +\n")
        fake_runner.on("diff", stdout="diff --git a/a.txt b/a.txt\n+x\n")

        result = DiffOperation(config, fake_runner).execute(handle)

        assert result.has_diff is True
        assert result.stat == "a.txt | 1 +"
        assert result.diff.startswith("diff --git")

    def test_no_diff(self, config, fake_runner, handle) -> None:
        result = DiffOperation(config, fake_runner).execute(handle)

        assert result.has_diff is False
        assert result.is_failed is False

    def test_status_returns_probe(self, config, fake_runner, handle) -> None:
        with_upstream(fake_runner, behind=4)

        status = StatusOperation(config, fake_runner).execute(handle)

        assert status.behind == 4
        assert categorize(status) == "Unpulled changes"


@pytest.mark.integration
class TestAgainstRealGit:
    """Operations against real repositories."""

    def test_pull_brings_in_remote_commit(self, config, make_repo, push_upstream_commit) -> None:
        path = make_repo("api", upstream=True)
        push_upstream_commit(path)

        outcome = PullOperation(config).execute(RepositoryHandle(path))

        assert outcome.kind == OutcomeKind.UPDATED
        assert outcome.detail == "1 file(s) changed"
        assert os.path.exists(os.path.join(path, "remote.txt"))

    def test_pull_up_to_date(self, config, make_repo) -> None:
        path = make_repo("web", upstream=True)

        outcome = PullOperation(config).execute(RepositoryHandle(path))

        assert outcome.kind == OutcomeKind.UP_TO_DATE

    def test_clean_reverts_and_removes(self, config, make_repo) -> None:
        path = make_repo("dirty")
        with open(os.path.join(path, "README.md"), 'w') as f:
            f.write("changed\n")
        with open(os.path.join(path, "scratch.txt"), 'w') as f:
            f.write("tmp\n")

        outcome = CleanOperation(config, include_untracked=True).execute(RepositoryHandle(path))

        assert outcome.kind == OutcomeKind.CLEANED
        assert outcome.detail == "1 reverted, 1 removed"
        assert git(path, "status", "--porcelain") == ""

    def test_checkout_create_then_switch(self, config, make_repo) -> None:
        path = make_repo("branches")
        handle = RepositoryHandle(path)

        created = CheckoutOperation(config, branch="feature", create=True).execute(handle)
        again = CheckoutOperation(config, branch="feature", create=True).execute(handle)
        back = CheckoutOperation(config, branch="main").execute(handle)
        missing = CheckoutOperation(config, branch="nope").execute(handle)

        assert created.kind == OutcomeKind.CREATED
        assert again.kind == OutcomeKind.EXISTS
        assert back.kind == OutcomeKind.SWITCHED
        assert missing.kind == OutcomeKind.NOT_FOUND

    def test_diff_shows_change(self, config, make_repo) -> None:
        path = make_repo("changed")
        commit_file(path, "a.txt", "one\n")
        with open(os.path.join(path, "a.txt"), 'w') as f:
            f.write("two\n")

        result = DiffOperation(config).execute(RepositoryHandle(path))

        assert result.has_diff is True
        assert "a.txt" in result.stat
