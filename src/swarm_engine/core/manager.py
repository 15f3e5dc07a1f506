"""
SwarmManager - lifecycle controller for a swarm's git branches.

Every mutating operation takes the swarm lock first, reloads the swarm from
the dependency store, acts, and releases the lock on every exit path.
"""

import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Generator, List, Optional

from ..utils.git import GitRunner
from ..utils.helpers import setup_logging
from ..utils.locking import SwarmLock, SwarmLockManager
from ..utils.retry import fetch_with_retry
from .config import EngineConfig
from .errors import (
    BranchExistsError,
    BranchNotFoundError,
    GitStepError,
    MergeError,
    NotOnIntegrationBranchError,
    SwarmGitError,
)
from .models import OperationReport, Swarm, SwarmStatus, Task, worker_branch_name
from .scheduler import WaveScheduler
from .store import JsonSwarmStore, SwarmStore

logger = setup_logging(__name__)


class SwarmManager:
    """
    Coordinates branch lifecycle and task scheduling for swarms in one repository.

    The manager holds no swarm state of its own. Branch state lives in git,
    task state lives in the store.
    """

    def __init__(
        self,
        config: EngineConfig,
        store: SwarmStore,
        git_runner: Optional[GitRunner] = None,
        lock_manager: Optional[SwarmLockManager] = None,
        scheduler: Optional[WaveScheduler] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the manager.

        Args:
            config: Engine configuration for the repository
            store: Dependency store the swarms are loaded from
            git_runner: Git executor (defaults to one pinned to config.repo_root)
            lock_manager: Lock manager (defaults to one under config.lock_path)
            scheduler: Wave scheduler
            sleep: Sleep function used between fetch retries
        """
        self.config = config
        self.repo_root = Path(config.repo_root)
        self.store = store
        self.git = git_runner or GitRunner(self.repo_root, timeout=config.git_timeout)
        self.locks = lock_manager or SwarmLockManager(
            config.lock_path, timeout=config.lock_timeout
        )
        self.scheduler = scheduler or WaveScheduler()
        self._sleep = sleep

    @classmethod
    def from_repo(cls, repo_root: Path) -> "SwarmManager":
        """Build a manager from ``.swarm/config.json`` and the JSON store of a repository."""
        config = EngineConfig.load(repo_root)
        return cls(config, JsonSwarmStore(config.store_path))

    # Loading and scheduling

    def get_swarm(self, swarm_id: str) -> Swarm:
        """
        Load a swarm fresh from the store.

        Raises:
            SwarmNotFoundError: The store does not know the swarm
        """
        return self.store.load_swarm(swarm_id)

    def get_ready_tasks(self, swarm_id: str) -> List[Task]:
        return self.scheduler.ready_tasks(self.get_swarm(swarm_id))

    def get_blocked_tasks(self, swarm_id: str) -> List[Task]:
        return self.scheduler.blocked_tasks(self.get_swarm(swarm_id))

    def is_complete(self, swarm_id: str) -> bool:
        return self.scheduler.is_complete(self.get_swarm(swarm_id))

    def get_waves(self, swarm_id: str) -> List[List[Task]]:
        return self.scheduler.waves(self.get_swarm(swarm_id))

    def get_status(self, swarm_id: str) -> SwarmStatus:
        return self.scheduler.summarize(self.get_swarm(swarm_id))

    # Locking

    def lock_swarm(self, swarm_id: str) -> SwarmLock:
        """Acquire the swarm's lock; the caller must release it."""
        return self.locks.acquire(swarm_id)

    @contextmanager
    def _mutating(self, swarm_id: str) -> Generator[None, None, None]:
        # Swarm lock first, repository lock second; never the other way round.
        with self.locks.hold(swarm_id):
            if self.config.serialize_checkout:
                with self.locks.hold_repository():
                    yield
            else:
                yield

    # Branch lifecycle

    def create_integration_branch(self, swarm_id: str) -> OperationReport:
        """
        Create the swarm's integration branch from its base commit.

        Args:
            swarm_id: Swarm identifier

        Returns:
            Report of the best-effort push

        Raises:
            BranchExistsError: The integration branch already exists locally
            GitStepError: The branch could not be created
        """
        report = OperationReport("create", swarm_id)

        with self._mutating(swarm_id):
            swarm = self.get_swarm(swarm_id)
            branch = swarm.integration_branch

            if self.git.branch_exists(branch):
                raise BranchExistsError(branch)

            try:
                self.git.run("checkout", "-b", branch, swarm.base_commit)
            except SwarmGitError as e:
                raise GitStepError("creating branch", e) from e

            logger.info(f"Created integration branch {branch} at {swarm.base_commit}")

            # No remote is an accepted state.
            self._best_effort(report, "push", "push", "-u", self.config.remote, branch)

        return report

    def merge_to_integration(self, swarm_id: str, worker_branch: str) -> OperationReport:
        """
        Merge a worker branch into the integration branch.

        Args:
            swarm_id: Swarm identifier
            worker_branch: Branch to merge

        Returns:
            Report of the best-effort fetch

        Raises:
            SwarmGitError: Merge conflict; ``conflicting_files`` lists the
                unmerged paths and the merge is left in progress
            MergeError: The merge failed without leaving unmerged paths
            GitStepError: HEAD could not be read or the checkout failed
        """
        report = OperationReport("merge", swarm_id)

        with self._mutating(swarm_id):
            swarm = self.get_swarm(swarm_id)
            integration = swarm.integration_branch

            try:
                current = self.git.current_branch()
            except SwarmGitError as e:
                raise GitStepError("getting current branch", e) from e

            if current != integration:
                try:
                    self.git.run("checkout", integration)
                except SwarmGitError as e:
                    raise GitStepError("checking out integration", e) from e

            # The branch may exist only locally; merge is attempted regardless.
            self._fetch(report, worker_branch)

            try:
                self.git.run(
                    "merge", "--no-ff", "-m",
                    f"Merge {worker_branch} into {integration}",
                    worker_branch,
                )
            except SwarmGitError as e:
                self._raise_merge_failure(e, "merging")

            logger.info(f"Merged {worker_branch} into {integration}")

        return report

    def land_to_main(self, swarm_id: str) -> OperationReport:
        """
        Merge the integration branch into the target branch and push it.

        Args:
            swarm_id: Swarm identifier

        Returns:
            Report of the best-effort fetch

        Raises:
            SwarmGitError: Merge conflict (see merge_to_integration)
            MergeError: The merge failed without leaving unmerged paths
            GitStepError: Checkout or push failed
        """
        report = OperationReport("land", swarm_id)

        with self._mutating(swarm_id):
            swarm = self.get_swarm(swarm_id)
            target = swarm.target_branch

            try:
                self.git.run("checkout", target)
            except SwarmGitError as e:
                raise GitStepError(f"checking out {target}", e) from e

            self._fetch(report, target)

            try:
                self.git.run(
                    "merge", "--no-ff", "-m",
                    f"Land swarm {swarm_id}",
                    swarm.integration_branch,
                )
            except SwarmGitError as e:
                self._raise_merge_failure(e, f"merging to {target}")

            try:
                self.git.run("push", self.config.remote, target)
            except SwarmGitError as e:
                raise GitStepError("pushing", e) from e

            logger.info(f"Landed swarm {swarm_id} on {target}")

        return report

    def abort_merge(self) -> None:
        """Abort an in-progress merge."""
        self.git.run("merge", "--abort")

    def cleanup_branches(self, swarm_id: str) -> OperationReport:
        """
        Delete the integration branch and every worker branch, locally and remotely.

        Only the local deletion of the integration branch is mandatory. The
        other deletions are best-effort and all of them are attempted even
        when earlier ones fail.

        Args:
            swarm_id: Swarm identifier

        Returns:
            Report of every best-effort deletion

        Raises:
            SwarmGitError: Local deletion of the integration branch failed;
                raised after all other deletions, with the report attached
                as ``report``
        """
        report = OperationReport("cleanup", swarm_id)
        retained: Optional[SwarmGitError] = None

        with self._mutating(swarm_id):
            swarm = self.get_swarm(swarm_id)
            integration = swarm.integration_branch
            remote = self.config.remote

            try:
                self.git.run("branch", "-D", integration)
            except SwarmGitError as e:
                logger.warning(f"Failed to delete integration branch {integration}: {e}")
                retained = e

            self._best_effort(
                report, f"delete remote {integration}",
                "push", remote, "--delete", integration,
            )

            deleted: List[str] = []
            for task in swarm.tasks:
                try:
                    branch = swarm.worker_branch(task)
                except ValueError as e:
                    logger.warning(f"No branch name for task {task.task_id}: {e}")
                    report.record(f"branch name for {task.task_id}", e)
                    continue
                if not branch or branch in deleted:
                    continue
                deleted.append(branch)

                self._best_effort(report, f"delete {branch}", "branch", "-D", branch)
                self._best_effort(
                    report, f"delete remote {branch}",
                    "push", remote, "--delete", branch,
                )

        if retained is not None:
            retained.report = report
            raise retained

        logger.info(f"Cleaned up branches of swarm {swarm_id}")
        return report

    def get_integration_branch(self, swarm_id: str) -> str:
        return self.get_swarm(swarm_id).integration_branch

    def get_worker_branch(self, swarm_id: str, worker: str, task_id: str) -> str:
        return worker_branch_name(swarm_id, worker, task_id)

    # Repository queries

    def branch_exists(self, branch: str) -> bool:
        return self.git.branch_exists(branch)

    def current_branch(self) -> str:
        return self.git.current_branch()

    def conflicting_files(self) -> Optional[List[str]]:
        """
        Paths in unmerged state.

        Returns:
            The paths, or None when the diff itself failed
        """
        try:
            return self.git.unmerged_files()
        except SwarmGitError as e:
            logger.debug(f"Could not list unmerged files: {e}")
            return None

    def verify_integration_checkout(self, swarm_id: str) -> str:
        """
        Check that the swarm's integration branch exists and is checked out.

        Returns:
            The integration branch name

        Raises:
            BranchNotFoundError: The integration branch does not exist locally
            NotOnIntegrationBranchError: HEAD is on another branch
        """
        integration = self.get_integration_branch(swarm_id)
        if not self.git.branch_exists(integration):
            raise BranchNotFoundError(integration)

        current = self.git.current_branch()
        if current != integration:
            raise NotOnIntegrationBranchError(integration, current)
        return integration

    # Helpers

    def _best_effort(self, report: OperationReport, step: str, *args: str) -> None:
        try:
            self.git.run(*args)
        except SwarmGitError as e:
            logger.debug(f"Ignoring failed {step}: {e}")
            report.record(step, e)
        else:
            report.record(step)

    def _fetch(self, report: OperationReport, ref: str) -> None:
        try:
            fetch_with_retry(
                self.git,
                self.config.remote,
                ref,
                attempts=self.config.fetch_retries,
                base_delay=self.config.fetch_retry_delay,
                sleep=self._sleep,
                max_elapsed=self.config.fetch_max_elapsed,
            )
        except SwarmGitError as e:
            logger.debug(f"Ignoring failed fetch of {ref}: {e}")
            report.record("fetch", e)
        else:
            report.record("fetch")

    def _raise_merge_failure(self, err: SwarmGitError, step: str) -> None:
        # Unmerged paths, not stderr text, decide whether this is a conflict.
        conflicts = self.conflicting_files()
        if conflicts:
            err.conflicting_files = conflicts
            logger.warning(f"Merge conflict in {len(conflicts)} file(s): {', '.join(conflicts)}")
            raise err
        raise MergeError(step, err) from err
