"""
GitOps publishing on top of GitPython.

:class:`GitRepository` wraps the handful of Git operations claimctl needs
(open, clone, branch, add, commit, push). :class:`GitOpsPublisher` drives them
for one run:

1. acquire the repository (clone ``repo_url`` into a temporary directory, or
   walk up from the output directory to the enclosing repository),
2. create or check out the branch,
3. stage the written artifacts and the registry,
4. commit,
5. push when requested.

Completed steps are never rolled back when a later one fails; the repository
history is the audit trail.
"""

import logging
import os
import shutil
import tempfile
import urllib.parse
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

import git
from git import Actor

from claimctl.config import BOT_EMAIL, BOT_NAME, GitPublishConfig, resolve_credentials
from claimctl.errors import (
    ConfigError,
    CredentialsMissingError,
    GitOpsError,
    NotAGitRepoError,
    NothingToCommitError,
    PushError,
)

logger = logging.getLogger(__name__)

_PUSH_FAILURE_FLAGS = (
    git.PushInfo.ERROR | git.PushInfo.REJECTED | git.PushInfo.REMOTE_REJECTED | git.PushInfo.REMOTE_FAILURE
)


def find_repo_root(start: Union[str, Path]) -> Path:
    """
    Walk upward from ``start`` until a directory containing ``.git`` is found.

    ``start`` does not need to exist yet; its nearest ancestors are checked.
    """
    current = Path(os.path.abspath(start))
    while True:
        if (current / ".git").exists():
            return current
        if current.parent == current:
            raise NotAGitRepoError(f"not a git repository: {start}")
        current = current.parent


def extract_repo_slug(url: str) -> str:
    """Extract ``owner/repo`` from an HTTPS or SSH remote URL."""
    url = url.strip()
    if url.endswith(".git"):
        url = url[:-4]
    url = url.rstrip("/")

    # SSH format: git@github.com:owner/repo
    if "@" in url and ":" in url and "://" not in url:
        return url.split(":", 1)[1]

    parts = [part for part in urllib.parse.urlparse(url).path.split("/") if part]
    if len(parts) >= 2:
        return f"{parts[-2]}/{parts[-1]}"
    return url


def authenticated_url(url: str, user: str, token: str) -> str:
    """Embed basic-auth credentials into an http(s) URL; other URLs are returned unchanged."""
    parsed = urllib.parse.urlparse(url)
    if parsed.scheme not in ("http", "https") or not (user and token):
        return url
    host = parsed.hostname or ""
    if parsed.port:
        host = f"{host}:{parsed.port}"
    netloc = f"{urllib.parse.quote(user, safe='')}:{urllib.parse.quote(token, safe='')}@{host}"
    return urllib.parse.urlunparse(parsed._replace(netloc=netloc))


def _redact(message: str, *secrets: str) -> str:
    for secret in secrets:
        if secret:
            message = message.replace(secret, "***").replace(urllib.parse.quote(secret, safe=''), "***")
    return message


class GitRepository:
    """Thin wrapper over :class:`git.Repo` with claimctl's error types."""

    def __init__(self, repo: git.Repo, root: Path, ephemeral: bool = False):
        self.repo = repo
        self.root = root
        self.ephemeral = ephemeral

    @classmethod
    def open(cls, path: Union[str, Path]) -> "GitRepository":
        try:
            repo = git.Repo(str(path))
        except (git.InvalidGitRepositoryError, git.NoSuchPathError) as e:
            raise NotAGitRepoError(f"not a git repository: {path}") from e
        return cls(repo, Path(repo.working_tree_dir))

    @classmethod
    def clone(cls, url: str, user: str = "", token: str = "") -> "GitRepository":
        """Clone ``url`` into a fresh temporary directory."""
        temp_dir = tempfile.mkdtemp(prefix="claimctl-")
        logger.info(f"Cloning repository: {url}")
        try:
            repo = git.Repo.clone_from(authenticated_url(url, user, token), temp_dir)
        except git.GitCommandError as e:
            shutil.rmtree(temp_dir, ignore_errors=True)
            raise GitOpsError(_redact(f"Failed to clone repository {url}: {e}", token)) from None
        logger.info(f"Repository cloned successfully to: {temp_dir}")
        return cls(repo, Path(temp_dir), ephemeral=True)

    def cleanup(self) -> None:
        if self.ephemeral and self.root.exists():
            shutil.rmtree(self.root, ignore_errors=True)
            logger.info("Cleaned up temporary clone")

    def head_sha(self) -> str:
        return self.repo.head.commit.hexsha

    def current_branch(self) -> str:
        try:
            return self.repo.active_branch.name
        except TypeError as e:
            raise GitOpsError(f"HEAD is detached, cannot determine current branch: {e}") from e

    def remote_url(self, name: str) -> str:
        try:
            return self.repo.remote(name).url
        except ValueError as e:
            raise GitOpsError(f"remote '{name}' not found") from e

    def create_branch(self, name: str) -> None:
        """Create ``name`` at HEAD and check it out; untracked files stay in the worktree."""
        if not self.repo.head.is_valid():
            raise GitOpsError(f"cannot create branch {name}: repository has no commits")
        if name in [head.name for head in self.repo.heads]:
            raise GitOpsError(f"branch {name} already exists (omit --git-create-branch to reuse it)")
        try:
            head = self.repo.create_head(name)
            head.checkout()
        except git.GitCommandError as e:
            raise GitOpsError(f"Failed to create branch {name}: {e}") from e
        logger.info(f"Branch created and checked out: {name}")

    def checkout_branch(self, name: str, remote: str = "origin") -> None:
        """Check out an existing branch, tracking ``<remote>/<name>`` when only the remote has it."""
        try:
            if name in [head.name for head in self.repo.heads]:
                self.repo.heads[name].checkout()
            else:
                remote_ref = self._remote_ref(remote, name)
                if remote_ref is None:
                    raise GitOpsError(f"branch {name} does not exist")
                head = self.repo.create_head(name, remote_ref)
                head.set_tracking_branch(remote_ref)
                head.checkout()
        except git.GitCommandError as e:
            raise GitOpsError(f"Failed to check out branch {name}: {e}") from e
        logger.info(f"Checked out branch: {name}")

    def _remote_ref(self, remote: str, name: str):
        try:
            refs = self.repo.remote(remote).refs
        except (ValueError, AssertionError):
            return None
        return next((ref for ref in refs if ref.remote_head == name), None)

    def _relative(self, path: Union[str, Path]) -> str:
        absolute = Path(os.path.abspath(path))
        try:
            return absolute.relative_to(self.root.resolve()).as_posix()
        except ValueError:
            try:
                return absolute.resolve().relative_to(self.root.resolve()).as_posix()
            except ValueError:
                raise GitOpsError(f"{absolute} is outside the repository {self.root}") from None

    def add(self, paths: Iterable[Union[str, Path]]) -> List[str]:
        """Stage existing files. A path missing on disk is an error, nothing is staged silently."""
        relative = []
        for path in paths:
            absolute = Path(os.path.abspath(path))
            if not absolute.exists():
                raise GitOpsError(f"file not found: {absolute}")
            rel = self._relative(absolute)
            if rel not in relative:
                relative.append(rel)
        if relative:
            try:
                self.repo.git.add("--", *relative)
            except git.GitCommandError as e:
                raise GitOpsError(f"Failed to stage files: {e}") from e
            logger.debug(f"Staged: {relative}")
        return relative

    def add_removals(self, paths: Iterable[Union[str, Path]]) -> List[str]:
        """Stage deletions (and any remaining changes) below the given paths."""
        relative = [self._relative(path) for path in paths]
        if relative:
            try:
                self.repo.git.add("-A", "--", *relative)
            except git.GitCommandError as e:
                raise GitOpsError(f"Failed to stage removals: {e}") from e
        return relative

    def has_staged_changes(self) -> bool:
        if self.repo.head.is_valid():
            return bool(self.repo.index.diff("HEAD"))
        return bool(self.repo.index.entries)

    def commit(self, message: str, author_name: str = "", author_email: str = "") -> str:
        actor = Actor(author_name or BOT_NAME, author_email or BOT_EMAIL)
        try:
            commit = self.repo.index.commit(message, author=actor, committer=actor)
        except (git.GitCommandError, ValueError) as e:
            raise GitOpsError(f"Failed to commit changes: {e}") from e
        logger.info(f"Committed {commit.hexsha[:8]}: {message}")
        return commit.hexsha

    def push(self, remote: str, branch: str, user: str, token: str) -> None:
        """Push exactly ``branch`` to ``remote``. An up-to-date remote counts as success."""
        if not (user and token):
            raise CredentialsMissingError("git credentials required for push")

        try:
            remote_obj = self.repo.remote(remote)
        except ValueError as e:
            raise PushError(f"remote '{remote}' not found") from e

        refspec = f"refs/heads/{branch}:refs/heads/{branch}"
        logger.info(f"Pushing branch {branch} to {remote}")
        url = remote_obj.url
        try:
            if url.startswith(("http://", "https://")):
                self.repo.git.push(authenticated_url(url, user, token), refspec)
                return
            infos = remote_obj.push(refspec=refspec)
        except git.GitCommandError as e:
            raise PushError(_redact(f"Failed to push branch {branch}: {e}", token)) from None

        for info in infos:
            if info.flags & _PUSH_FAILURE_FLAGS:
                raise PushError(f"Failed to push branch {branch}: {info.summary.strip()}")


class GitOpsPublisher:
    """
    One publish run against one repository.

    Use as a context manager so an ephemeral clone is removed however the run
    ends::

        with GitOpsPublisher(config) as publisher:
            output_dir = publisher.acquire(output_dir)
            publisher.prepare_branch()
            ...write files...
            publisher.commit_results(results, registry_path)
            publisher.push()
    """

    def __init__(self, config: GitPublishConfig):
        self.config = config
        self.repository: Optional[GitRepository] = None
        self.user = ""
        self.token = ""
        self.branch = ""
        self.commit_sha = ""

    def __enter__(self) -> "GitOpsPublisher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    def cleanup(self) -> None:
        if self.repository is not None:
            self.repository.cleanup()

    def load_credentials(self) -> None:
        # A clone is only worth making to publish from it, so it needs credentials like a push.
        required = self.config.push or bool(self.config.repo_url)
        self.user, self.token = resolve_credentials(self.config.user, self.config.token, required=required)

    def acquire(self, output_dir: Union[str, Path]) -> Path:
        """
        Open or clone the repository.

        Returns:
            The output directory to write into; rebased into the clone when
            ``repo_url`` is configured
        """
        self.load_credentials()

        if self.config.repo_url:
            output = Path(output_dir)
            if output.is_absolute():
                raise ConfigError("with --git-repo-url the output directory must be relative to the repository root")
            self.repository = GitRepository.clone(self.config.repo_url, self.user, self.token)
            return self.repository.root / output

        root = find_repo_root(output_dir)
        self.repository = GitRepository.open(root)
        logger.info(f"Using repository at {root}")
        return Path(output_dir)

    @property
    def repo_root(self) -> Path:
        return self._require_repository().root

    def _require_repository(self) -> GitRepository:
        if self.repository is None:
            raise GitOpsError("repository not acquired")
        return self.repository

    def prepare_branch(self) -> str:
        repository = self._require_repository()
        if self.config.create_branch and self.config.branch:
            repository.create_branch(self.config.branch)
        elif self.config.branch:
            repository.checkout_branch(self.config.branch, self.config.remote)
        self.branch = self.config.branch or repository.current_branch()
        return self.branch

    def commit_results(self, results, registry_path: Optional[Union[str, Path]] = None) -> str:
        """Stage written artifacts plus the registry and commit them."""
        paths = []
        for result in results:
            if result.ok and result.output_path and result.output_path not in paths:
                paths.append(result.output_path)
        if not paths:
            raise NothingToCommitError("no files to commit")

        if registry_path is not None and Path(registry_path).exists():
            paths.append(str(registry_path))

        message = self.config.message or default_commit_message(results)
        return self.commit_paths(paths, message)

    def commit_paths(self, paths: List[Union[str, Path]], message: str,
                     removed: Tuple[Union[str, Path], ...] = ()) -> str:
        repository = self._require_repository()
        logger.info("Staging files...")
        staged = repository.add(paths)
        staged += repository.add_removals(removed)
        if not staged or not repository.has_staged_changes():
            raise NothingToCommitError("nothing to commit: rendered files are unchanged")

        self.commit_sha = repository.commit(message, self.user)
        return self.commit_sha

    def push(self) -> str:
        """Push the working branch; returns its name."""
        repository = self._require_repository()
        branch = self.branch or self.config.branch or repository.current_branch()
        repository.push(self.config.remote, branch, self.user, self.token)
        logger.info(f"Pushed {branch} to {self.config.remote}")
        self.branch = branch
        return branch

    def repo_slug(self) -> str:
        if self.config.repo_url:
            return extract_repo_slug(self.config.repo_url)
        return extract_repo_slug(self._require_repository().remote_url(self.config.remote))


def default_commit_message(results) -> str:
    names = [result.template_name for result in results if result.ok]
    return f"Rendered claims: {', '.join(names)}"
