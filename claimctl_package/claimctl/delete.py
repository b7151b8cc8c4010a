"""
Removal of a published claim.

Deleting a claim removes its files below ``claims/<category>/``, drops the
resource from that category's ``kustomization.yaml`` and the entry from the
registry, then optionally publishes the change like a render.
"""

import dataclasses
import logging
import shutil
from pathlib import Path
from typing import List, Optional

from claimctl.config import DeleteConfig, GitPublishConfig, PRConfig, resolve_credentials
from claimctl.errors import ConfigError, FilesystemError, RegistryError
from claimctl.gitops import GitOpsPublisher
from claimctl.interactive import ask_credentials, ask_git_config, ask_pr_config
from claimctl.kustomize import KUSTOMIZATION_FILE, Kustomization
from claimctl.prompts import Prompter
from claimctl.pull_request import PullRequestCreator
from claimctl.registry import CLAIMS_ROOT, ClaimRegistry, RegistryEntry

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class DeleteResult:
    resource_name: str
    category: str
    removed: List[Path]
    changed: List[Path]


def delete_commit_message(name: str) -> str:
    return f"Delete claim: {name}"


def _claim_paths(repo_root: Path, entry: RegistryEntry, category: str) -> List[Path]:
    """Files or directories that make up the claim on disk."""
    candidates = [repo_root / CLAIMS_ROOT / category / entry.name]
    if entry.path and repo_root / entry.path not in candidates:
        candidates.append(repo_root / entry.path)
    return [path for path in candidates if path.exists()]


class ClaimDeleter:
    """
    One delete run.

    Args:
        config: Delete options built by the CLI
        prompter: Prompt capability; required for interactive runs
        output: Print function for user-facing output
        pr_creator_factory: Builds the PR creator from a token
    """

    def __init__(self, config: DeleteConfig, prompter: Optional[Prompter] = None,
                 output=print, pr_creator_factory=PullRequestCreator):
        self.config = config
        self.prompter = prompter
        self._print = output
        self.pr_creator_factory = pr_creator_factory
        self.commit_sha = ""
        self.pr_url = ""

    def run(self) -> int:
        if self.config.interactive and self.prompter is None:
            raise ConfigError("interactive mode needs a terminal")

        git_config = self.config.git or GitPublishConfig()
        with GitOpsPublisher(git_config) as publisher:
            publisher.acquire(".")
            repo_root = publisher.repo_root
            registry_path = repo_root / self.config.registry_path

            try:
                registry = ClaimRegistry.load(registry_path)
            except FileNotFoundError:
                raise RegistryError(f"registry not found: {registry_path}") from None

            entry = self._select(registry)
            if entry is None:
                self._print("Cancelled.")
                return 0

            category = self.config.category or entry.category
            if not category:
                raise ConfigError(f"claim '{entry.name}' has no category; pass --category")

            if self.config.dry_run:
                self._dry_run(entry, category, repo_root)
                return 0

            if git_config.enabled:
                publisher.prepare_branch()

            result = self.perform(repo_root, registry, registry_path, entry, category)
            self._print(f"Deleted claim: {result.resource_name}")

            if self.config.interactive and self.config.git is None:
                self._ask_publish()
                git_config = self.config.git or GitPublishConfig()
                publisher.config = git_config
                if git_config.enabled:
                    publisher.prepare_branch()

            if git_config.enabled:
                self._publish(publisher, result)
        return 0

    def _select(self, registry: ClaimRegistry) -> Optional[RegistryEntry]:
        name = self.config.resource_name
        if not name:
            if not self.config.interactive:
                raise ConfigError("--resource-name is required in non-interactive mode")
            entries = registry.filter_entries(category=self.config.category)
            if not entries:
                self._print("No claims found in registry.")
                return None
            options = [
                (f"{e.name} ({e.category}/{e.template}) [{e.status}]", e.name) for e in entries
            ]
            name = self.prompter.select("Select claim to delete", options, "Choose the claim to remove")

        entry = registry.find_entry(name)
        if entry is None:
            raise RegistryError(f"claim '{name}' not found in registry")

        if self.config.interactive:
            self._print("\nClaim to delete:")
            self._print(f"  Name:       {entry.name}")
            self._print(f"  Template:   {entry.template}")
            self._print(f"  Category:   {entry.category}")
            self._print(f"  Namespace:  {entry.namespace}")
            self._print(f"  Path:       {entry.path}")
            self._print(f"  Created by: {entry.created_by}\n")
            if not self.prompter.confirm(f"Delete claim '{entry.name}'?", default=False):
                return None
        return entry

    def _dry_run(self, entry: RegistryEntry, category: str, repo_root: Path) -> None:
        self._print("\n=== DRY RUN - No changes made ===")
        self._print(f"Would delete claim: {entry.name}")
        self._print(f"  Category:    {category}")
        for path in _claim_paths(repo_root, entry, category) or [repo_root / CLAIMS_ROOT / category / entry.name]:
            self._print(f"  Remove:      {path}")
        self._print("  Registry:    remove entry from registry.yaml")
        self._print(f"  Kustomize:   remove resource from {CLAIMS_ROOT}/{category}/{KUSTOMIZATION_FILE}")

    def perform(self, repo_root: Path, registry: ClaimRegistry, registry_path: Path,
                entry: RegistryEntry, category: str) -> DeleteResult:
        """
        Remove the claim files, the kustomization resource and the registry entry.

        A resource missing from the kustomization file is only a warning; the
        claim files must exist.
        """
        targets = _claim_paths(repo_root, entry, category)
        if not targets:
            raise FilesystemError(f"claim directory not found: {repo_root / CLAIMS_ROOT / category / entry.name}")

        try:
            for target in targets:
                if not target.exists():
                    # Already gone with a parent directory.
                    continue
                if target.is_dir():
                    shutil.rmtree(target)
                else:
                    target.unlink()
                self._print(f"Removed: {target}")
        except OSError as e:
            raise FilesystemError(f"removing claim files: {e}") from e

        changed = []
        kustomization_path = repo_root / CLAIMS_ROOT / category / KUSTOMIZATION_FILE
        if kustomization_path.exists():
            kustomization = Kustomization.load(kustomization_path)
            try:
                kustomization.remove_resource(entry.name)
            except ConfigError as e:
                logger.warning(f"Kustomization not updated: {e}")
            else:
                kustomization.save(kustomization_path)
                changed.append(kustomization_path)
                self._print(f"Updated kustomization: {kustomization_path}")

        registry.remove_entry(entry.name)
        registry.save(registry_path)
        changed.append(registry_path)
        self._print(f"Updated registry: {registry_path}")

        return DeleteResult(entry.name, category, targets, changed)

    def _ask_publish(self) -> None:
        choice = self.prompter.select(
            "Create a Git PR for this deletion?",
            [
                ("Create PR (commit, push & create PR)", "pr"),
                ("Keep local changes only", "local"),
            ],
            "Choose how to handle the changes",
        )
        if choice != "pr":
            return
        git = ask_git_config(self.prompter, True, GitPublishConfig())
        pr = ask_pr_config(self.prompter, PRConfig())
        git.user, git.token = resolve_credentials(git.user, git.token)
        if not (git.user and git.token):
            ask_credentials(self.prompter, git)
        self.config = dataclasses.replace(self.config, git=git, pr=pr)

    def _publish(self, publisher: GitOpsPublisher, result: DeleteResult) -> None:
        git_config = publisher.config
        pr_config = self.config.pr
        name = result.resource_name

        # Credentials may only have been asked for after the repository was opened.
        publisher.load_credentials()

        pr_creator = None
        if pr_config is not None and pr_config.create:
            pr_creator = self.pr_creator_factory(publisher.token)
            pr_creator.ensure_authenticated()

        message = git_config.message or delete_commit_message(name)
        self.commit_sha = publisher.commit_paths(result.changed, message, removed=tuple(result.removed))
        self._print(f"Committed {self.commit_sha[:8]}: {message}")

        if git_config.push:
            branch = publisher.push()
            self._print(f"Pushed {branch} to {git_config.remote}")

            if pr_creator is not None:
                pr_config = dataclasses.replace(
                    pr_config,
                    title=pr_config.title or delete_commit_message(name),
                    description=pr_config.description or (
                        f"Removes claim `{name}` from category `{result.category}`.\n\nGenerated by claimctl."
                    ),
                )
                self.pr_url = pr_creator.create(pr_config, branch, publisher.repo_slug(), [], repo_root=None)
                self._print(f"\nPull Request Created: {self.pr_url}")
