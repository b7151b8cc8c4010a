"""Pull request creation through the GitHub API."""

import logging
import os
from pathlib import Path
from typing import List, Optional

from github import Github, GithubException

from claimctl.config import PRConfig
from claimctl.errors import PRAuthError, PRError

logger = logging.getLogger(__name__)

DEFAULT_GITHUB_API_URL = "https://api.github.com"


def generate_title(results) -> str:
    names = [result.template_name for result in results if result.ok]
    if len(names) == 1:
        return f"Add rendered claim: {names[0]}"
    return f"Add rendered claims: {', '.join(names)}"


def generate_description(results, repo_root: Optional[Path] = None) -> str:
    lines = ["Rendered claims:", ""]
    for result in results:
        if not result.ok:
            continue
        path = result.output_path
        if path and repo_root is not None:
            try:
                path = Path(path).resolve().relative_to(Path(repo_root).resolve()).as_posix()
            except ValueError:
                pass
        entry = f"- `{result.template_name}` ({result.resource_name})"
        if path:
            entry += f" → `{path}`"
        lines.append(entry)
    lines.extend(["", "Generated by claimctl."])
    return "\n".join(lines)


class PullRequestCreator:
    """Opens pull requests on GitHub (or GitHub Enterprise via ``GITHUB_API_URL``)."""

    def __init__(self, token: str, api_url: Optional[str] = None, client: Optional[Github] = None):
        self.token = token
        self.api_url = api_url or os.getenv("GITHUB_API_URL") or DEFAULT_GITHUB_API_URL
        self._client = client

    @property
    def client(self) -> Github:
        if self._client is None:
            self._client = Github(self.token, base_url=self.api_url)
        return self._client

    def ensure_authenticated(self) -> str:
        """
        Verify the token before anything is pushed for review.

        Returns:
            Login of the authenticated user
        """
        if not self.token:
            raise PRAuthError("GitHub token not found: set --git-token, GIT_TOKEN or GITHUB_TOKEN to create pull requests")
        try:
            login = self.client.get_user().login
        except GithubException as e:
            raise PRAuthError(f"GitHub token not authenticated ({e.status}); check the token's scopes") from e
        logger.info(f"GitHub client authenticated as {login}")
        return login

    def create(self, config: PRConfig, head_branch: str, repo_slug: str, results,
               repo_root: Optional[Path] = None) -> str:
        """
        Open a pull request for the published artifacts.

        Args:
            config: Title, description, labels and base branch
            head_branch: The pushed branch
            repo_slug: ``owner/repo`` on the GitHub host
            results: Render results, used for generated title and description
            repo_root: Repository root, to show output paths relative to it

        Returns:
            URL of the new pull request
        """
        if head_branch == config.base_branch:
            raise PRError(f"head branch {head_branch} is the base branch; use --git-branch with --git-create-branch")

        title = config.title or generate_title(results)
        body = config.description or generate_description(results, repo_root)

        logger.info(f"Creating pull request for {repo_slug}: {head_branch} -> {config.base_branch}")
        try:
            repo = self.client.get_repo(repo_slug)
            pr = repo.create_pull(title=title, body=body, head=head_branch, base=config.base_branch)
            labels = self._labels(config.labels)
            if labels:
                pr.add_to_labels(*labels)
        except GithubException as e:
            raise PRError(f"Failed to create pull request: {e}") from e

        logger.info(f"Pull request created: {pr.html_url}")
        return pr.html_url

    @staticmethod
    def _labels(labels: List[str]) -> List[str]:
        return [label for label in labels if label]
