"""
Claim registry: ``claims/registry.yaml`` inside the GitOps repository.

The registry is a flat list of published claims keyed by name. It is read and
written as a whole file.
"""

import logging
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from claimctl.config import GitPublishConfig
from claimctl.errors import GitOpsError, NotAGitRepoError, RegistryError
from claimctl.gitops import GitRepository, extract_repo_slug, find_repo_root
from claimctl.render import RenderResult

logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = "claim-registry.io/v1alpha1"
DEFAULT_KIND = "ClaimRegistry"
CLAIMS_ROOT = "claims"
REGISTRY_FILE = "registry.yaml"

_KEY_MAP = {"created_at": "createdAt", "created_by": "createdBy"}


@dataclass
class RegistryEntry:
    name: str
    template: str = ""
    category: str = ""
    namespace: str = ""
    created_at: str = ""
    created_by: str = ""
    source: str = ""
    repository: str = ""
    path: str = ""
    status: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {_KEY_MAP.get(f.name, f.name): getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RegistryEntry":
        values = {}
        for f in fields(cls):
            raw = data.get(_KEY_MAP.get(f.name, f.name))
            values[f.name] = "" if raw is None else str(raw)
        return cls(**values)


class ClaimRegistry:
    """In-memory registry document."""

    def __init__(self, claims: Optional[List[RegistryEntry]] = None,
                 api_version: str = DEFAULT_API_VERSION, kind: str = DEFAULT_KIND):
        self.api_version = api_version or DEFAULT_API_VERSION
        self.kind = kind or DEFAULT_KIND
        self.claims: List[RegistryEntry] = list(claims or [])

    @classmethod
    def load(cls, path: Union[str, Path]) -> "ClaimRegistry":
        """Read a registry file. Missing files raise ``FileNotFoundError``."""
        with open(path, 'r', encoding='utf-8') as file:
            try:
                data = yaml.safe_load(file) or {}
            except yaml.YAMLError as e:
                raise RegistryError(f"parsing registry file {path}: {e}") from e
        if not isinstance(data, dict):
            raise RegistryError(f"registry file {path} must contain a mapping")
        claims = [RegistryEntry.from_dict(item) for item in data.get("claims") or [] if isinstance(item, dict)]
        return cls(claims, data.get("apiVersion", ""), data.get("kind", ""))

    def save(self, path: Union[str, Path]) -> None:
        document = {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "claims": [entry.to_dict() for entry in self.claims],
        }
        with open(path, 'w', encoding='utf-8') as file:
            yaml.safe_dump(document, file, default_flow_style=False, sort_keys=False)

    def add_entry(self, entry: RegistryEntry) -> None:
        """Insert the entry, replacing any existing entry with the same name in place."""
        for index, existing in enumerate(self.claims):
            if existing.name == entry.name:
                self.claims[index] = entry
                return
        self.claims.append(entry)

    def remove_entry(self, name: str) -> None:
        for index, existing in enumerate(self.claims):
            if existing.name == name:
                del self.claims[index]
                return
        raise RegistryError(f"claim '{name}' not found in registry")

    def find_entry(self, name: str) -> Optional[RegistryEntry]:
        return next((entry for entry in self.claims if entry.name == name), None)

    def filter_entries(self, category: str = "", template: str = "") -> List[RegistryEntry]:
        """Entries matching both filters; an empty filter matches everything."""
        return [
            entry for entry in self.claims
            if (not category or entry.category == category) and (not template or entry.template == template)
        ]


def registry_path_for(repo_root: Union[str, Path]) -> Path:
    return Path(repo_root) / CLAIMS_ROOT / REGISTRY_FILE


def category_for(output_dir: Union[str, Path], repo_root: Union[str, Path]) -> str:
    """First path segment of ``output_dir`` below ``<repo>/claims``, or empty."""
    claims_root = (Path(repo_root) / CLAIMS_ROOT).resolve()
    try:
        relative = Path(output_dir).resolve().relative_to(claims_root)
    except ValueError:
        return ""
    return relative.parts[0] if relative.parts else ""


class RegistryTracker:
    """Records published artifacts. Best effort: never raises."""

    def __init__(self, clock=None):
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def record_published(self, results: List[RenderResult], output_dir: str,
                         git_config: Optional[GitPublishConfig] = None) -> Optional[Path]:
        """
        Upsert one registry entry per successfully written result.

        Args:
            results: Render results after the output writer ran
            output_dir: Directory the results were written to
            git_config: Publishing options, used for author and repository

        Returns:
            The registry path when it was saved, otherwise None
        """
        try:
            repo_root = find_repo_root(output_dir)
        except NotAGitRepoError:
            logger.debug(f"{output_dir} is not inside a git repository, skipping registry update")
            return None

        written = [result for result in results if result.ok and result.output_path]
        if not written:
            return None

        path = registry_path_for(repo_root)
        try:
            registry = ClaimRegistry.load(path)
        except FileNotFoundError:
            registry = ClaimRegistry()
        except (OSError, RegistryError) as e:
            logger.warning(f"Could not read registry {path}: {e}")
            return None

        repository = self._repository_name(repo_root, git_config)
        created_by = git_config.user if git_config is not None and git_config.user else "cli"
        category = category_for(output_dir, repo_root)
        created_at = self._clock().strftime("%Y-%m-%dT%H:%M:%SZ")

        for result in written:
            try:
                relative = Path(result.output_path).resolve().relative_to(repo_root.resolve()).as_posix()
            except ValueError:
                relative = result.output_path
            registry.add_entry(RegistryEntry(
                name=result.resource_name,
                template=result.template_name,
                category=category,
                namespace=str(result.params.get("namespace") or ""),
                created_at=created_at,
                created_by=created_by,
                source="cli",
                repository=repository,
                path=relative,
                status="active",
            ))

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            registry.save(path)
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Could not update registry: {e}")
            return None

        logger.info(f"Updated registry {path} with {len(written)} claim(s)")
        return path

    @staticmethod
    def _repository_name(repo_root: Path, git_config: Optional[GitPublishConfig]) -> str:
        if git_config is not None and git_config.repo_url:
            return git_config.repo_url
        try:
            return extract_repo_slug(GitRepository.open(repo_root).remote_url("origin"))
        except GitOpsError as e:
            logger.debug(f"No origin remote for registry entry: {e}")
            return ""
