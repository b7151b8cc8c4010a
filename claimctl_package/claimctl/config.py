"""
Configuration objects for a claimctl run.

Every stage of the pipeline receives the piece of configuration it needs
explicitly. The objects are built once in :mod:`claimctl.main` from command-line
flags, environment variables and the optional YAML settings file, with the
precedence CLI > environment > settings file > built-in default.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from claimctl.errors import ConfigError, CredentialsMissingError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:8080"
DEFAULT_FILENAME_PATTERN = "{{template}}-{{name}}.yaml"
DEFAULT_REMOTE = "origin"
DEFAULT_BASE_BRANCH = "main"
DEFAULT_SETTINGS_FILE = "claimctl.yaml"

BOT_NAME = "claimctl"
BOT_EMAIL = "claimctl@automated"


@dataclass
class OutputConfig:
    """Where and how rendered artifacts are written."""

    directory: str = "."
    filename_pattern: str = DEFAULT_FILENAME_PATTERN
    single_file: bool = False
    dry_run: bool = False

    @property
    def customized(self) -> bool:
        """True when any option differs from the defaults the output form starts from."""
        return (self.dry_run or self.single_file or self.directory != "."
                or self.filename_pattern != DEFAULT_FILENAME_PATTERN)


@dataclass
class GitPublishConfig:
    """Git publishing options. ``push`` implies ``commit``."""

    commit: bool = False
    push: bool = False
    create_branch: bool = False
    message: str = ""
    branch: str = ""
    remote: str = DEFAULT_REMOTE
    repo_url: str = ""
    user: str = ""
    token: str = ""

    def __post_init__(self):
        if self.push:
            self.commit = True
        if not self.remote:
            self.remote = DEFAULT_REMOTE

    @property
    def enabled(self) -> bool:
        return self.commit or self.push


@dataclass
class PRConfig:
    """Pull request options. Blank title/description are generated."""

    create: bool = False
    title: str = ""
    description: str = ""
    labels: List[str] = field(default_factory=list)
    base_branch: str = DEFAULT_BASE_BRANCH

    def __post_init__(self):
        self.labels = normalize_labels(self.labels)
        if not self.base_branch:
            self.base_branch = DEFAULT_BASE_BRANCH


@dataclass
class RenderConfig:
    """Everything the render command needs, threaded through the pipeline."""

    api_url: str = DEFAULT_API_URL
    templates: List[str] = field(default_factory=list)
    params_file: str = ""
    inline_params: List[str] = field(default_factory=list)
    output: OutputConfig = field(default_factory=OutputConfig)
    interactive: bool = False
    git: Optional[GitPublishConfig] = None
    pr: Optional[PRConfig] = None

    def __post_init__(self):
        # A pull request needs a pushed branch, and a push needs a commit.
        if self.pr is not None and self.pr.create:
            if self.git is None:
                self.git = GitPublishConfig()
            self.git.push = True
            self.git.commit = True

    @property
    def publish_requested(self) -> bool:
        return self.git is not None and self.git.enabled


@dataclass
class DeleteConfig:
    """Options for removing a published claim."""

    resource_name: str = ""
    category: str = ""
    registry_path: str = "claims/registry.yaml"
    interactive: bool = False
    dry_run: bool = False
    git: Optional[GitPublishConfig] = None
    pr: Optional[PRConfig] = None

    def __post_init__(self):
        if self.pr is not None and self.pr.create:
            if self.git is None:
                self.git = GitPublishConfig()
            self.git.push = True
            self.git.commit = True


def normalize_labels(labels) -> List[str]:
    """Split comma-separated labels, drop blanks and duplicates, keep first-seen order."""
    result = []
    for raw in labels or []:
        for label in str(raw).split(","):
            label = label.strip()
            if label and label not in result:
                result.append(label)
    return result


def _first_env(*names: str) -> str:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return ""


def resolve_credentials(user: str = "", token: str = "", required: bool = False) -> Tuple[str, str]:
    """
    Resolve git credentials.

    Explicit values win, then ``GIT_USER``/``GIT_TOKEN``, then
    ``GITHUB_USER``/``GITHUB_TOKEN``.

    Args:
        user: Username given on the command line or in configuration
        token: Token given on the command line or in configuration
        required: Raise when either value is still missing after resolution

    Returns:
        Tuple of (user, token); either may be empty when not required
    """
    user = user or _first_env("GIT_USER", "GITHUB_USER")
    token = token or _first_env("GIT_TOKEN", "GITHUB_TOKEN")

    if required and (not user or not token):
        raise CredentialsMissingError(
            "git credentials required: set --git-user/--git-token or "
            "GIT_USER/GIT_TOKEN (or GITHUB_USER/GITHUB_TOKEN) environment variables"
        )
    return user, token


def load_settings(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load the optional YAML settings file.

    An explicitly given path must exist. Without one, ``claimctl.yaml`` in the
    current directory is used when present, otherwise the settings are empty.
    """
    explicit = path is not None
    settings_file = Path(path) if explicit else Path(DEFAULT_SETTINGS_FILE)

    if not settings_file.exists():
        if explicit:
            raise ConfigError(f"Configuration file not found: {settings_file}")
        return {}

    logger.info(f"Loading settings from {settings_file}")
    try:
        with open(settings_file, 'r', encoding='utf-8') as file:
            settings = yaml.safe_load(file) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing YAML configuration: {e}") from e
    except IOError as e:
        raise ConfigError(f"Error reading configuration file: {e}") from e

    if not isinstance(settings, dict):
        raise ConfigError("Configuration file must contain a mapping at the top level")

    if 'api_url' in settings and settings['api_url'] is not None and not isinstance(settings['api_url'], str):
        raise ConfigError("'api_url' must be a string")

    for section in ('output', 'git', 'pull_request'):
        if section in settings and settings[section] is not None and not isinstance(settings[section], dict):
            raise ConfigError(f"'{section}' must be a dictionary")

    pull_request = settings.get('pull_request') or {}
    if 'labels' in pull_request and not isinstance(pull_request['labels'], (list, str)):
        raise ConfigError("'pull_request.labels' must be a list or a comma-separated string")

    return settings


def setting(settings: Dict[str, Any], section: str, key: str, default: Any = None) -> Any:
    """Read ``settings[section][key]`` tolerating missing or empty sections."""
    values = settings.get(section) or {}
    value = values.get(key)
    return default if value is None else value
