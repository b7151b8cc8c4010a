"""
Interactive questions for the render command.

Every function takes a :class:`~claimctl.prompts.Prompter`; nothing here reads
the terminal directly.
"""

import logging
import random
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from claimctl.config import DEFAULT_FILENAME_PATTERN, GitPublishConfig, OutputConfig, PRConfig, normalize_labels
from claimctl.errors import NotAGitRepoError
from claimctl.gitops import find_repo_root
from claimctl.prompts import Prompter
from claimctl.templates import ParameterSpec, TemplateDescriptor

logger = logging.getLogger(__name__)

RANDOM_CHOICE = "__random__"

DESTINATION_LOCAL = "local"
DESTINATION_GIT = "git"
DESTINATION_PR = "pr"


def select_templates(prompter: Prompter, catalog: List[TemplateDescriptor]) -> List[str]:
    options = [(f"{t.name} - {t.title}" if t.title else t.name, t.name) for t in catalog]
    return prompter.multi_select("Select templates to render", options, "select at least one template")


def _validator(spec: ParameterSpec):
    def validate(value: str) -> Optional[str]:
        if not value:
            return f"{spec.name} is required" if spec.required else None
        if spec.type == "integer":
            try:
                int(value)
            except ValueError:
                return "must be a number"
        return None
    return validate


def collect_template_params(prompter: Prompter, template: TemplateDescriptor, rng=random,
                            output=print) -> Dict[str, Any]:
    """
    Ask for each declared parameter of a template.

    Hidden parameters keep their default. Enum parameters become a selection,
    with a random choice when the template allows it. Empty answers are left
    out so the render service can apply its own defaults.
    """
    params = {}
    for spec in template.parameters:
        default = "" if spec.default is None else str(spec.default)
        if spec.hidden:
            if default:
                params[spec.name] = default
            continue

        title = f"{spec.title or spec.name}{' *' if spec.required else ''}"
        description = spec.description
        if spec.pattern:
            description = f"{description} (pattern: {spec.pattern})".strip()

        if spec.enum:
            options = [(value, value) for value in spec.enum]
            if spec.allow_random:
                options.insert(0, ("Random", RANDOM_CHOICE))
            value = prompter.select(title, options, description)
            if value == RANDOM_CHOICE:
                value = rng.choice(spec.enum)
                output(f"Random selection for {spec.name}: {value}")
        elif spec.type == "boolean":
            value = prompter.select(title, [("true", "true"), ("false", "false")], description)
        else:
            value = prompter.text(title, default=default, description=description, validate=_validator(spec))

        if value != "":
            params[spec.name] = value
    return params


def choose_destination(prompter: Prompter) -> str:
    return prompter.select(
        "Where to save?",
        [
            ("Save locally only", DESTINATION_LOCAL),
            ("Commit to git repository", DESTINATION_GIT),
            ("Commit, push & create PR", DESTINATION_PR),
        ],
        "Choose how to save the rendered files",
    )


def ask_output_config(prompter: Prompter, require_git_repo: bool, success_count: int,
                      example_template: str, example_name: str, dry_run: bool = False,
                      output=print) -> Tuple[Optional[OutputConfig], bool]:
    """
    Ask for the output directory, layout and filename pattern.

    Returns:
        (config, go_back). ``config`` is None when the user cancels; ``go_back``
        asks the caller to repeat the destination choice.
    """
    while True:
        directory = prompter.text("Output directory", default=".")
        if not require_git_repo:
            break
        try:
            find_repo_root(directory)
            break
        except NotAGitRepoError:
            output("Error: Output directory is not in a git repository")
            choice = prompter.select(
                "What would you like to do?",
                [
                    ("Choose a different directory", "retry"),
                    ("Go back and save locally instead", "goback"),
                    ("Cancel", "cancel"),
                ],
            )
            if choice == "retry":
                continue
            if choice == "goback":
                return None, True
            return None, False

    if dry_run:
        logger.debug("Dry run: not creating output directory")
    elif not Path(directory).exists() and prompter.confirm(f"Directory '{directory}' doesn't exist. Create it?"):
        Path(directory).mkdir(parents=True, exist_ok=True)

    single_file = False
    if success_count > 1:
        single_file = prompter.select(
            "Output mode",
            [
                ("Separate files (one per resource)", "separate"),
                ("Single file (combined with ---)", "single"),
            ],
            "How should resources be organized?",
        ) == "single"

    pattern = DEFAULT_FILENAME_PATTERN
    if not single_file:
        pattern = prompter.select(
            "Filename pattern",
            [
                (f"{example_template}-{example_name}.yaml (default)", DEFAULT_FILENAME_PATTERN),
                (f"{example_name}.yaml", "{{name}}.yaml"),
                ("Custom", "custom"),
            ],
        )
        if pattern == "custom":
            pattern = prompter.text(
                "Custom filename pattern",
                default=DEFAULT_FILENAME_PATTERN,
                description="Use {{template}} and {{name}} as placeholders",
            )

    return OutputConfig(directory=directory, filename_pattern=pattern, single_file=single_file, dry_run=dry_run), False


def _branch_name(prompter: Prompter, description: str) -> str:
    return prompter.text(
        "Branch name",
        description=description,
        validate=lambda value: None if value else "branch name required",
    )


def ask_git_config(prompter: Prompter, create_pr: bool, defaults: GitPublishConfig) -> GitPublishConfig:
    """Ask how to commit. Creating a PR implies a new branch and a push."""
    config = GitPublishConfig(
        commit=True,
        push=create_pr,
        remote=defaults.remote,
        repo_url=defaults.repo_url,
        user=defaults.user,
        token=defaults.token,
    )

    if create_pr:
        config.create_branch = True
        config.branch = _branch_name(prompter, "New branch for the PR (required for PR creation)")
    else:
        action = prompter.select(
            "Git commit options",
            [
                ("Commit to current branch", "commit"),
                ("Commit to new branch", "branch"),
                ("Commit and push", "push"),
            ],
            "How should the files be committed?",
        )
        if action == "branch":
            config.create_branch = True
            config.branch = _branch_name(prompter, "Name for the new branch")
        elif action == "push":
            config.push = True

    config.message = prompter.text("Commit message", description="Leave empty for auto-generated message")
    return config


def ask_credentials(prompter: Prompter, config: GitPublishConfig) -> None:
    """Fill in missing push credentials; the token is read without echo."""
    if not config.user:
        config.user = prompter.text("Git username", validate=lambda value: None if value else "username required")
    if not config.token:
        config.token = prompter.masked("Git token", "Used for push and pull request creation")


def ask_pr_config(prompter: Prompter, defaults: PRConfig) -> PRConfig:
    title = prompter.text("PR Title", description="Leave empty for auto-generated title")
    description = prompter.text("PR Description", description="Leave empty for auto-generated description")
    labels = prompter.text(
        "Labels",
        default=",".join(defaults.labels),
        description="Comma-separated labels (e.g., infrastructure,automated)",
    )
    base = prompter.text("Base branch", default=defaults.base_branch, description="Target branch for the PR")
    return PRConfig(create=True, title=title, description=description,
                    labels=normalize_labels([labels]), base_branch=base)
