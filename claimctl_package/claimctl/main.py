"""
claimctl command line.

Subcommands:
    render  Render claim templates and optionally publish them through Git
    list    Show the claims recorded in the registry
    delete  Remove a published claim
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from claimctl import __version__
from claimctl.config import (
    DEFAULT_API_URL,
    DEFAULT_BASE_BRANCH,
    DEFAULT_FILENAME_PATTERN,
    DEFAULT_REMOTE,
    DeleteConfig,
    GitPublishConfig,
    OutputConfig,
    PRConfig,
    RenderConfig,
    load_settings,
    setting,
)
from claimctl.delete import ClaimDeleter
from claimctl.errors import ClaimctlError, NotAGitRepoError, RegistryError
from claimctl.gitops import find_repo_root
from claimctl.pipeline import RenderPipeline
from claimctl.prompts import PromptAborted, TerminalPrompter
from claimctl.registry import ClaimRegistry, RegistryEntry
from claimctl.templates import TemplateClient

logger = logging.getLogger('claimctl')

DEFAULT_REGISTRY_PATH = "claims/registry.yaml"

TABLE_COLUMNS = [
    ("NAME", "name"),
    ("TEMPLATE", "template"),
    ("CATEGORY", "category"),
    ("NAMESPACE", "namespace"),
    ("STATUS", "status"),
    ("CREATED BY", "created_by"),
    ("SOURCE", "source"),
]


def setup_logging(verbose: bool = False) -> None:
    """Set up logging configuration."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    if verbose:
        logger.setLevel(logging.DEBUG)


def _add_git_arguments(parser: argparse.ArgumentParser) -> None:
    git = parser.add_argument_group('git')
    git.add_argument('--git-commit', action='store_true', help='Commit the changes to the git repository')
    git.add_argument('--git-push', action='store_true', help='Push the branch after committing (implies --git-commit)')
    git.add_argument('--git-create-branch', action='store_true', help='Create --git-branch from HEAD')
    git.add_argument('--git-branch', default='', help='Branch to commit to')
    git.add_argument('--git-message', default='', help='Commit message (default: auto-generated)')
    git.add_argument('--git-remote', default=None, help=f'Remote to push to (default: {DEFAULT_REMOTE})')
    git.add_argument('--git-repo-url', default='', help='Clone this repository instead of using a local one')
    git.add_argument('--git-user', default='', help='Git username (or GIT_USER/GITHUB_USER env)')
    git.add_argument('--git-token', default='', help='Git token (or GIT_TOKEN/GITHUB_TOKEN env)')

    pr = parser.add_argument_group('pull request')
    pr.add_argument('--create-pr', action='store_true', help='Open a pull request after pushing (implies --git-push)')
    pr.add_argument('--pr-title', default='', help='PR title (default: auto-generated)')
    pr.add_argument('--pr-description', default='', help='PR description (default: auto-generated)')
    pr.add_argument('--pr-labels', action='append', default=[], help='PR labels, comma-separated, repeatable')
    pr.add_argument('--pr-base', default=None, help=f'Base branch for the PR (default: {DEFAULT_BASE_BRANCH})')


def _add_mode_arguments(parser: argparse.ArgumentParser) -> None:
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument('--interactive', '-i', action='store_true', help='Force interactive mode')
    mode.add_argument('--non-interactive', action='store_true', help='Force non-interactive mode')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='claimctl',
        description="claimctl - render claim templates and publish them through Git",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  claimctl render -t volumeclaim-simple -p name=data -p storage=10Gi -o claims/infra
  claimctl render -f claims.yaml --git-commit --git-message "Add claims"
  claimctl render -f claims.yaml --git-create-branch --git-branch add-claims --create-pr
  claimctl list --category infra -o json
  claimctl delete --resource-name data --create-pr --git-branch remove-data --git-create-branch
        """
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable verbose logging')
    parser.add_argument('--config', default=None, help='Path to settings file (default: ./claimctl.yaml if present)')

    subparsers = parser.add_subparsers(dest='command', metavar='COMMAND')
    subparsers.required = True

    render = subparsers.add_parser('render', help='Render claim templates')
    render.add_argument('--api-url', '-a', default=None, help=f'Render service URL (or CLAIM_API_URL env, default: {DEFAULT_API_URL})')
    render.add_argument('--templates', '-t', action='append', default=[], help='Templates to render, comma-separated, repeatable')
    render.add_argument('--params-file', '-f', default='', help='YAML or JSON parameter file')
    render.add_argument('--param', '-p', action='append', dest='params', default=[], metavar='KEY=VALUE',
                        help='Set a parameter (can be used multiple times)')
    render.add_argument('--output-dir', '-o', default=None, help='Output directory (default: .)')
    render.add_argument('--filename-pattern', default=None, help=f'Filename pattern (default: {DEFAULT_FILENAME_PATTERN})')
    render.add_argument('--single-file', action='store_true', help='Combine all resources into one file')
    render.add_argument('--dry-run', action='store_true', help='Print what would be written without writing')
    _add_mode_arguments(render)
    _add_git_arguments(render)

    list_parser = subparsers.add_parser('list', help='List claims from the registry')
    list_parser.add_argument('--registry-path', default=DEFAULT_REGISTRY_PATH, help='Path to registry.yaml')
    list_parser.add_argument('--category', default='', help='Filter by category')
    list_parser.add_argument('--template', default='', help='Filter by template')
    list_parser.add_argument('--output', '-o', choices=['table', 'json'], default='table', help='Output format')

    delete = subparsers.add_parser('delete', help='Delete a claim')
    delete.add_argument('--resource-name', default='', help='Name of the claim to delete')
    delete.add_argument('--category', default='', help='Category of the claim (default: from the registry)')
    delete.add_argument('--registry-path', default=DEFAULT_REGISTRY_PATH, help='Path to registry.yaml within the repository')
    delete.add_argument('--dry-run', action='store_true', help='Show what would be deleted without changing anything')
    _add_mode_arguments(delete)
    _add_git_arguments(delete)

    return parser


def _is_interactive(args: argparse.Namespace) -> bool:
    if args.non_interactive:
        return False
    if args.interactive:
        return True
    return sys.stdin.isatty()


def _split_list(values: List[str]) -> List[str]:
    return [item.strip() for value in values for item in value.split(',') if item.strip()]


def _git_config(args: argparse.Namespace, settings: Dict[str, Any]) -> GitPublishConfig:
    return GitPublishConfig(
        commit=args.git_commit,
        push=args.git_push,
        create_branch=args.git_create_branch,
        message=args.git_message,
        branch=args.git_branch,
        remote=args.git_remote or setting(settings, 'git', 'remote', DEFAULT_REMOTE),
        repo_url=args.git_repo_url,
        user=args.git_user or os.getenv('GIT_USER') or os.getenv('GITHUB_USER') or setting(settings, 'git', 'user', ''),
        token=args.git_token,
    )


def _pr_config(args: argparse.Namespace, settings: Dict[str, Any]) -> PRConfig:
    labels = args.pr_labels or setting(settings, 'pull_request', 'labels', [])
    if isinstance(labels, str):
        labels = [labels]
    return PRConfig(
        create=args.create_pr,
        title=args.pr_title,
        description=args.pr_description,
        labels=labels,
        base_branch=args.pr_base or setting(settings, 'pull_request', 'base_branch', DEFAULT_BASE_BRANCH),
    )


def build_render_config(args: argparse.Namespace, settings: Dict[str, Any]) -> RenderConfig:
    """Combine flags, environment and settings file into one RenderConfig."""
    api_url = args.api_url or os.getenv('CLAIM_API_URL') or settings.get('api_url') or DEFAULT_API_URL
    output = OutputConfig(
        directory=args.output_dir or setting(settings, 'output', 'directory', '.'),
        filename_pattern=args.filename_pattern or setting(settings, 'output', 'filename_pattern', DEFAULT_FILENAME_PATTERN),
        single_file=args.single_file,
        dry_run=args.dry_run,
    )
    return RenderConfig(
        api_url=api_url,
        templates=_split_list(args.templates),
        params_file=args.params_file,
        inline_params=list(args.params),
        output=output,
        interactive=_is_interactive(args),
        git=_git_config(args, settings),
        pr=_pr_config(args, settings),
    )


def build_delete_config(args: argparse.Namespace, settings: Dict[str, Any]) -> DeleteConfig:
    git = _git_config(args, settings)
    pr = _pr_config(args, settings)
    # A branch or a clone only makes sense when the deletion is committed.
    if git.branch or git.repo_url:
        git.commit = True
    return DeleteConfig(
        resource_name=args.resource_name,
        category=args.category,
        registry_path=args.registry_path,
        interactive=_is_interactive(args),
        dry_run=args.dry_run,
        git=git if git.enabled or pr.create else None,
        pr=pr,
    )


def run_render(args: argparse.Namespace, settings: Dict[str, Any]) -> int:
    config = build_render_config(args, settings)
    logger.debug(f"Render service: {config.api_url}")
    client = TemplateClient(config.api_url)
    prompter = TerminalPrompter() if config.interactive else None
    return RenderPipeline(config, client, prompter).run()


def run_delete(args: argparse.Namespace, settings: Dict[str, Any]) -> int:
    config = build_delete_config(args, settings)
    prompter = TerminalPrompter() if config.interactive else None
    return ClaimDeleter(config, prompter).run()


def _registry_file(registry_path: str) -> Path:
    path = Path(registry_path)
    if path.is_absolute():
        return path
    try:
        return find_repo_root(Path.cwd()) / path
    except NotAGitRepoError:
        return path


def format_table(entries: List[RegistryEntry]) -> str:
    rows = [[header for header, _ in TABLE_COLUMNS], ['-' * len(header) for header, _ in TABLE_COLUMNS]]
    rows += [[getattr(entry, attribute) for _, attribute in TABLE_COLUMNS] for entry in entries]
    widths = [max(len(row[index]) for row in rows) for index in range(len(TABLE_COLUMNS))]
    return "\n".join(
        "  ".join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip() for row in rows
    )


def run_list(args: argparse.Namespace) -> int:
    path = _registry_file(args.registry_path)
    try:
        registry = ClaimRegistry.load(path)
    except OSError as e:
        raise RegistryError(f"Error loading registry: {e}") from e

    entries = registry.filter_entries(category=args.category, template=args.template)
    if not entries:
        print("No claims found.")
        return 0

    if args.output == 'json':
        print(json.dumps([entry.to_dict() for entry in entries], indent=2))
    else:
        print(format_table(entries))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    try:
        args = build_parser().parse_args(argv)
        setup_logging(args.verbose)

        settings = load_settings(args.config)
        if args.command == 'render':
            return run_render(args, settings)
        if args.command == 'delete':
            return run_delete(args, settings)
        return run_list(args)

    except ClaimctlError as e:
        logger.error(f"Error: {e}")
        return 1
    except (KeyboardInterrupt, PromptAborted):
        print("\nOperation cancelled by user")
        return 1


if __name__ == "__main__":
    sys.exit(main())
