"""
Output writer for rendered claims.

Successful results are written either one file per resource, named from a
Jinja2 filename pattern (``{{template}}`` and ``{{name}}``), or combined into a
single multi-document YAML file. Failed results are never written.
"""

import logging
import re
from pathlib import Path
from typing import List

from jinja2 import Environment, StrictUndefined, TemplateError

from claimctl.config import OutputConfig
from claimctl.errors import FilenamePatternError, FilesystemError
from claimctl.render import RenderResult

logger = logging.getLogger(__name__)

DOCUMENT_SEPARATOR = "\n---\n"
PREVIEW_LINES = 15

_pattern_env = Environment(undefined=StrictUndefined, autoescape=False)


def generate_filename(pattern: str, template: str, name: str) -> str:
    """
    Expand a filename pattern.

    Args:
        pattern: Pattern such as ``{{template}}-{{name}}.yaml``
        template: Template name for the ``template`` placeholder
        name: Resource name for the ``name`` placeholder

    Returns:
        The validated filename

    Raises:
        FilenamePatternError: If the pattern is malformed, uses an unknown
            placeholder or expands to an unsafe name
    """
    try:
        filename = _pattern_env.from_string(pattern).render(template=template, name=name)
    except TemplateError as e:
        raise FilenamePatternError(f"invalid filename pattern '{pattern}': {e}") from e
    return _validate_filename(filename, pattern)


def _validate_filename(filename: str, pattern: str) -> str:
    filename = filename.strip().replace('\\', '/')

    if not filename:
        raise FilenamePatternError(f"filename pattern '{pattern}' expanded to an empty name")

    if '..' in filename.split('/') or filename.startswith('/'):
        raise FilenamePatternError(f"Path contains unsafe patterns: {filename}")

    if re.search(r'[<>"|*?]', filename):
        raise FilenamePatternError(f"Path contains invalid characters: {filename}")

    return filename


def combined_filename(results: List[RenderResult]) -> str:
    """Name of the single-file output, taken from the first successful template."""
    for result in results:
        if result.ok:
            return f"{result.template_name}-combined.yaml"
    return "combined-claims.yaml"


def truncate_preview(content: str, max_lines: int = PREVIEW_LINES) -> str:
    lines = content.strip().split("\n")
    if len(lines) <= max_lines:
        return content.strip()
    return "\n".join(lines[:max_lines]) + f"\n... ({len(lines) - max_lines} more lines)"


class OutputWriter:
    """Writes successful render results according to an :class:`OutputConfig`."""

    def __init__(self, output=print):
        self._print = output

    def write(self, results: List[RenderResult], config: OutputConfig) -> List[str]:
        """
        Persist the successful results.

        Returns:
            Paths written (or that would be written under dry-run)
        """
        successes = [result for result in results if result.ok]
        for result in results:
            if not result.ok:
                logger.warning(f"Skipping failed render: {result.template_name}/{result.resource_name}")

        if config.dry_run:
            return self._dry_run(results, config)

        if not successes:
            logger.warning("No successful renders to write")
            return []

        if config.single_file:
            target = Path(config.directory) / combined_filename(successes)
            self._ensure_directory(Path(config.directory))
            return [self._write_single_file(successes, target)]

        # Expand every filename first: a bad pattern must not leave half the files behind.
        targets = [
            Path(config.directory) / generate_filename(config.filename_pattern, result.template_name, result.resource_name)
            for result in successes
        ]
        self._ensure_directory(Path(config.directory))
        written = []
        for result, target in zip(successes, targets):
            self._ensure_directory(target.parent)
            self._write_text(target, result.content)
            result.output_path = str(target)
            self._print(f"Saved: {target}")
            written.append(str(target))
        return written

    def _write_single_file(self, successes: List[RenderResult], target: Path) -> str:
        combined = DOCUMENT_SEPARATOR.join(result.content.strip() for result in successes) + "\n"
        self._write_text(target, combined)
        for result in successes:
            result.output_path = str(target)
        self._print(f"Saved combined file: {target}")
        return str(target)

    def _dry_run(self, results: List[RenderResult], config: OutputConfig) -> List[str]:
        self._print("\n=== DRY RUN - No files written ===")
        directory = Path(config.directory)

        if config.single_file:
            target = directory / combined_filename(results)
            self._print(f"Would write combined file: {target}\n")
            first = True
            for result in results:
                if not result.ok:
                    self._print(f"# Skipping failed render: {result.template_name}/{result.resource_name}")
                    continue
                if not first:
                    self._print("---")
                self._print(truncate_preview(result.content))
                first = False
            return [str(target)] if any(result.ok for result in results) else []

        would_write = []
        for result in results:
            if not result.ok:
                self._print(f"# Skipping failed render: {result.template_name}/{result.resource_name} - {result.error}")
                continue
            target = directory / generate_filename(config.filename_pattern, result.template_name, result.resource_name)
            self._print(f"Would write: {target}")
            self._print(truncate_preview(result.content))
            self._print("")
            would_write.append(str(target))
        return would_write

    @staticmethod
    def _ensure_directory(directory: Path) -> None:
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"Error creating output directory {directory}: {e}") from e

    @staticmethod
    def _write_text(target: Path, content: str) -> None:
        try:
            with open(target, 'w', encoding='utf-8') as file:
                file.write(content)
        except OSError as e:
            raise FilesystemError(f"Error writing output file {target}: {e}") from e
        logger.info(f"Successfully wrote {target}")
