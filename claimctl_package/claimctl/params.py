"""
Parameter resolution for claim templates.

A parameter file holds either a single template::

    template: volumeclaim-simple
    parameters:
      name: test-volume
      storage: 10Gi

or several::

    templates:
      - name: volumeclaim-simple
        parameters: {name: test-volume}
      - name: postgres-db
        parameters: {name: orders}

Values keep whatever scalar type YAML/JSON gave them; inline ``key=value``
flags always produce strings. Keys the template does not know about pass
through untouched, validation is left to the render service.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from claimctl.errors import ConfigError

logger = logging.getLogger(__name__)

Scalar = Union[str, int, float, bool]
Parameters = Dict[str, Any]


@dataclass
class TemplateParameters:
    template_name: str
    parameters: Parameters = field(default_factory=dict)


@dataclass
class ParameterFile:
    """Both file shapes; :meth:`normalize` folds the single shape into ``templates``."""

    template: str = ""
    parameters: Parameters = field(default_factory=dict)
    templates: List[TemplateParameters] = field(default_factory=list)

    def normalize(self) -> "ParameterFile":
        if self.template and not self.templates:
            self.templates = [TemplateParameters(self.template, dict(self.parameters or {}))]
        return self

    @classmethod
    def from_dict(cls, data: Any) -> "ParameterFile":
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError("Parameter file must contain a mapping at the top level")

        parameters = data.get('parameters') or {}
        if not isinstance(parameters, dict):
            raise ConfigError("'parameters' must be a mapping")

        entries = []
        raw_templates = data.get('templates') or []
        if not isinstance(raw_templates, list):
            raise ConfigError("'templates' must be a list")
        for index, item in enumerate(raw_templates):
            if not isinstance(item, dict) or not item.get('name'):
                raise ConfigError(f"Template entry {index} must be a mapping with a 'name'")
            item_params = item.get('parameters') or {}
            if not isinstance(item_params, dict):
                raise ConfigError(f"Parameters of template '{item['name']}' must be a mapping")
            entries.append(TemplateParameters(str(item['name']), dict(item_params)))

        return cls(
            template=str(data.get('template') or ""),
            parameters=dict(parameters),
            templates=entries,
        )


def parse_file(path: Union[str, Path]) -> ParameterFile:
    """
    Read and parse a parameter file (YAML or JSON).

    The format is chosen by extension; unknown extensions are tried as YAML
    first and then as JSON.

    Returns:
        The normalized ParameterFile
    """
    path = Path(path)
    try:
        text = path.read_text(encoding='utf-8')
    except OSError as e:
        raise ConfigError(f"Error reading params file {path}: {e}") from e

    suffix = path.suffix.lower()
    if suffix == '.json':
        try:
            data = json.loads(text)
        except ValueError as e:
            raise ConfigError(f"Error parsing JSON params file {path}: {e}") from e
    elif suffix in ('.yaml', '.yml'):
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigError(f"Error parsing YAML params file {path}: {e}") from e
    else:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as yaml_error:
            try:
                data = json.loads(text)
            except ValueError:
                raise ConfigError(f"Error parsing params file {path} (tried YAML and JSON): {yaml_error}") from yaml_error

    param_file = ParameterFile.from_dict(data).normalize()
    logger.info(f"Loaded parameters for {len(param_file.templates)} template(s) from {path}")
    return param_file


def parse_inline_params(values: List[str]) -> Parameters:
    """Parse ``key=value`` strings. The value may itself contain ``=`` and may be empty."""
    result = {}
    for value in values or []:
        if '=' not in value:
            raise ConfigError(f"Invalid param format: {value} (expected key=value)")
        key, raw = value.split('=', 1)
        key = key.strip()
        if not key:
            raise ConfigError(f"Empty key in param: {value}")
        result[key] = raw
    return result


def merge_params(file_params: Optional[Parameters], inline_params: Optional[Parameters]) -> Parameters:
    """Merge two parameter maps into a new one; inline values win on key collisions."""
    merged = dict(file_params or {})
    merged.update(inline_params or {})
    return merged


def resolve(
    params_file: str = "",
    template_names: Optional[List[str]] = None,
    inline: Optional[List[str]] = None,
    interactive: bool = False,
) -> List[TemplateParameters]:
    """
    Build the ordered per-template parameter list for a run.

    With explicit template names, file entries for those names get the inline
    parameters merged in and names without a file entry get an entry holding
    only the inline parameters. Without names the inline parameters apply to
    every file entry.

    Args:
        params_file: Optional path to a YAML/JSON parameter file
        template_names: Templates named on the command line
        inline: Raw ``key=value`` strings
        interactive: Interactive runs may start with nothing and prompt later

    Returns:
        One TemplateParameters per template, file order first
    """
    template_names = list(template_names or [])

    if not interactive and not params_file and not template_names:
        raise ConfigError("non-interactive mode requires --params-file or --templates")

    entries: List[TemplateParameters] = []
    if params_file:
        entries = parse_file(params_file).templates

    inline_params = parse_inline_params(inline or [])

    if template_names:
        for name in template_names:
            existing = next((entry for entry in entries if entry.template_name == name), None)
            if existing is not None:
                existing.parameters = merge_params(existing.parameters, inline_params)
            else:
                entries.append(TemplateParameters(name, dict(inline_params)))
    else:
        for entry in entries:
            entry.parameters = merge_params(entry.parameters, inline_params)

    if not entries and not interactive:
        raise ConfigError("No templates to render: the parameter file names no templates")

    if entries:
        logger.info(f"Resolved parameters for templates: {[entry.template_name for entry in entries]}")
        for entry in entries:
            logger.debug(f"{entry.template_name}: parameter keys {sorted(entry.parameters)}")
    return entries
