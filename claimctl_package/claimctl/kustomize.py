"""
Round-trip editing of ``kustomization.yaml`` resource lists.

ruamel.yaml keeps comments, key order and quoting of hand-maintained files
intact while a resource is removed.
"""

from io import StringIO
from pathlib import Path
from typing import List, Union

from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap, CommentedSeq
from ruamel.yaml.error import YAMLError

from claimctl.errors import ConfigError

KUSTOMIZATION_FILE = "kustomization.yaml"


def _yaml() -> YAML:
    yaml_parser = YAML()
    yaml_parser.preserve_quotes = True
    yaml_parser.width = 4096
    yaml_parser.indent(mapping=2, sequence=4, offset=2)
    return yaml_parser


class Kustomization:
    """A loaded kustomization document."""

    def __init__(self, data: CommentedMap = None):
        self.data = data if data is not None else CommentedMap()
        if self.data.get("resources") is None:
            self.data["resources"] = CommentedSeq()

    @property
    def resources(self) -> List[str]:
        return [str(resource) for resource in self.data["resources"]]

    @classmethod
    def load(cls, path: Union[str, Path]) -> "Kustomization":
        try:
            with open(path, 'r', encoding='utf-8') as file:
                data = _yaml().load(file)
        except YAMLError as e:
            raise ConfigError(f"parsing kustomization file {path}: {e}") from e
        if data is None:
            data = CommentedMap()
        if not isinstance(data, dict):
            raise ConfigError(f"kustomization file {path} must contain a mapping")
        return cls(data)

    def dumps(self) -> str:
        output = StringIO()
        _yaml().dump(self.data, output)
        return output.getvalue()

    def save(self, path: Union[str, Path]) -> None:
        with open(path, 'w', encoding='utf-8') as file:
            file.write(self.dumps())

    def remove_resource(self, resource: str) -> None:
        for index, existing in enumerate(self.data["resources"]):
            if str(existing) == resource:
                del self.data["resources"][index]
                return
        raise ConfigError(f"resource '{resource}' not found in kustomization")
