"""Render orchestration: one result per requested template, failures recorded, never fatal."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from claimctl.errors import RenderError, RenderServiceError, TemplateNotFoundError
from claimctl.params import TemplateParameters

logger = logging.getLogger(__name__)

FALLBACK_RESOURCE_NAME = "output"


def resource_name_for(params: Dict[str, Any]) -> str:
    """Use the ``name`` parameter when present, else a fixed fallback."""
    if params and params.get("name") is not None:
        return str(params["name"])
    return FALLBACK_RESOURCE_NAME


@dataclass
class RenderResult:
    template_name: str
    resource_name: str = FALLBACK_RESOURCE_NAME
    content: str = ""
    params: Dict[str, Any] = field(default_factory=dict)
    output_path: str = ""
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RenderBatch:
    results: List[RenderResult] = field(default_factory=list)

    def __iter__(self) -> Iterator[RenderResult]:
        return iter(self.results)

    def __len__(self) -> int:
        return len(self.results)

    def successes(self) -> List[RenderResult]:
        return [result for result in self.results if result.ok]

    @property
    def has_errors(self) -> bool:
        return any(not result.ok for result in self.results)

    @property
    def success_count(self) -> int:
        return len(self.successes())

    @property
    def failed_count(self) -> int:
        return len(self.results) - self.success_count


class RenderOrchestrator:
    """Drives the render service over an ordered list of templates."""

    def __init__(self, client):
        self.client = client

    def validate_templates(self, names: List[str]):
        """
        Check the selected names against the live catalog before rendering anything.

        Returns:
            Mapping of template name to its descriptor
        """
        catalog = {descriptor.name: descriptor for descriptor in self.client.list_templates()}
        missing = [name for name in names if name not in catalog]
        if missing:
            raise TemplateNotFoundError(missing)
        return catalog

    def render_one(self, template_name: str, params: Dict[str, Any]) -> RenderResult:
        try:
            content = self.client.render(template_name, params)
        except RenderServiceError as e:
            logger.error(f"Failed to render {template_name}: {e}")
            return RenderResult(
                template_name=template_name,
                resource_name=resource_name_for(params),
                params=dict(params),
                error=RenderError(template_name, e),
            )

        logger.info(f"Rendered {template_name} successfully")
        return RenderResult(
            template_name=template_name,
            resource_name=resource_name_for(params),
            content=content,
            params=dict(params),
        )

    def render_all(self, entries: List[TemplateParameters]) -> RenderBatch:
        batch = RenderBatch()
        for entry in entries:
            logger.info(f"Rendering {entry.template_name}...")
            batch.results.append(self.render_one(entry.template_name, entry.parameters))

        if batch.has_errors:
            logger.warning(f"{batch.failed_count} of {len(batch)} template(s) failed to render")
        return batch
