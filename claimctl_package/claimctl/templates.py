"""
Client for the claim template render service.

This module is the only place that builds render-service URLs, sends HTTP
requests to it and interprets its responses.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from claimctl.errors import RenderServiceError

logger = logging.getLogger(__name__)

TEMPLATES_PATH = "/api/v1/claim-templates"


@dataclass(frozen=True)
class ParameterSpec:
    """One declared template parameter, used to build interactive prompts."""

    name: str
    title: str = ""
    description: str = ""
    type: str = "string"
    default: Any = None
    required: bool = False
    enum: List[str] = field(default_factory=list)
    pattern: str = ""
    hidden: bool = False
    allow_random: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ParameterSpec":
        return cls(
            name=str(data.get("name") or ""),
            title=str(data.get("title") or data.get("name") or ""),
            description=str(data.get("description") or ""),
            type=str(data.get("type") or "string"),
            default=data.get("default"),
            required=bool(data.get("required", False)),
            enum=[str(value) for value in data.get("enum") or []],
            pattern=str(data.get("pattern") or ""),
            hidden=bool(data.get("hidden", False)),
            allow_random=bool(data.get("allowRandom", False)),
        )


@dataclass(frozen=True)
class TemplateDescriptor:
    name: str
    title: str = ""
    description: str = ""
    tags: List[str] = field(default_factory=list)
    parameters: List[ParameterSpec] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TemplateDescriptor":
        metadata = data.get("metadata") or {}
        spec = data.get("spec") or {}
        return cls(
            name=str(metadata.get("name") or ""),
            title=str(metadata.get("title") or ""),
            description=str(metadata.get("description") or ""),
            tags=list(metadata.get("tags") or []),
            parameters=[ParameterSpec.from_dict(p) for p in spec.get("parameters") or []],
        )


class TemplateClient:
    """HTTP client for listing and rendering claim templates."""

    def __init__(self, base_url: str, timeout: float = 30, session: Optional[requests.Session] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, json_body: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug(f"{method} {url}")
        try:
            response = self.session.request(method, url, json=json_body, timeout=self.timeout)
        except requests.RequestException as e:
            raise RenderServiceError(f"HTTP request failed: {e}") from e

        if response.status_code != 200:
            raise RenderServiceError(
                f"API returned {response.status_code}: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise RenderServiceError(f"failed to decode response: {e}") from e

        if not isinstance(data, dict):
            raise RenderServiceError(f"unexpected response from {path}: expected an object, got {type(data).__name__}")
        return data

    def list_templates(self) -> List[TemplateDescriptor]:
        """Fetch the live template catalog."""
        data = self._request("GET", TEMPLATES_PATH)
        items = data.get("items") or []
        if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
            raise RenderServiceError("unexpected template catalog: items must be a list of objects")
        templates = [TemplateDescriptor.from_dict(item) for item in items]
        logger.info(f"Loaded {len(templates)} templates from {self.base_url}")
        return templates

    def render(self, template_name: str, params: Dict[str, Any]) -> str:
        """
        Render one template.

        Args:
            template_name: Name of the claim template
            params: Parameter map sent verbatim to the service

        Returns:
            The rendered artifact text
        """
        data = self._request("POST", f"{TEMPLATES_PATH}/{template_name}/order", json_body={"parameters": params})
        rendered = data.get("rendered")
        if rendered is None:
            raise RenderServiceError(f"response for {template_name} has no rendered content")
        if not isinstance(rendered, str):
            raise RenderServiceError(f"rendered content for {template_name} is not text")
        return rendered
