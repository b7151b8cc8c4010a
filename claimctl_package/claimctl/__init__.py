"""
claimctl - Claim Rendering and GitOps Publishing

A command-line tool that renders infrastructure claims through a template
render service, writes them to disk and publishes them through Git: commit,
branch, push and pull request, with a registry of published claims.
"""

__version__ = "0.1.0"
__author__ = "claimctl Team"
__description__ = "Render claim templates and publish them through a GitOps workflow"

from .main import main
from .pipeline import RenderPipeline

__all__ = ["RenderPipeline", "main"]
