from __future__ import annotations

from collections import deque
from pathlib import Path
from typing import Any

import git
import pytest
from git import Actor

from claimctl.errors import RenderServiceError
from claimctl.prompts import Prompter
from claimctl.templates import ParameterSpec, TemplateDescriptor

TEST_ACTOR = Actor("tester", "tester@example.com")


def make_repo(path: Path, remote: bool = False) -> git.Repo:
    """Create a repository on ``main`` with one commit, optionally pushed to a bare ``origin``."""
    path.mkdir(parents=True, exist_ok=True)
    repo = git.Repo.init(path)
    (path / "README.md").write_text("# claims\n", encoding="utf-8")
    repo.index.add(["README.md"])
    repo.index.commit("initial commit", author=TEST_ACTOR, committer=TEST_ACTOR)
    repo.git.branch("-M", "main")
    if remote:
        bare_path = path.parent / f"{path.name}-remote.git"
        bare = git.Repo.init(bare_path, bare=True)
        bare.git.symbolic_ref("HEAD", "refs/heads/main")
        repo.create_remote("origin", str(bare_path))
        repo.git.push("origin", "main")
    return repo


@pytest.fixture()
def repo(tmp_path: Path) -> git.Repo:
    return make_repo(tmp_path / "gitops")


@pytest.fixture()
def repo_with_remote(tmp_path: Path) -> git.Repo:
    return make_repo(tmp_path / "gitops", remote=True)


@pytest.fixture(autouse=True)
def _no_ambient_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("GIT_USER", "GIT_TOKEN", "GITHUB_USER", "GITHUB_TOKEN", "CLAIM_API_URL", "GITHUB_API_URL"):
        monkeypatch.delenv(name, raising=False)


def render_yaml(template: str, params: dict) -> str:
    return (
        "apiVersion: resources.example.io/v1alpha1\n"
        "kind: Claim\n"
        "metadata:\n"
        f"  name: {params.get('name', 'output')}\n"
        "spec:\n"
        f"  template: {template}\n"
        f"  storage: {params.get('storage', '1Gi')}\n"
    )


VOLUME_TEMPLATE = TemplateDescriptor(
    name="volumeclaim-simple",
    title="Simple volume claim",
    parameters=[
        ParameterSpec(name="name", title="Name", required=True),
        ParameterSpec(name="storage", title="Storage", default="1Gi"),
    ],
)

DATABASE_TEMPLATE = TemplateDescriptor(
    name="postgres-db",
    title="PostgreSQL database",
    parameters=[
        ParameterSpec(name="name", title="Name", required=True),
        ParameterSpec(name="size", title="Size", enum=["small", "large"], allow_random=True),
    ],
)


class FakeRenderClient:
    """Stands in for TemplateClient: a fixed catalog and deterministic renders."""

    def __init__(self, templates=None, failing=()):
        self.templates = list(templates or [VOLUME_TEMPLATE, DATABASE_TEMPLATE])
        self.failing = set(failing)
        self.calls = []

    def list_templates(self):
        return list(self.templates)

    def render(self, template_name: str, params: dict) -> str:
        self.calls.append((template_name, dict(params)))
        if template_name in self.failing:
            raise RenderServiceError("API returned 500: template exploded", status_code=500, body="template exploded")
        return render_yaml(template_name, params)


@pytest.fixture()
def render_client() -> FakeRenderClient:
    return FakeRenderClient()


class ScriptedPrompter(Prompter):
    """Answers prompts from a script and records every question asked."""

    def __init__(self, answers=()):
        self.answers = deque(answers)
        self.asked = []

    def _next(self, kind: str, title: str) -> Any:
        self.asked.append((kind, title))
        if not self.answers:
            raise AssertionError(f"unexpected {kind} prompt: {title}")
        return self.answers.popleft()

    def select(self, title, options, description=""):
        answer = self._next("select", title)
        assert answer in [value for _, value in options], f"{answer!r} is not an option of {title!r}"
        return answer

    def multi_select(self, title, options, description=""):
        return list(self._next("multi_select", title))

    def text(self, title, default="", description="", validate=None):
        answer = self._next("text", title)
        if answer is None:
            answer = default
        if validate is not None:
            error = validate(answer)
            assert error is None, f"{answer!r} rejected for {title!r}: {error}"
        return answer

    def masked(self, title, description=""):
        return self._next("masked", title)

    def confirm(self, title, default=True):
        return self._next("confirm", title)
