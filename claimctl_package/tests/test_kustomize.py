from __future__ import annotations

from pathlib import Path

import pytest

from claimctl.errors import ConfigError
from claimctl.kustomize import Kustomization

KUSTOMIZATION = """\
# Managed by the platform team
apiVersion: kustomize.config.k8s.io/v1beta1
kind: Kustomization
resources:
  - data
  - "orders"  # production database
  - cache
"""


def test_remove_resource_keeps_comments_and_quotes(tmp_path: Path) -> None:
    path = tmp_path / "kustomization.yaml"
    path.write_text(KUSTOMIZATION, encoding="utf-8")

    kustomization = Kustomization.load(path)
    kustomization.remove_resource("cache")
    kustomization.save(path)

    text = path.read_text(encoding="utf-8")
    assert Kustomization.load(path).resources == ["data", "orders"]
    assert text.startswith("# Managed by the platform team")
    assert '"orders"' in text
    assert "# production database" in text


def test_remove_missing_resource_raises(tmp_path: Path) -> None:
    path = tmp_path / "kustomization.yaml"
    path.write_text(KUSTOMIZATION, encoding="utf-8")
    kustomization = Kustomization.load(path)

    with pytest.raises(ConfigError, match="not found in kustomization"):
        kustomization.remove_resource("missing")
    assert kustomization.resources == ["data", "orders", "cache"]


def test_empty_file_gets_resource_list(tmp_path: Path) -> None:
    path = tmp_path / "kustomization.yaml"
    path.write_text("", encoding="utf-8")

    assert Kustomization.load(path).resources == []


@pytest.mark.parametrize("text", ["- a\n- b\n", "resources: [unclosed\n"])
def test_invalid_kustomization(tmp_path: Path, text: str) -> None:
    path = tmp_path / "kustomization.yaml"
    path.write_text(text, encoding="utf-8")

    with pytest.raises(ConfigError):
        Kustomization.load(path)
