"""Tests for the Sphinx configuration under ``docs/source``."""

from __future__ import annotations

import pathlib
import runpy

import pytest

from gpkg_helper.services import add_data

DOCS_SOURCE = pathlib.Path(__file__).resolve().parent.parent / "docs" / "source"


@pytest.fixture
def sphinx_conf() -> dict[str, object]:
    return runpy.run_path(str(DOCS_SOURCE / "conf.py"))


def test_conf_directories_exist(sphinx_conf: dict[str, object]) -> None:
    """Test that every directory the config points at is present."""
    for key in ("templates_path", "html_static_path", "html_extra_path"):
        for name in sphinx_conf.get(key, []):
            assert (DOCS_SOURCE / name).is_dir(), f"{key}: {name}"


def test_conf_reads_markdown_index(sphinx_conf: dict[str, object]) -> None:
    """Test that the MyST index page is parsed by an enabled extension."""
    assert (DOCS_SOURCE / "index.md").is_file()
    assert sphinx_conf["source_suffix"][".md"] == "markdown"
    assert "myst_parser" in sphinx_conf["extensions"]


def test_conf_matches_docstring_style(sphinx_conf: dict[str, object]) -> None:
    """Test that Google style sections are rendered by napoleon."""
    assert "Args:" in add_data.insert_features.__doc__
    assert "sphinx.ext.napoleon" in sphinx_conf["extensions"]
    assert sphinx_conf["napoleon_google_docstring"] is True
    assert sphinx_conf["napoleon_numpy_docstring"] is False
