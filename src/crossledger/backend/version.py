"""Resolve the CrossLedger release reported by ``/health`` and ``/api/v1/config``.

Deployments may pin the reported release through ``CROSSLEDGER_VERSION``;
otherwise the installed distribution wins over the source checkout.
"""

from __future__ import annotations

import os
import tomllib
from functools import lru_cache
from importlib import metadata
from pathlib import Path
from typing import Final

DISTRIBUTION: Final = "crossledger"
VERSION_ENV_VAR: Final = "CROSSLEDGER_VERSION"
PYPROJECT_PATH: Final = Path(__file__).resolve().parents[3] / "pyproject.toml"


@lru_cache(maxsize=1)
def get_project_version() -> str:
    override = os.getenv(VERSION_ENV_VAR, "").strip()
    if override:
        return override
    try:
        return metadata.version(DISTRIBUTION)
    except metadata.PackageNotFoundError:
        return checkout_version(PYPROJECT_PATH)


def checkout_version(pyproject: Path) -> str:
    """Return ``[project].version`` from ``pyproject``."""

    try:
        with pyproject.open("rb") as handle:
            document = tomllib.load(handle)
    except FileNotFoundError as error:
        raise RuntimeError(f"No project metadata at {pyproject}") from error

    version = document.get("project", {}).get("version")
    if not isinstance(version, str) or not version.strip():
        raise RuntimeError(f"{pyproject} does not declare a project version")
    return version.strip()


__all__ = ["DISTRIBUTION", "VERSION_ENV_VAR", "checkout_version", "get_project_version"]
