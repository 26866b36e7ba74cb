"""
Version lookup for the standards SDK.

Installed distributions report their metadata version; a source checkout
reads it from pyproject.toml next to the package.
"""
import importlib.metadata
import pathlib

import tomli

DISTRIBUTION_NAME = "standards-sdk"
FALLBACK_VERSION = "0.1.0"
PYPROJECT_PATH = pathlib.Path(__file__).parent.parent / "pyproject.toml"


def version_from_pyproject(path: pathlib.Path = PYPROJECT_PATH) -> str:
    """
    Read `[project].version` from a pyproject.toml file.

    Returns:
        The declared version, or FALLBACK_VERSION when the file is missing,
        unparseable or declares no version
    """
    try:
        with path.open("rb") as f:
            project = tomli.load(f).get("project", {})
    except (FileNotFoundError, tomli.TOMLDecodeError):
        return FALLBACK_VERSION
    return project.get("version") or FALLBACK_VERSION


def resolve_version() -> str:
    try:
        return importlib.metadata.version(DISTRIBUTION_NAME)
    except importlib.metadata.PackageNotFoundError:
        return version_from_pyproject()


__version__ = resolve_version()
