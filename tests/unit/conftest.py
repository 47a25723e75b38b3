"""
Shared fixtures for the unit tests.
"""

import pytest

from media_downloader.distribution.metadata import RUNTIME_REQUIREMENTS
from media_downloader.distribution.pypi import FlatpakSource, requirement_name


@pytest.fixture
def flatpak_sources() -> dict[str, list[FlatpakSource]]:
    """Pinned sources for every runtime requirement, so nothing queries PyPI."""
    sources = {}
    for index, requirement in enumerate(RUNTIME_REQUIREMENTS, 1):
        name = requirement_name(requirement)
        wheel = f"{name.replace('-', '_')}-1.0-py3-none-any.whl"
        sources[name] = [
            FlatpakSource(
                url=f"https://files.pythonhosted.org/packages/{wheel}",
                sha256=f"{index:064x}",
            )
        ]
    return sources
