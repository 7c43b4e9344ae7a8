"""Setup file for proxy_filters."""
from setuptools import setup, find_packages

import re
from pathlib import Path

def get_version() -> str:
    """Get version from version.py."""
    version_file = Path(__file__).parent / "proxy_filters" / "version.py"
    if not version_file.exists():
        return "0.1.0"

    content = version_file.read_text()
    version_match = re.search(r"VERSION_MAJOR = (\d+)\s+VERSION_MINOR = (\d+)\s+VERSION_PATCH = (\d+)", content)
    if version_match:
        return ".".join(version_match.groups())
    return "0.1.0"

version = get_version()

setup(
    name="proxy_filters",
    version=version,  # Version is read from proxy_filters/version.py
    packages=find_packages(include=[
        "proxy_filters",
        "proxy_filters.*",
    ]),
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2.0.0,<3.0.0",
        "pydantic-settings>=2.0.0,<3.0.0",
        "pyyaml>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
)
