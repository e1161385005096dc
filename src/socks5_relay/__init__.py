"""SOCKS5 relay: a transparent TCP proxy speaking RFC 1928."""

import pathlib
import tomllib
from importlib import metadata


def get_version() -> str:
    """Return the installed version, falling back to pyproject.toml."""
    try:
        return metadata.version("socks5-relay")
    except metadata.PackageNotFoundError:
        pass

    # Running from a source checkout
    current_dir = pathlib.Path(__file__).parent
    for parent in [current_dir, *current_dir.parents]:
        pyproject_path = parent / "pyproject.toml"
        if pyproject_path.exists():
            with pyproject_path.open("rb") as f:
                return tomllib.load(f)["project"]["version"]

    return "0.0.0"


__version__ = get_version()
