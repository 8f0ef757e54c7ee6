"""tickroll — tick-timeline MIDI editor core with a PyQt6 piano roll."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("tickroll")
except PackageNotFoundError:
    # Running from a source checkout without installed metadata
    try:
        import tomllib
        from pathlib import Path

        _toml = Path(__file__).resolve().parent.parent / "pyproject.toml"
        with open(_toml, "rb") as f:
            __version__ = tomllib.load(f)["project"]["version"]
    except (OSError, KeyError, ValueError):
        __version__ = "0.0.0-dev"
