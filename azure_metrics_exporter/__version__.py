"""
Version information for the Azure Metrics Exporter.

The package version is read from pyproject.toml via importlib.metadata so
that there is a single source of truth for version management. The value
is also exposed on the ``azure_exporter_build_info`` metric.
"""

try:
    from importlib.metadata import version

    __version__ = version("azure-metrics-exporter")
except Exception:
    # Development checkout (package not installed): read pyproject.toml
    import tomllib
    from pathlib import Path

    try:
        pyproject_path = Path(__file__).parent.parent / "pyproject.toml"
        with open(pyproject_path, "rb") as f:
            pyproject = tomllib.load(f)
            __version__ = pyproject["project"]["version"]
    except Exception:
        __version__ = "0.0.0-dev"
