"""
Azure Metrics Exporter Python package.

This package hosts the exporter HTTP server, the Azure Resource Manager
adapters, the resolution-and-translation pipeline, and supporting utilities.
See README.md for usage.
"""

from .__version__ import __version__

__all__ = ["__version__"]
