"""
Shared utilities for the collection pipeline.

Modules
-------
timestamps
    API version date parsing and RFC 3339 query window formatting
naming
    Prometheus metric and label name sanitization, and label sets derived
    from resource identifiers and metadata
"""

__all__ = []
