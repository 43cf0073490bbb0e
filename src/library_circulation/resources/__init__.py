"""Library Circulation MCP Resources Package

Resources are the read-only side of the server: reporting queries over the
engine's committed state. Changes go through the circulation tools.
"""

from .reports import report_resources

all_resources = report_resources

__all__ = [
    "all_resources",
    "report_resources",
]
