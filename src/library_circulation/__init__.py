"""Library Circulation MCP Server.

Circulation and inventory-consistency engine for a lending library,
exposed to MCP clients as tools (issue, return, renew, reserve) and
report resources.
"""

__version__ = "0.1.0"
