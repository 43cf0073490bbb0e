"""
MCP tools for the Library Circulation server.

Tools are the operations with side effects: every circulation tool runs
one engine transaction. Each tool is a dictionary with name, description,
input schema and handler, registered by the server at startup.
"""

from .circulation import (
    cancel_reservation,
    issue_book,
    pay_fine,
    renew_book,
    reserve_book,
    return_book,
)

all_tools = [
    issue_book,
    return_book,
    renew_book,
    reserve_book,
    cancel_reservation,
    pay_fine,
]

__all__ = [
    "all_tools",
    "cancel_reservation",
    "issue_book",
    "pay_fine",
    "renew_book",
    "reserve_book",
    "return_book",
]
