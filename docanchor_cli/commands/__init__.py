"""
CLI command modules.
"""

from docanchor_cli.commands import invalidate, issue, keys, verify

__all__ = ["issue", "verify", "invalidate", "keys"]
