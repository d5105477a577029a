"""
docanchor CLI

Command-line interface for issuing and verifying anchored documents.

Usage:
    python -m docanchor_cli issue a.pdf b.docx --batch 2024-Q1 --bundle
    python -m docanchor_cli verify issued/a.pdf
    python -m docanchor_cli verify-root 0x...
    python -m docanchor_cli invalidate root 0x...
    python -m docanchor_cli keys generate
"""

__version__ = "0.1.0"
