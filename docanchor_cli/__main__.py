"""
Module execution entry point.

Allows running with: python -m docanchor_cli
"""

import sys
from docanchor_cli.main import main

if __name__ == "__main__":
    sys.exit(main())
