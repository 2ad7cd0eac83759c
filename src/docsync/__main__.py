"""
docsync package entry point.

Allows running docsync as a module:
    python -m docsync
"""

from docsync.cli import main

if __name__ == "__main__":
    main()
