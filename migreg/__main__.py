"""
Entry point for ``python -m migreg``.
"""

from .cli.app import app

if __name__ == "__main__":
    app()
