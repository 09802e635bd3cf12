"""
Entry point for ``python -m slotpicker [command] [options]``.
"""

from .cli.app import app

if __name__ == "__main__":
    app()
