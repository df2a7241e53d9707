"""
TreeArchiver Command Line Interface.
"""

from treearchiver.cli.main import cli, main

__all__ = ["cli", "main"]
