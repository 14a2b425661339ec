"""
Edgesteer Command Line Interface.

Tools for inspecting an edge pool: discover and probe edges, and show how a
URI would be rewritten for the selected edge.
"""

from .main import cli

__all__ = ["cli"]
