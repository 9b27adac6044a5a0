"""
CLI tools for the network mode controller.

- netmodectl: netmode-toggle entry point
"""

from .netmodectl import main

__all__ = ['main']
