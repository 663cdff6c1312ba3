"""Command line interface for snail-backup."""

from .dispatcher import main

__all__ = ["main"]
