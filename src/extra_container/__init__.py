"""Declarative NixOS containers on a running host, without a system rebuild."""

__version__ = "0.1.0"
