"""Scan node tooling: scanner keys, initialisation, containers, health reports and client helpers."""

__version__ = "0.1.0"