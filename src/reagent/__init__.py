"""Reagent: local human code review for coding agents over MCP."""

__version__ = "0.4.0"
