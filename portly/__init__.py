"""Portly: keeps a stable, reserved TCP port for a long-running application."""

__version__ = "0.1.0"
