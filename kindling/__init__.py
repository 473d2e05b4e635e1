"""Kindling — import versioned Python components into a host project and keep them in sync."""

__version__ = "0.1.0"
