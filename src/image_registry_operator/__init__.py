"""Operator that runs the cluster image registry."""

__version__ = "0.1.0"
