"""Reconciliation controller."""

from .base import BaseController
from .controller import Controller

__all__ = ["BaseController", "Controller"]
