"""Routing module."""

from .router import InvokeRouter, PendingInvocation

__all__ = ["InvokeRouter", "PendingInvocation"]
