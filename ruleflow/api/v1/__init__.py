"""API version 1: router aggregation and dependencies."""

from ruleflow.api.v1.router import api_router

__all__ = ["api_router"]
