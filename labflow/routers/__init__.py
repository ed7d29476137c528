"""API routers for the lab order results service."""

from labflow.routers import orders, results

__all__ = ["orders", "results"]
