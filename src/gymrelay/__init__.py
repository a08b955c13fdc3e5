"""Gym relay: multi-tenant hub between hardware bridges and admin dashboards."""

__version__ = "1.0.0"
