"""Lifecycle engine: state machines, alerts and dismissals.

Import from the submodules (e.g. ``lifecycle_service.core.practice_manager``);
the persistence adapters depend on ``core.errors`` so this package stays empty.
"""
