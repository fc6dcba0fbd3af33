"""
Low-level building blocks: API clients, settings, data structures, helpers.

Nothing in here knows about the reconciliation logic: the cogs only move
the data between the operator and the Kubernetes API and keep it typed.
"""
