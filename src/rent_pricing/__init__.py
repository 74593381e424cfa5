"""
Package marker for source code under `src.rent_pricing`.
It groups the rent pricing rule pipeline, its data providers, and the run orchestrator.
The pricing rules themselves are pure; I/O lives in the provider, store, and orchestrator modules.
"""
