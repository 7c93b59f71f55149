"""
Core utilities shared across opsdeck.

This package hosts configuration (env vars, paths, feature flags), logging
setup and small text/id helpers. Stores, repositories and routers depend on
these primitives instead of reading the environment themselves.
"""
