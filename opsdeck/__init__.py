"""opsdeck: server/service inventory backed by a single versioned JSON document."""

__version__ = "0.1.0"
