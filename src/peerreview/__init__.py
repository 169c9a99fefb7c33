"""peerreview - Peer-review coordination core.

This package provides the data-access and allocation-consistency layer of a
peer-review module: a lazily-populated, filterable entity cache backed by a
relational store, and the reviewer allocation entity that enforces the
per-phase reviewer quorum.
"""

__version__ = "0.1.0"
