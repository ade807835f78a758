"""Core primitives: errors, logging, settings, connections and repositories.

Synchronous and domain-agnostic; every higher package builds on these.
"""
