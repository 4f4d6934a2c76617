"""Event store adapters.

The window engine only needs two operations from its backend: write a key with
a TTL, and list keys matching a glob pattern. Everything else (persistence,
replication, expiry) is the store's own business.
"""
