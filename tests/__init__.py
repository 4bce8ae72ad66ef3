"""
eavdb Test Suite.

This package contains:
- unit/: Unit tests for types, registry, stores and configuration
- integration/: Domain repositories and the admin CLI against SQLite files
"""
