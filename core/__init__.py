"""
Core Module Package.

This package contains the core infrastructure components
that the step engine depends on.

Components:
- clock: Unified time abstraction
- exceptions: Custom exception hierarchy
- constants: Engine-wide timing constants
"""
