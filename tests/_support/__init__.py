"""
Test support utilities for agentflow tests.

Helpers that are not fixtures but are shared across test modules.
"""
