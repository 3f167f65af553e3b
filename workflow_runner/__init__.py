"""
Workflow Runner

An in-process engine that executes a dependency graph of async tasks with
per-task timeout and retry policy, skip propagation on failure, and ordered
lifecycle events for observers.
"""

__version__ = "1.0.0"
