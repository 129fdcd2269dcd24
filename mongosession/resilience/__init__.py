"""
Resilience patterns for mongosession.

This package provides the per-operation borrowed handle that lets the
session store recover transparently when the MongoDB connection cycles.
"""

from mongosession.resilience.connection import BorrowedCollection, ClusterConnection

__all__ = [
    "BorrowedCollection",
    "ClusterConnection",
]
