"""
Dispatch Module
===============

Single-flight guard for classification dispatch.
"""

from stillgate.dispatch.gate import DispatchGate

__all__ = [
    "DispatchGate",
]
