"""
Admission package for the Edge Gateway Service.

The ValidationGate is the sole decision point in front of the tunnel
data plane.
"""

from .gate import ValidationGate

__all__ = ["ValidationGate"]
