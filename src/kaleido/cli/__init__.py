"""
Kaleido Command-Line Interface
==============================

- **kcc**: Kaleidoscope compiler

Implemented as a Click application with help and error reporting.
"""

__all__ = ["kcc"]
