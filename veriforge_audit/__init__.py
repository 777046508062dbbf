"""
VeriForge Audit Tool
====================

Offline verification of signed provenance envelopes.
"""

__version__ = "0.3.0"
