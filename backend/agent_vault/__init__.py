"""Adaptive strategy agents over custodial capital"""

__version__ = "0.1.0"
