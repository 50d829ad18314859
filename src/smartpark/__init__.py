"""
SmartPark - parking facility core

Slot inventory, vehicle entry/exit lifecycle and time-based billing.
"""

__version__ = "1.0.0"
