"""
Driver Routes Module.

This module sequences a driver's picked-up deliveries by priority and travel
cost, and assembles navigable routes on top of Google Maps data.
"""

__version__ = '1.0.0'
