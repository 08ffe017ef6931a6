"""
slotengine - availability and bookable slot computation for service providers.
"""

__version__ = "0.1.0"
