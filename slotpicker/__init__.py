"""
slotpicker - propose open meeting slots from a calendar's free time.
"""

__version__ = "0.1.0"
