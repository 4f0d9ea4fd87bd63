"""
storeslots - timezone-correct appointment availability for store schedules.
"""

__version__ = "0.1.0"
