"""
hangoutplanner - mutual availability and smart meeting-time suggestions.
"""

__version__ = "0.1.0"
