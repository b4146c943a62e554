"""
py-thin: greedy distance-based thinning of uniquely keyed point sets.
"""

__version__ = "0.1.0"
