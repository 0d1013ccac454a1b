"""
CrossTax - US/Canada cross-border tax determination engine
"""

__version__ = "0.1.0"
