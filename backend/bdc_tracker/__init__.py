"""
bdc_tracker — SEC Schedule of Investments extraction pipeline for BDCs.
"""

__version__ = "0.1.0"
