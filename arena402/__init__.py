"""
Arena402: pay-per-block access to Are.na content over x402
"""

__version__ = "0.1.0"
