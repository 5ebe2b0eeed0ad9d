"""
Buyer-side tooling: payment signing and the command line client
"""
