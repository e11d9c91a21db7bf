"""
PactTap - record consumer traffic through a proxy and turn it into a Pact contract.
"""

__version__ = '1.0.0'
