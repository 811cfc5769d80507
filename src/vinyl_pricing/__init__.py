"""
Vinyl Pricing Package

Pricing policy engine for a used vinyl resale marketplace.
Turns a market price signal into buy offers and listing prices using
versioned, auditable pricing policies.
"""

__version__ = "1.0.0"
