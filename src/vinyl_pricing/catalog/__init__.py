"""Read-only release catalog."""
from .releases import MarketSnapshot, Release, ReleaseCatalog

__all__ = ['MarketSnapshot', 'Release', 'ReleaseCatalog']
