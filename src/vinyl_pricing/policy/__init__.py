"""Versioned pricing policies: migration, validation, storage and caching."""
from .cache import ActivePolicy, PolicyCache
from .store import PolicyAudit, PolicyHistoryEntry, PolicyStore, PricingPolicy
from .validation import PolicyDefinition, ValidationResult, validate_definition

__all__ = [
    'ActivePolicy',
    'PolicyCache',
    'PolicyAudit',
    'PolicyHistoryEntry',
    'PolicyStore',
    'PricingPolicy',
    'PolicyDefinition',
    'ValidationResult',
    'validate_definition',
]
