"""Engine subpackage - core price calculation and markdowns."""
from .calculator import PriceCalculator
from .markdown import MarkdownScheduler
from .models import ConditionGrade, Direction, FormulaConfig, MarkdownResult, PriceResult

__all__ = [
    'PriceCalculator',
    'MarkdownScheduler',
    'ConditionGrade',
    'Direction',
    'FormulaConfig',
    'MarkdownResult',
    'PriceResult',
]
