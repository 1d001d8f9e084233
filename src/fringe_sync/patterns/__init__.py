from .generator import FringePatternGenerator, generate_fringes
from .table import PatternTableBuilder

__all__ = [
    "FringePatternGenerator",
    "generate_fringes",
    "PatternTableBuilder",
]
