"""Rule evaluation engine."""

from .evaluator import evaluate, sort_tracks
from .predicates import compile_criteria, compile_rule, field_value

__all__ = ["compile_criteria", "compile_rule", "evaluate", "field_value", "sort_tracks"]
