"""gridcalc.calc - Formula evaluation engine for gridcalc sheets."""

from gridcalc.calc._evaluator import GridEvaluator, evaluate_formula, evaluate_postfix
from gridcalc.calc._functions import CellError, FunctionRegistry, is_error
from gridcalc.calc._graph import DependencyGraph
from gridcalc.calc._parser import Token, expand_range, parse_references, to_postfix, tokenize
from gridcalc.calc._protocol import CalcEngine, CellChange, GridSnapshot

__all__ = [
    "CalcEngine",
    "CellChange",
    "CellError",
    "DependencyGraph",
    "FunctionRegistry",
    "GridEvaluator",
    "GridSnapshot",
    "Token",
    "evaluate_formula",
    "evaluate_postfix",
    "expand_range",
    "is_error",
    "parse_references",
    "to_postfix",
    "tokenize",
]
