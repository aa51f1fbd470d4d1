"""bbox_overlay.expressions — threshold / line width expressions

Expressions are plain arithmetic over stream geometry variables, e.g.
"iw/320" or "0.5 + w/100". They are parsed with the Python ast module and
only a whitelisted subset of nodes is evaluated.

Both expressions may reference each other ("w" and "t"), so they are
evaluated over several passes; only a failure on the final pass counts.
"""

from __future__ import annotations

import ast
import math
import operator
from dataclasses import dataclass
from typing import Callable, Dict, Mapping

import numpy as np

from .errors import ConfigError

NUM_EXPR_EVALS = 5
INT_MAX = 2**31 - 1

CONSTANTS: Dict[str, float] = {
    "PI": math.pi,
    "E": math.e,
    "PHI": (1 + math.sqrt(5)) / 2,
}


class ExpressionError(ValueError):
    pass


def _div(a: float, b: float) -> float:
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


def _mod(a: float, b: float) -> float:
    if b == 0 or not math.isfinite(a):
        return math.nan
    return math.fmod(a, b)


def _pow(a: float, b: float) -> float:
    try:
        return math.pow(a, b)
    except (OverflowError, ValueError):
        return math.nan


def _sqrt(a: float) -> float:
    return math.sqrt(a) if a >= 0 else math.nan


def _rounding(fn: Callable[[float], int]) -> Callable[[float], float]:
    def wrapped(a: float) -> float:
        return float(fn(a)) if math.isfinite(a) else a
    return wrapped


_BINARY_OPS: Dict[type, Callable[[float, float], float]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: _div,
    ast.Mod: _mod,
    ast.Pow: _pow,
    ast.BitXor: _pow,  # "a^b" is a power, not a xor
}

_UNARY_OPS: Dict[type, Callable[[float], float]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}

FUNCTIONS: Dict[str, Callable[..., float]] = {
    "min": lambda a, b: float(np.fmin(a, b)),
    "max": lambda a, b: float(np.fmax(a, b)),
    "abs": abs,
    "sqrt": _sqrt,
    "floor": _rounding(math.floor),
    "ceil": _rounding(math.ceil),
    "trunc": _rounding(math.trunc),
    "round": _rounding(round),
    "gt": lambda a, b: float(a > b),
    "gte": lambda a, b: float(a >= b),
    "lt": lambda a, b: float(a < b),
    "lte": lambda a, b: float(a <= b),
    "eq": lambda a, b: float(a == b),
}


def _eval_node(node: ast.AST, variables: Mapping[str, float]) -> float:
    if isinstance(node, ast.Expression):
        return _eval_node(node.body, variables)

    if isinstance(node, ast.Constant):
        if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
            raise ExpressionError(f"unsupported constant {node.value!r}")
        return float(node.value)

    if isinstance(node, ast.Name):
        if node.id in variables:
            return float(variables[node.id])
        if node.id in CONSTANTS:
            return CONSTANTS[node.id]
        raise ExpressionError(f"undefined variable {node.id!r}")

    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
        left = _eval_node(node.left, variables)
        right = _eval_node(node.right, variables)
        return _BINARY_OPS[type(node.op)](left, right)

    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_eval_node(node.operand, variables))

    if isinstance(node, ast.Call) and isinstance(node.func, ast.Name):
        fn = FUNCTIONS.get(node.func.id)
        if fn is None:
            raise ExpressionError(f"unknown function {node.func.id!r}")
        if node.keywords:
            raise ExpressionError(f"{node.func.id}() takes no keyword arguments")
        args = [_eval_node(a, variables) for a in node.args]
        try:
            return float(fn(*args))
        except TypeError:
            raise ExpressionError(f"wrong number of arguments for {node.func.id}()") from None

    raise ExpressionError(f"unsupported syntax: {type(node).__name__}")


def evaluate(expr: str, variables: Mapping[str, float]) -> float:
    """Evaluate an arithmetic expression; raises ExpressionError on bad input."""
    try:
        tree = ast.parse(expr.strip(), mode="eval")
    except SyntaxError as e:
        raise ExpressionError(f"syntax error in {expr!r}: {e.msg}") from None
    try:
        return _eval_node(tree, variables)
    except ExpressionError:
        raise
    except (ArithmeticError, ValueError) as e:
        raise ExpressionError(f"cannot evaluate {expr!r}: {e}") from e


@dataclass(frozen=True)
class FrameGeometry:
    width: int
    height: int
    sar: float = 1.0
    hsub: int = 0  # log2 chroma subsampling, 0 for packed BGR/BGRA/gray
    vsub: int = 0

    @classmethod
    def from_frame(cls, frame: np.ndarray) -> "FrameGeometry":
        height, width = frame.shape[:2]
        return cls(width=int(width), height=int(height))

    def variables(self) -> Dict[str, float]:
        sar = self.sar if self.sar else 1.0
        return {
            "in_h": float(self.height),
            "ih": float(self.height),
            "in_w": float(self.width),
            "iw": float(self.width),
            "sar": float(sar),
            "dar": _div(float(self.width), float(self.height)) * sar,
            "hsub": float(self.hsub),
            "vsub": float(self.vsub),
        }


@dataclass(frozen=True)
class ResolvedParams:
    threshold: float
    line_width: float


def resolve_stream_params(width_expr: str, threshold_expr: str, geometry: FrameGeometry) -> ResolvedParams:
    """
    Evaluate the line width and threshold expressions over the geometry.

    "w" and "t" start as NaN and are updated after every evaluation, so a
    forward reference settles after a few passes. Errors before the last
    pass keep the previous value.
    """
    values = geometry.variables()
    values["w"] = math.nan
    values["t"] = math.nan

    for i in range(NUM_EXPR_EVALS + 1):
        final = i == NUM_EXPR_EVALS
        values["max"] = float(INT_MAX)
        for name, expr in (("w", width_expr), ("t", threshold_expr)):
            try:
                values[name] = evaluate(expr, values)
            except ExpressionError as e:
                if final:
                    raise ConfigError(f"Error when evaluating the expression {expr!r}: {e}") from e

    for name, expr in (("w", width_expr), ("t", threshold_expr)):
        if not math.isfinite(values[name]):
            raise ConfigError(f"Expression {expr!r} did not resolve to a finite value")

    return ResolvedParams(threshold=values["t"], line_width=values["w"])
