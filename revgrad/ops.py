"""
Operation Library
=================

Every function here takes existing nodes (and, for a few, a constant scalar
parameter) and returns a new Node whose value is computed on the spot. The
matching local partials live in the PARTIALS table at the bottom of this
module and are applied later by engine.backward_step().

Domain violations are not checked. Values and partials are computed with
NumPy under np.errstate(all="ignore"), so log(-1), 0 ** -1, asin(2) and
friends come out as NaN or +/-inf and keep propagating.
"""

from __future__ import annotations
from typing import Callable, Tuple, Union

import numpy as np
from scipy import special

from .engine import PARTIALS, Node, Numeric, Op


TWO_OVER_SQRT_PI = 2.0 / np.sqrt(np.pi)

Operand = Union[Node, Numeric]


# =============================================================================
# Helpers
# =============================================================================

def _as_node(x: Operand, like: Node) -> Node:
    """Ensure x is a Node; otherwise wrap it as a constant leaf in like's graph."""
    return x if isinstance(x, Node) else Node(x, graph=like.graph)


def _check_param(name: str, p: Numeric) -> np.float64:
    if isinstance(p, Node):
        raise TypeError(
            f"{name} must be a constant, not a Node. "
            "Use exp/log composition for node-valued parameters."
        )
    if not isinstance(p, (int, float, np.integer, np.floating)):
        raise TypeError(f"{name} must be numeric, got {type(p).__name__}")
    return np.float64(p)


def _record(op: Op, fn: Callable[..., float], parents: Tuple[Node, ...], param=None) -> Node:
    with np.errstate(all="ignore"):
        value = fn(*(p.value for p in parents))
    return Node(value, parents, op, param)


def _unary(x: Node, op: Op, fn: Callable[[float], float], param=None) -> Node:
    if not isinstance(x, Node):
        raise TypeError(f"{op.value} expects a Node, got {type(x).__name__}")
    return _record(op, fn, (x,), param)


def _binary(x: Operand, y: Operand, op: Op, fn: Callable[[float, float], float]) -> Node:
    if isinstance(x, Node):
        y = _as_node(y, x)
    elif isinstance(y, Node):
        x = _as_node(x, y)
    else:
        raise TypeError(f"{op.value} needs at least one Node operand")
    return _record(op, fn, (x, y))


# =============================================================================
# Arithmetic
# =============================================================================

def add(x: Operand, y: Operand) -> Node:
    """
    Addition: out = x + y

    Local derivatives:
        d(out)/dx = 1
        d(out)/dy = 1
    """
    return _binary(x, y, Op.ADD, np.add)


def subtract(x: Operand, y: Operand) -> Node:
    """Subtraction: out = x - y."""
    return _binary(x, y, Op.SUB, np.subtract)


def multiply(x: Operand, y: Operand) -> Node:
    """
    Multiplication: out = x * y

    Local derivatives:
        d(out)/dx = y
        d(out)/dy = x
    """
    return _binary(x, y, Op.MUL, np.multiply)


def power(x: Node, k: Numeric) -> Node:
    """
    Power: out = x^k (where k is a constant, not a Node)

    Local derivative:
        d(out)/dx = k * x^(k-1)

    Raises:
        TypeError: If k is a Node (not supported).
    """
    k = _check_param("exponent", k)
    return _unary(x, Op.POW, lambda v: np.power(v, k), k)


def divide(x: Operand, y: Operand) -> Node:
    """
    Division, composed as x * y^(-1).

    There is no division primitive; the gradient comes from the multiply and
    power nodes. A numeric divisor is promoted to a constant leaf first.
    """
    if isinstance(x, Node):
        y = _as_node(y, x)
    elif not isinstance(y, Node):
        raise TypeError("divide needs at least one Node operand")
    return multiply(x, power(y, -1))


# =============================================================================
# Logarithms, Exponentials and Roots
# =============================================================================

def natural_log(x: Node) -> Node:
    """Natural logarithm: out = ln(x). d(out)/dx = 1/x."""
    return _unary(x, Op.LOG, np.log)


def log_base(x: Node, base: Numeric) -> Node:
    """Logarithm in a constant base: out = ln(x) / ln(base)."""
    base = _check_param("base", base)
    return _unary(x, Op.LOG_BASE, lambda v: np.log(v) / np.log(base), base)


def exp(x: Node) -> Node:
    """Exponential: out = e^x. d(out)/dx = e^x."""
    return _unary(x, Op.EXP, np.exp)


def nth_root(x: Node, n: Numeric) -> Node:
    """n-th root: out = x^(1/n). Negative x gives NaN unless 1/n is an integer."""
    n = _check_param("root degree", n)
    return _unary(x, Op.ROOT, lambda v: np.power(v, 1.0 / n), n)


def abs(x: Node) -> Node:
    """
    Absolute value: out = |x|

    The local derivative is |x|/x, which is NaN at exactly x = 0.
    """
    return _unary(x, Op.ABS, np.abs)


# =============================================================================
# Trigonometric and Hyperbolic
# =============================================================================

def sin(x: Node) -> Node:
    return _unary(x, Op.SIN, np.sin)


def cos(x: Node) -> Node:
    return _unary(x, Op.COS, np.cos)


def tan(x: Node) -> Node:
    return _unary(x, Op.TAN, np.tan)


def asin(x: Node) -> Node:
    """Inverse sine; NaN outside [-1, 1]."""
    return _unary(x, Op.ASIN, np.arcsin)


def acos(x: Node) -> Node:
    """Inverse cosine; NaN outside [-1, 1]."""
    return _unary(x, Op.ACOS, np.arccos)


def atan(x: Node) -> Node:
    return _unary(x, Op.ATAN, np.arctan)


def sinh(x: Node) -> Node:
    return _unary(x, Op.SINH, np.sinh)


def cosh(x: Node) -> Node:
    return _unary(x, Op.COSH, np.cosh)


def tanh(x: Node) -> Node:
    """
    Hyperbolic tangent: out = tanh(x)

    Local derivative:
        d(tanh(x))/dx = 1 - tanh(x)^2
    """
    return _unary(x, Op.TANH, np.tanh)


def asinh(x: Node) -> Node:
    return _unary(x, Op.ASINH, np.arcsinh)


def acosh(x: Node) -> Node:
    """Inverse hyperbolic cosine; NaN below 1."""
    return _unary(x, Op.ACOSH, np.arccosh)


def atanh(x: Node) -> Node:
    """Inverse hyperbolic tangent; +/-inf at +/-1, NaN beyond."""
    return _unary(x, Op.ATANH, np.arctanh)


# =============================================================================
# Error Functions
# =============================================================================

def erf(x: Node) -> Node:
    """
    Error function: erf(x) = (2/sqrt(pi)) * integral_0^x e^(-t^2) dt

    Derivative: d/dx erf(x) = (2/sqrt(pi)) * e^(-x^2)
    """
    return _unary(x, Op.ERF, special.erf)


def erfc(x: Node) -> Node:
    """Complementary error function: erfc(x) = 1 - erf(x)."""
    return _unary(x, Op.ERFC, special.erfc)


def erf_inv(x: Node) -> Node:
    """
    Inverse error function.

    The local partial is (2/sqrt(pi)) * e^(erfinv(x)^2), expressed through
    the node's own output.
    """
    return _unary(x, Op.ERFINV, special.erfinv)


def erfc_inv(x: Node) -> Node:
    """Inverse complementary error function; partial -(2/sqrt(pi)) * e^(erfcinv(x)^2)."""
    return _unary(x, Op.ERFCINV, special.erfcinv)


# =============================================================================
# Activation Functions
# =============================================================================

def identity(x: Node) -> Node:
    """Identity activation: passes value and gradient through unchanged."""
    return _unary(x, Op.IDENTITY, lambda v: v)


def sigmoid(x: Node) -> Node:
    """
    Sigmoid activation: out = 1 / (1 + e^(-x))

    Local derivative, written in terms of the output:
        d(sigmoid(x))/dx = out * (1 - out)
    """
    return _unary(x, Op.SIGMOID, lambda v: 1.0 / (1.0 + np.exp(-v)))


def relu(x: Node) -> Node:
    """
    Rectified Linear Unit: out = max(0, x)

    Local derivative:
        d(relu(x))/dx = 1 if x > 0 else 0   (0 at exactly x = 0)
    """
    return _unary(x, Op.RELU, lambda v: np.maximum(0.0, v))


def leaky_relu(x: Node, alpha: Numeric = 0.01) -> Node:
    """
    Leaky ReLU: out = max(0, x) + alpha * min(0, x)

    Local derivative:
        1 if x > 0 else alpha
    """
    alpha = _check_param("alpha", alpha)
    return _unary(
        x, Op.LEAKY_RELU,
        lambda v: np.maximum(0.0, v) + alpha * np.minimum(0.0, v),
        alpha,
    )


# =============================================================================
# Local Partials
# =============================================================================
# Each rule gets the operand values, the node's own value and its parameter,
# and returns d(out)/d(parent) for every parent, in parent order.

PARTIALS.update({
    Op.ADD: lambda x, y, out, p: (1.0, 1.0),
    Op.SUB: lambda x, y, out, p: (1.0, -1.0),
    Op.MUL: lambda x, y, out, p: (y, x),
    Op.POW: lambda x, out, k: (k * np.power(x, k - 1.0),),
    Op.LOG: lambda x, out, p: (1.0 / x,),
    Op.LOG_BASE: lambda x, out, b: (1.0 / (x * np.log(b)),),
    Op.EXP: lambda x, out, p: (np.exp(x),),
    Op.ROOT: lambda x, out, n: ((1.0 / n) * np.power(x, 1.0 / n - 1.0),),
    Op.ABS: lambda x, out, p: (np.abs(x) / x,),
    Op.SIN: lambda x, out, p: (np.cos(x),),
    Op.COS: lambda x, out, p: (-np.sin(x),),
    Op.TAN: lambda x, out, p: (1.0 / np.cos(x) ** 2,),
    Op.ASIN: lambda x, out, p: (1.0 / np.sqrt(1.0 - x ** 2),),
    Op.ACOS: lambda x, out, p: (-1.0 / np.sqrt(1.0 - x ** 2),),
    Op.ATAN: lambda x, out, p: (1.0 / (1.0 + x ** 2),),
    Op.SINH: lambda x, out, p: (np.cosh(x),),
    Op.COSH: lambda x, out, p: (np.sinh(x),),
    Op.TANH: lambda x, out, p: (1.0 - np.tanh(x) ** 2,),
    Op.ASINH: lambda x, out, p: (1.0 / np.sqrt(x ** 2 + 1.0),),
    Op.ACOSH: lambda x, out, p: (1.0 / np.sqrt(x ** 2 - 1.0),),
    Op.ATANH: lambda x, out, p: (1.0 / (1.0 - x ** 2),),
    Op.ERF: lambda x, out, p: (TWO_OVER_SQRT_PI * np.exp(-x ** 2),),
    Op.ERFC: lambda x, out, p: (-TWO_OVER_SQRT_PI * np.exp(-x ** 2),),
    Op.ERFINV: lambda x, out, p: (TWO_OVER_SQRT_PI * np.exp(out ** 2),),
    Op.ERFCINV: lambda x, out, p: (-TWO_OVER_SQRT_PI * np.exp(out ** 2),),
    Op.IDENTITY: lambda x, out, p: (1.0,),
    Op.SIGMOID: lambda x, out, p: (out * (1.0 - out),),
    Op.RELU: lambda x, out, p: (1.0 if x > 0 else 0.0,),
    Op.LEAKY_RELU: lambda x, out, a: (1.0 if x > 0 else a,),
})
