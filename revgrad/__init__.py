"""revgrad: reverse-mode automatic differentiation on scalar computation graphs."""

from .engine import (
    Graph,
    Node,
    Op,
    backward,
    backward_step,
    current_graph,
    local_gradients,
    new_leaf,
    topological_order,
    use_graph,
    zero_grad,
)
from .ops import (
    abs,
    acos,
    acosh,
    add,
    asin,
    asinh,
    atan,
    atanh,
    cos,
    cosh,
    divide,
    erf,
    erf_inv,
    erfc,
    erfc_inv,
    exp,
    identity,
    leaky_relu,
    log_base,
    multiply,
    natural_log,
    nth_root,
    power,
    relu,
    sigmoid,
    sin,
    sinh,
    subtract,
    tan,
    tanh,
)

__all__ = [
    "Graph",
    "Node",
    "Op",
    "new_leaf",
    "current_graph",
    "use_graph",
    "topological_order",
    "backward",
    "backward_step",
    "local_gradients",
    "zero_grad",
    "add",
    "subtract",
    "multiply",
    "power",
    "divide",
    "natural_log",
    "log_base",
    "exp",
    "nth_root",
    "abs",
    "sin",
    "cos",
    "tan",
    "asin",
    "acos",
    "atan",
    "sinh",
    "cosh",
    "tanh",
    "asinh",
    "acosh",
    "atanh",
    "erf",
    "erfc",
    "erf_inv",
    "erfc_inv",
    "identity",
    "sigmoid",
    "relu",
    "leaky_relu",
]
