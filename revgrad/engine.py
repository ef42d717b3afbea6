"""
revgrad: Reverse-Mode Automatic Differentiation on Scalars
==========================================================

The computation-graph engine. A Node holds a scalar value, an accumulated
gradient and a record of the operation that produced it. Composing operations
builds a directed acyclic graph as a side effect; calling backward() on the
final node walks that graph once in reverse topological order and applies the
chain rule at every step.

Nodes do not carry closures. Each node stores its operation kind (an Op) plus
an optional scalar parameter, and a single backward_step() looks up the local
partial derivatives for that kind in the PARTIALS table filled in by
revgrad.ops.
"""

from __future__ import annotations
import logging
from contextlib import contextmanager
from enum import Enum
from typing import Callable, Dict, Iterator, List, Optional, Set, Tuple, Union

import numpy as np


logger = logging.getLogger(__name__)

# Type alias for numeric inputs
Numeric = Union[int, float, np.integer, np.floating]

_NUMERIC_TYPES = (int, float, np.integer, np.floating)

# Local partial rule: (*operand_values, out_value, param) -> one partial per parent
PartialRule = Callable[..., Tuple[float, ...]]

PARTIALS: Dict["Op", PartialRule] = {}


class Op(Enum):
    """Operation kinds a node can be produced by."""

    LEAF = ""
    ADD = "add"
    SUB = "sub"
    MUL = "mul"
    POW = "pow"
    LOG = "log"
    LOG_BASE = "log_base"
    EXP = "exp"
    ROOT = "root"
    ABS = "abs"
    SIN = "sin"
    COS = "cos"
    TAN = "tan"
    ASIN = "asin"
    ACOS = "acos"
    ATAN = "atan"
    SINH = "sinh"
    COSH = "cosh"
    TANH = "tanh"
    ASINH = "asinh"
    ACOSH = "acosh"
    ATANH = "atanh"
    ERF = "erf"
    ERFC = "erfc"
    ERFINV = "erfinv"
    ERFCINV = "erfcinv"
    IDENTITY = "identity"
    SIGMOID = "sigmoid"
    RELU = "relu"
    LEAKY_RELU = "leaky_relu"

    def label(self, param: Optional[float] = None) -> str:
        """Default operation tag for a node of this kind."""
        if self is Op.POW:
            return f"**{param:g}"
        if self is Op.LOG_BASE:
            return f"log_{param:g}"
        if self is Op.ROOT:
            return f"root_{param:g}"
        if self is Op.LEAKY_RELU:
            return f"leaky_relu({param:g})"
        return self.value


# =============================================================================
# Graph: identifier allocation
# =============================================================================

class Graph:
    """
    Allocates identifiers for the nodes of one computation.

    Identifiers start at 1 and grow by one per node, so two graphs built the
    same way name their nodes the same way. A Graph holds no references to
    its nodes; the nodes themselves form the graph through their parents.

    Example:
        >>> g = Graph()
        >>> x = g.leaf(3.0)
        >>> x.name
        'v1'
    """

    def __init__(self) -> None:
        self._count = 0

    def __len__(self) -> int:
        return self._count

    def __repr__(self) -> str:
        return f"Graph(nodes={self._count})"

    def next_id(self) -> int:
        self._count += 1
        return self._count

    def leaf(self, value: Numeric) -> Node:
        """Create an independent input node in this graph."""
        return Node(value, graph=self)


_default_graph = Graph()
_active_graph: Optional[Graph] = None


def current_graph() -> Graph:
    """Return the graph new leaves are allocated from."""
    return _active_graph if _active_graph is not None else _default_graph


@contextmanager
def use_graph(graph: Optional[Graph] = None) -> Iterator[Graph]:
    """
    Temporarily make `graph` (or a fresh Graph) the current graph:

        with use_graph() as g:
            x = new_leaf(2.0)     # x.name == 'v1'
            y = x.sin()
            backward(y)
    """
    global _active_graph
    prev = _active_graph
    try:
        _active_graph = graph if graph is not None else Graph()
        yield _active_graph
    finally:
        _active_graph = prev


# =============================================================================
# Node
# =============================================================================

class Node:
    """
    A scalar value that records how it was computed.

    Every Node knows:
    1. Its value (fixed once the node is built)
    2. Its gradient (derivative of the backward root with respect to it)
    3. Its parents (the nodes it was computed from, in operand order)
    4. Its operation kind and parameter (which select its local partials)

    Leaves have no parents and kind Op.LEAF. Gradients stay at 0.0 until a
    backward pass reaches the node.

    Attributes:
        value: The scalar value stored in this node.
        grad: Accumulated gradient (also available as `gradient`).
        op: Operation kind that produced the node.
        param: Scalar parameter of the operation (exponent, base, ...), or None.
        operation_tag: Descriptive label, not used for dispatch.
        graph: The Graph this node's identifier was allocated from.
        id: Identifier within `graph`.

    Example:
        >>> a = new_leaf(2.0)
        >>> b = new_leaf(3.0)
        >>> c = a * b + a
        >>> c.backward()
        >>> float(a.grad)  # dc/da = b + 1
        4.0
    """

    __slots__ = ('_value', '_grad', 'op', 'param', 'operation_tag', '_parents', 'graph', 'id')

    def __init__(
        self,
        value: Numeric,
        _parents: Tuple[Node, ...] = (),
        _op: Op = Op.LEAF,
        _param: Optional[float] = None,
        graph: Optional[Graph] = None,
    ) -> None:
        """
        Initialize a Node.

        Args:
            value: The scalar value to store.
            _parents: Operand nodes (internal use by the operation library).
            _op: Operation kind (internal use).
            _param: Operation parameter (internal use).
            graph: Graph to allocate the identifier from. Defaults to the
                first parent's graph, or the current graph for leaves.

        Raises:
            TypeError: If value is not a numeric type.
            ValueError: If parents and operation kind disagree (a leaf with
                parents, or an operation without any).
        """
        if not isinstance(value, _NUMERIC_TYPES):
            raise TypeError(
                f"Node value must be numeric, got {type(value).__name__}"
            )
        if bool(_parents) == (_op is Op.LEAF):
            raise ValueError(
                f"operation {_op.name} built with {len(_parents)} parents"
            )
        if graph is None:
            graph = _parents[0].graph if _parents else current_graph()

        self._value = np.float64(value)
        self._grad = np.float64(0.0)
        self._parents: Tuple[Node, ...] = tuple(_parents)
        self.op: Op = _op
        self.param: Optional[float] = _param
        self.operation_tag: str = _op.label(_param)
        self.graph: Graph = graph
        self.id: int = graph.next_id()

    def __repr__(self) -> str:
        return (
            f"Node(value={self._value:f}, gradient={self._grad:f}, "
            f"op={self.operation_tag}, name={self.name})"
        )

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def value(self) -> float:
        return self._value

    @value.setter
    def value(self, value: Numeric) -> None:
        # Overriding a leaf's value reuses it as a parameter slot; the graph
        # structure is untouched.
        self._value = np.float64(value)

    @property
    def grad(self) -> float:
        return self._grad

    @grad.setter
    def grad(self, grad: Numeric) -> None:
        self._grad = np.float64(grad)

    gradient = grad

    @property
    def parents(self) -> Tuple[Node, ...]:
        return self._parents

    @property
    def name(self) -> str:
        return f"v{self.id}"

    @property
    def is_leaf(self) -> bool:
        return self.op is Op.LEAF

    def get_value(self) -> float:
        return self.value

    def set_value(self, value: Numeric) -> None:
        self.value = value

    def get_gradient(self) -> float:
        return self.grad

    def set_gradient(self, grad: Numeric) -> None:
        self.grad = grad

    def get_operation_tag(self) -> str:
        return self.operation_tag

    def set_operation_tag(self, tag: Union[str, Op]) -> None:
        self.operation_tag = tag.value if isinstance(tag, Op) else str(tag)

    def get_parents(self) -> Tuple[Node, ...]:
        return self._parents

    def item(self) -> float:
        """Return the scalar value (PyTorch compatibility)."""
        return float(self._value)

    # =========================================================================
    # Arithmetic Operators
    # =========================================================================

    def __add__(self, other: Union[Node, Numeric]) -> Node:
        from .ops import add
        return add(self, other)

    def __radd__(self, other: Numeric) -> Node:
        from .ops import add
        return add(other, self)

    def __sub__(self, other: Union[Node, Numeric]) -> Node:
        from .ops import subtract
        return subtract(self, other)

    def __rsub__(self, other: Numeric) -> Node:
        from .ops import subtract
        return subtract(other, self)

    def __mul__(self, other: Union[Node, Numeric]) -> Node:
        from .ops import multiply
        return multiply(self, other)

    def __rmul__(self, other: Numeric) -> Node:
        from .ops import multiply
        return multiply(other, self)

    def __truediv__(self, other: Union[Node, Numeric]) -> Node:
        """Division: self / other = self * other^(-1)."""
        from .ops import divide
        return divide(self, other)

    def __rtruediv__(self, other: Numeric) -> Node:
        from .ops import divide
        return divide(other, self)

    def __pow__(self, k: Numeric) -> Node:
        """Power with a constant exponent. Node exponents raise TypeError."""
        from .ops import power
        return power(self, k)

    def __neg__(self) -> Node:
        return self * -1

    def __abs__(self) -> Node:
        return self.abs()

    # =========================================================================
    # Unary Operations
    # =========================================================================

    def log(self) -> Node:
        from .ops import natural_log
        return natural_log(self)

    def log_base(self, base: Numeric) -> Node:
        from .ops import log_base
        return log_base(self, base)

    def exp(self) -> Node:
        from .ops import exp
        return exp(self)

    def root(self, n: Numeric) -> Node:
        from .ops import nth_root
        return nth_root(self, n)

    def abs(self) -> Node:
        from .ops import abs
        return abs(self)

    def sin(self) -> Node:
        from .ops import sin
        return sin(self)

    def cos(self) -> Node:
        from .ops import cos
        return cos(self)

    def tan(self) -> Node:
        from .ops import tan
        return tan(self)

    def asin(self) -> Node:
        from .ops import asin
        return asin(self)

    def acos(self) -> Node:
        from .ops import acos
        return acos(self)

    def atan(self) -> Node:
        from .ops import atan
        return atan(self)

    def sinh(self) -> Node:
        from .ops import sinh
        return sinh(self)

    def cosh(self) -> Node:
        from .ops import cosh
        return cosh(self)

    def tanh(self) -> Node:
        from .ops import tanh
        return tanh(self)

    def asinh(self) -> Node:
        from .ops import asinh
        return asinh(self)

    def acosh(self) -> Node:
        from .ops import acosh
        return acosh(self)

    def atanh(self) -> Node:
        from .ops import atanh
        return atanh(self)

    def erf(self) -> Node:
        from .ops import erf
        return erf(self)

    def erfc(self) -> Node:
        from .ops import erfc
        return erfc(self)

    def erfinv(self) -> Node:
        from .ops import erf_inv
        return erf_inv(self)

    def erfcinv(self) -> Node:
        from .ops import erfc_inv
        return erfc_inv(self)

    # =========================================================================
    # Activation Functions
    # =========================================================================

    def identity(self) -> Node:
        from .ops import identity
        return identity(self)

    def sigmoid(self) -> Node:
        from .ops import sigmoid
        return sigmoid(self)

    def relu(self) -> Node:
        from .ops import relu
        return relu(self)

    def leaky_relu(self, alpha: Numeric = 0.01) -> Node:
        from .ops import leaky_relu
        return leaky_relu(self, alpha)

    # =========================================================================
    # Backpropagation
    # =========================================================================

    def backward(self) -> None:
        """Run backward() with this node as the root."""
        backward(self)

    def zero_grad(self) -> None:
        """Reset this node's gradient to zero."""
        self._grad = np.float64(0.0)


def new_leaf(value: Numeric, graph: Optional[Graph] = None) -> Node:
    """
    Create an independent input node.

    Args:
        value: The scalar value of the input.
        graph: Graph to allocate from; defaults to current_graph().

    Returns:
        A Node with no parents and zero gradient.
    """
    return Node(value, graph=graph)


# =============================================================================
# Topological Ordering
# =============================================================================

def topological_order(root: Node) -> List[Node]:
    """
    Order every node reachable from `root` so that parents come first.

    Depth-first post-order over parent edges, keyed by node identity, so a
    node shared by several children is emitted once. The walk keeps its own
    stack, which lets it follow chains longer than the recursion limit.

    Args:
        root: The node to start from.

    Returns:
        List of Nodes in topological order (root is last).

    Raises:
        RuntimeError: If a node turns out to be its own ancestor.

    Example:
        >>> a = new_leaf(1.0)
        >>> b = new_leaf(2.0)
        >>> c = a + b
        >>> d = c * a
        >>> [n.name for n in topological_order(d)] == [a.name, b.name, c.name, d.name]
        True
    """
    order: List[Node] = []
    visited: Set[Node] = {root}
    on_path: Set[Node] = {root}
    stack = [(root, iter(root.parents))]

    while stack:
        node, pending = stack[-1]
        for parent in pending:
            if parent in on_path:
                raise RuntimeError(f"cycle through {parent.name} in computation graph")
            if parent not in visited:
                visited.add(parent)
                on_path.add(parent)
                stack.append((parent, iter(parent.parents)))
                break
        else:
            stack.pop()
            on_path.discard(node)
            order.append(node)

    return order


# =============================================================================
# Backward Pass
# =============================================================================

def local_gradients(node: Node) -> Tuple[float, ...]:
    """
    Partial derivatives of `node` with respect to each of its parents.

    Raises:
        RuntimeError: If `node` is a leaf or its kind has no rule.
    """
    rule = PARTIALS.get(node.op)
    if rule is None or not node.parents:
        raise RuntimeError(f"no local gradient rule for {node!r}")
    with np.errstate(all="ignore"):
        return rule(*(p.value for p in node.parents), node.value, node.param)


def backward_step(node: Node) -> None:
    """Add this node's scaled gradient into each of its parents."""
    partials = local_gradients(node)
    with np.errstate(all="ignore"):
        for parent, partial in zip(node.parents, partials):
            parent.grad = parent.grad + partial * node.grad


def backward(root: Node) -> None:
    """
    Compute d(root)/d(node) for every node reachable from `root`.

    This implements reverse-mode automatic differentiation (backpropagation):
    1. Build a topological ordering of the graph
    2. Set root's gradient to 1.0 (d(root)/d(root) = 1)
    3. Walk the ordering backward, running each non-leaf's backward_step()

    A node's gradient is complete before its own step runs, because every
    node that uses it comes later in the ordering.

    Note: Calling backward() again ACCUMULATES on top of the previous
    gradients. Call zero_grad(root) first if you want fresh gradients.
    """
    order = topological_order(root)
    logger.debug("backward from %s over %d nodes", root.name, len(order))

    root.grad = 1.0

    for node in reversed(order):
        if not node.is_leaf:
            backward_step(node)


def zero_grad(root: Node) -> None:
    """Reset the gradient of every node reachable from `root`."""
    for node in topological_order(root):
        node.zero_grad()
