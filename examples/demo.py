#!/usr/bin/env python3
"""
revgrad Demo: Gradients of a Small Expression
=============================================

Builds y = ln(x1) + x1*x2 - sin(x2), runs one backward pass and prints
every node of the graph next to the closed-form partial derivatives:

    dy/dx1 = 1/x1 + x2
    dy/dx2 = x1 - cos(x2)

Run: python examples/demo.py --x1 2 --x2 5
"""

import argparse
import logging
import math

from revgrad import backward, topological_order, use_graph


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.split("\n")[1])
    parser.add_argument("--x1", type=float, default=2.0)
    parser.add_argument("--x2", type=float, default=5.0)
    parser.add_argument("--verbose", action="store_true", help="log backward passes")
    return parser.parse_args()


def demo_gradient_computation(x1_value: float, x2_value: float) -> None:
    """Build the expression in its own graph and report the gradients."""
    print("=" * 60)
    print("y = ln(x1) + x1*x2 - sin(x2)")
    print("=" * 60)
    print()

    with use_graph() as graph:
        x1 = graph.leaf(x1_value)
        x2 = graph.leaf(x2_value)
        y = x1.log() + x1 * x2 - x2.sin()
        backward(y)

    print("Computation graph (topological order):")
    for node in topological_order(y):
        parents = ", ".join(p.name for p in node.parents)
        suffix = f"  <- {node.operation_tag}({parents})" if parents else ""
        print(f"  {node!r}{suffix}")
    print()

    print(f"y      = {y.value:.6f}")
    print(f"dy/dx1 = {x1.grad:.6f}  (analytical: {1 / x1_value + x2_value:.6f})")
    print(f"dy/dx2 = {x2.grad:.6f}  (analytical: {x1_value - math.cos(x2_value):.6f})")
    print()


def main() -> None:
    args = parse_args()
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")
    demo_gradient_computation(args.x1, args.x2)


if __name__ == "__main__":
    main()
