#!/usr/bin/env python3
"""Command-line interface for factory accounting."""

import argparse
import logging
import sys

from accounting import Node
from database import Database, load_database
from graph_manipulation import get_node
from parsing_utils import parse_item_rate, parse_path, resolve_item_or_power
from serialization import World, load_world, save_world
from tree_graph import balance_lines, node_label, tree_to_digraph
from world_controller import WorldController


def format_tree(root: Node, database: Database) -> str:
    """Render a tree as indented text, one node per block.

    Precondition:
        root is a node tree built against database

    Postcondition:
        each node is printed as its path followed by its label, indented two spaces
        per level; the root is shown with path "/"

    Args:
        root: root of the tree
        database: database used for display names

    Returns:
        multi-line string
    """
    lines = []
    stack = [((), root)]
    while stack:
        path, node = stack.pop()
        indent = "  " * len(path)
        label_lines = node_label(node, database).split("\n")
        path_text = "/" + "/".join(str(idx) for idx in path)
        lines.append(f"{indent}{path_text} {label_lines[0]}")
        lines.extend(f"{indent}    {line}" for line in label_lines[1:])
        for idx in reversed(range(len(node.children))):
            stack.append((path + (idx,), node.children[idx]))
    return "\n".join(lines)


def _apply_backdrive(controller: WorldController, path_text: str, target_text: str) -> None:
    """Backdrive one building from command-line arguments.

    Raises:
        ValueError: if the arguments are invalid or backdriving fails
    """
    path = parse_path(path_text)
    name, rate = parse_item_rate(target_text)
    target = resolve_item_or_power(name, controller.get_database())
    if get_node(controller.get_root(), path) is None:
        raise ValueError(f"No node at path '{path_text}'")
    if not controller.backdrive(path, target, rate):
        raise ValueError(f"Unable to backdrive node at '{path_text}' to {target_text}")
    print(f"Backdrove {path_text} to {name}:{rate}", file=sys.stderr)


def _output_graphviz(source: str, output_file: str) -> None:
    """Write graphviz source to a file, or to stdout for "-"."""
    if output_file == "-":
        print(source)
    else:
        with open(output_file, "w", encoding="utf-8") as f:
            f.write(source)
        print(f"\nGraphviz written to {output_file}", file=sys.stderr)


def _create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser.

    Returns:
        configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        description="Compute item and power balances of a factory tree",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --world factory.json
  %(prog)s --world factory.json --database my-db.json
  %(prog)s --world factory.json --backdrive 0/1 "Iron Plate:30" --save factory.json
  %(prog)s --world factory.json --backdrive 2 Power:-150
  %(prog)s --world factory.json --dot factory.dot
        """,
    )

    parser.add_argument(
        "--world",
        type=str,
        default=None,
        help="World JSON file to load (default: an empty world)",
    )
    parser.add_argument(
        "--database",
        type=str,
        default=None,
        help="Custom database JSON file to use instead of the world's database",
    )
    parser.add_argument(
        "--backdrive",
        nargs=2,
        action="append",
        default=[],
        metavar=("PATH", "ITEM:RATE"),
        help="Backdrive the building at PATH (e.g. '0/2') to ITEM:RATE; may be repeated",
    )
    parser.add_argument(
        "--dot",
        type=str,
        default=None,
        help="Write graphviz DOT source of the tree to this file ('-' for stdout)",
    )
    parser.add_argument(
        "--save",
        type=str,
        default=None,
        help="Save the resulting world to this JSON file",
    )
    return parser


def main():
    """Main CLI function.

    Precondition:
        command-line arguments are available via sys.argv

    Postcondition:
        the world is loaded, rebuilt, optionally backdriven, printed and saved
        returns 0 on success, 1 on error

    Returns:
        exit code (0=success, 1=error)
    """
    parser = _create_argument_parser()
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(message)s")

    try:
        world = load_world(args.world) if args.world else World()
        if args.database:
            world = World(world.root, load_database(args.database), world.node_metadata)
        controller = WorldController(world)

        for path_text, target_text in args.backdrive:
            _apply_backdrive(controller, path_text, target_text)

        database = controller.get_database()
        root = controller.get_root()
        print(format_tree(root, database))
        print("\nTotal:")
        for line in balance_lines(root.balance, database):
            print(f"  {line}")

        if args.dot:
            _output_graphviz(tree_to_digraph(root, database).source, args.dot)
        if args.save:
            save_world(controller.to_world(), args.save)
        return 0

    except (ValueError, KeyError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
