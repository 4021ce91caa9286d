"""Graphviz rendering of a node tree."""

import graphviz

from accounting import Node
from balance import Balance
from database import Database


def _format_rate(rate: float) -> str:
    return f"{rate:+.2f}".rstrip("0").rstrip(".")


def node_label(node: Node, database: Database) -> str:
    """Build a multi-line label: name, copies, net power, then net item rates.

    Precondition:
        node is any tree node

    Postcondition:
        first line is the group name (or "unnamed") or the building name (or
        "unassigned"), item ids are shown by item name where the database knows them

    Args:
        node: node to describe
        database: database used for display names

    Returns:
        label string with lines separated by "\\n"
    """
    if node.group is not None:
        title = node.group.name or "unnamed"
        copies = node.group.copies
    else:
        building = node.building
        building_type = database.get(building.building) if building.building is not None else None
        if building_type is not None:
            title = building_type.name
        else:
            title = str(building.building) if building.building is not None else "unassigned"
        copies = building.copies
    lines = [title]
    if copies != 1:
        lines.append(f"x{copies:g}")
    lines.extend(balance_lines(node.balance, database))
    if node.warning is not None:
        lines.append(f"warning: {node.warning}")
    return "\n".join(lines)


def balance_lines(balance: Balance, database: Database) -> list[str]:
    """Net power line followed by one line per non-zero item rate, sorted by item id."""
    lines = [f"power: {_format_rate(balance.power)} MW"]
    for item_id, rate in sorted(balance.balances.items()):
        if rate == 0:
            continue
        item = database.get(item_id)
        name = item.name if item is not None else str(item_id)
        lines.append(f"{name}: {_format_rate(rate)}/min")
    return lines


def tree_to_digraph(root: Node, database: Database) -> graphviz.Digraph:
    """Render a tree as a top-down graphviz digraph.

    Precondition:
        root is a node tree built against database

    Postcondition:
        returns a Digraph with one graph node per tree node, named by its path
        ("n" for the root, "n_0_2" for root.children[0].children[2]) and an edge
        from every group to each of its children
        groups are drawn as folders, buildings as boxes
        nodes with a warning are filled orange; groups containing warnings are
        outlined orange

    Args:
        root: root of the tree
        database: database used for display names

    Returns:
        graphviz.Digraph
    """
    dot = graphviz.Digraph(comment="Factory Accounting")
    dot.attr(rankdir="TB")

    stack = [("n", root)]
    while stack:
        node_id, node = stack.pop()
        attrs = {"shape": "folder" if node.group is not None else "box"}
        if node.warning is not None:
            attrs.update(style="filled", fillcolor="orange")
        elif node.children_had_warnings:
            attrs.update(color="orange")
        dot.node(node_id, node_label(node, database), **attrs)
        for idx, child in enumerate(node.children):
            child_id = f"{node_id}_{idx}"
            dot.edge(node_id, child_id)
            stack.append((child_id, child))
    return dot
