"""Hierarchy analysis and visualization for the Strata runtime."""
from __future__ import annotations

from pathlib import Path

import networkx as nx

try:
    import matplotlib.pyplot as plt
except ModuleNotFoundError:  # pragma: no cover
    plt = None

try:
    import pydot
except ModuleNotFoundError:  # pragma: no cover
    pydot = None

from ..constants import EDGE_STYLES, KIND_COLORS
from ..declarations import ClassDecl, display_version
from ..errors import MethodNotFound, StrataError


def _node_kind(decl):
    if isinstance(decl, ClassDecl):
        return "abstract" if decl.abstract else "class"
    return "role"


def hierarchy_graph(runtime):
    """Directed graph of the latest declarations: ``isa`` child→parent, ``does`` class→role."""

    graph = nx.DiGraph()
    latest = {}
    for decl in runtime.store.declarations():
        latest[decl.name] = decl

    for name, decl in latest.items():
        graph.add_node(name, kind=_node_kind(decl), version=display_version(decl.version))

    for name, decl in latest.items():
        if not isinstance(decl, ClassDecl):
            continue
        targets = [(role, "does") for role in decl.roles]
        if decl.parent is not None:
            targets.insert(0, (decl.parent.name, "isa"))
        for target, relation in targets:
            if target not in graph:
                graph.add_node(target, kind="missing", version="?")
            graph.add_edge(name, target, relation=relation)
    return graph


def _isa_graph(graph):
    return graph.edge_subgraph(
        (u, v) for u, v, rel in graph.edges(data="relation") if rel == "isa"
    )


def find_inheritance_cycles(runtime):
    """Return every parent-chain cycle among registered (possibly deferred) classes."""

    isa = _isa_graph(hierarchy_graph(runtime))
    return sorted(sorted(cycle) for cycle in nx.simple_cycles(isa))


def subclasses_of(runtime, name):
    graph = hierarchy_graph(runtime)
    if name not in graph:
        return []
    isa = _isa_graph(graph)
    if name not in isa:
        return []
    return sorted(nx.ancestors(isa, name))


def consumers_of(runtime, role_name):
    graph = hierarchy_graph(runtime)
    return sorted(
        u for u, v, rel in graph.edges(data="relation") if rel == "does" and v == role_name
    )


def print_hierarchy(runtime, indent=0):
    graph = hierarchy_graph(runtime)
    isa_children = {}
    roots = []
    for name, data in sorted(graph.nodes(data=True)):
        if data["kind"] == "role":
            continue
        parents = [v for _, v, rel in graph.out_edges(name, data="relation") if rel == "isa"]
        if parents and parents[0] in graph:
            isa_children.setdefault(parents[0], []).append(name)
        else:
            roots.append(name)

    def show(name, depth, seen):
        data = graph.nodes[name]
        pad = "  " * depth
        roles = [v for _, v, rel in graph.out_edges(name, data="relation") if rel == "does"]
        suffix = f" does {', '.join(roles)}" if roles else ""
        marker = {"abstract": " (abstract)", "missing": " (missing)"}.get(data["kind"], "")
        print(f"{pad}{name}@{data['version']}{marker}{suffix}")
        if name in seen:
            return
        for child in isa_children.get(name, []):
            show(child, depth + 1, seen | {name})

    for root in roots:
        show(root, indent, frozenset())

    role_names = sorted(n for n, d in graph.nodes(data=True) if d["kind"] == "role")
    if role_names:
        print("  " * indent + "roles: " + ", ".join(role_names))


def describe_class(runtime, class_name):
    """Return printable lines describing a linearized class."""

    cls = runtime.linearize(class_name)
    lines = [f"class {cls.label}" + (" (abstract)" if cls.abstract else "")]
    lines.append("  chain: " + " -> ".join(cls.chain))
    if cls.roles:
        lines.append("  roles: " + ", ".join(role.name for role in cls.roles))
    lines.extend(explain_layout(runtime, class_name)["lines"])
    lines.append("  methods:")
    for name, chain in sorted(cls.methods.items()):
        owners = " -> ".join(impl.owner for impl in chain)
        lines.append(f"    {name} [{chain[0].scope}] {owners}")
    return lines


def explain_layout(runtime, class_name):
    cls = runtime.linearize(class_name)
    lines = ["  slots:"]
    if not len(cls.layout):
        lines.append("    (none)")
    for slot in cls.layout:
        decl = slot.decl
        param = f" param={decl.key} ({decl.param})" if decl.is_param else ""
        lines.append(f"    [{slot.index}] {slot.owner}.{slot.name} {decl.container}{param}")
    cells = cls.visible_cells()
    if cells:
        lines.append("  shared:")
        for owner, name in cells:
            lines.append(f"    {owner}.{name}")
    return {"class": cls.name, "lines": lines}


def explain_method(runtime, class_name, method_name):
    """Describe the dispatch list used for ``method_name`` on ``class_name``."""

    cls = runtime.linearize(class_name)
    try:
        chain = runtime.resolve(class_name, method_name)
    except MethodNotFound:
        return {"found": False, "method": method_name, "lines": []}

    lines = [f"{cls.name}->{method_name} dispatches through {len(chain)} implementation(s):"]
    for position, impl in enumerate(chain):
        marker = "→" if position == 0 else "↳"
        flags = []
        if impl.decl.overrides:
            flags.append("overrides")
        if impl.owner_kind == "role":
            flags.append("role")
        tag = f" ({', '.join(flags)})" if flags else ""
        lines.append(
            f"  {marker} [{position}] {impl.owner}::{impl.name}({', '.join(impl.decl.params)}) "
            f"[{impl.scope}]{tag}"
        )
    if len(chain) == 1:
        lines.append("  next implementation: none (NoNextMethod if requested)")
    return {"found": True, "method": method_name, "lines": lines}


def check_declarations(runtime):
    """Linearize every registered class, collecting errors instead of stopping."""

    problems = []
    for name in runtime.store.names("class"):
        try:
            runtime.linearize(name)
        except StrataError as exc:
            problems.append(f"{name}: {type(exc).__name__}: {exc}")
    for cycle in find_inheritance_cycles(runtime):
        problems.append("cycle: " + " -> ".join(cycle))
    return problems


def visualize_hierarchy(runtime, output_path=None):  # pragma: no cover
    """Draw the class/role graph with matplotlib; save it when ``output_path`` is given."""

    if plt is None:
        raise RuntimeError("Visualization requires matplotlib to be installed")

    graph = hierarchy_graph(runtime)
    positions = nx.spring_layout(graph, seed=7)
    colors = [KIND_COLORS.get(d["kind"], "#B0BEC5") for _, d in graph.nodes(data=True)]
    labels = {n: f"{n}\n{d['version']}" for n, d in graph.nodes(data=True)}

    plt.figure(figsize=(8, 6))
    nx.draw_networkx_nodes(graph, positions, node_color=colors, node_size=1400)
    nx.draw_networkx_labels(graph, positions, labels=labels, font_size=8)
    for relation, style in EDGE_STYLES.items():
        edges = [(u, v) for u, v, rel in graph.edges(data="relation") if rel == relation]
        nx.draw_networkx_edges(graph, positions, edgelist=edges, style=style, arrows=True)
    plt.title("Strata class hierarchy")
    plt.axis("off")
    if output_path:
        plt.savefig(output_path)
        print(f"  ✓ Hierarchy plot saved → {output_path}")
    else:
        plt.show()
    plt.close()


def export_graphviz(runtime, output_path):  # pragma: no cover
    """Export the class/role graph as a Graphviz SVG."""

    if pydot is None:
        raise RuntimeError("Graphviz export requires pydot to be installed")

    graph = hierarchy_graph(runtime)
    dot = pydot.Dot(
        "strata_hierarchy",
        graph_type="digraph",
        rankdir="BT",
        fontname="Helvetica",
    )
    for name, data in graph.nodes(data=True):
        shape = "ellipse" if data["kind"] == "role" else "box"
        dot.add_node(
            pydot.Node(
                name,
                label=f"{name}\\n{data['version']}",
                shape=shape,
                style="filled",
                fillcolor=KIND_COLORS.get(data["kind"], "#B0BEC5"),
                fontname="Helvetica",
            )
        )
    for u, v, rel in graph.edges(data="relation"):
        dot.add_edge(pydot.Edge(u, v, style=EDGE_STYLES.get(rel, "solid"), label=rel))

    output_path = Path(output_path)
    if output_path.parent and not output_path.parent.exists():
        output_path.parent.mkdir(parents=True, exist_ok=True)
    dot.write_svg(str(output_path))
    print(f"  ✓ Graphviz hierarchy exported → {output_path}")


__all__ = [
    "check_declarations",
    "consumers_of",
    "describe_class",
    "explain_layout",
    "explain_method",
    "export_graphviz",
    "find_inheritance_cycles",
    "hierarchy_graph",
    "print_hierarchy",
    "subclasses_of",
    "visualize_hierarchy",
]
