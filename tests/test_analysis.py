import pytest

from strata.declarations import ClassDecl, FieldDecl, MethodDecl, RoleDecl
from strata.runtime.analysis import (
    check_declarations,
    consumers_of,
    describe_class,
    explain_layout,
    explain_method,
    find_inheritance_cycles,
    hierarchy_graph,
    print_hierarchy,
    subclasses_of,
)
from strata.runtime.registry import ObjectRuntime


def body(ctx):
    return None


@pytest.fixture
def runtime():
    rt = ObjectRuntime()
    rt.register_role(RoleDecl("Drawable", methods=(MethodDecl("draw", (), body),)))
    rt.register_class(
        ClassDecl(
            "Shape",
            abstract=True,
            fields=(FieldDecl("name", param="optional", default="shape"),),
            methods=(MethodDecl("area", (), body),),
        )
    )
    rt.register_class(
        ClassDecl(
            "Square",
            version="1.1",
            parent="Shape",
            roles=("Drawable",),
            fields=(FieldDecl("side", param="required"), FieldDecl("made", scope="shared", default=0)),
            methods=(MethodDecl("area", (), body, overrides=True),),
        )
    )
    rt.register_class(ClassDecl("Cube", parent="Square"))
    return rt


def test_hierarchy_graph_nodes_and_edges(runtime):
    graph = hierarchy_graph(runtime)

    assert graph.nodes["Shape"]["kind"] == "abstract"
    assert graph.nodes["Square"]["version"] == "1.1"
    assert graph.nodes["Drawable"]["kind"] == "role"
    assert graph.edges["Square", "Shape"]["relation"] == "isa"
    assert graph.edges["Square", "Drawable"]["relation"] == "does"


def test_undeclared_targets_become_missing_nodes(runtime):
    runtime.register_class(ClassDecl("Orphan", parent="Ghost"), defer=True)

    graph = hierarchy_graph(runtime)

    assert graph.nodes["Ghost"] == {"kind": "missing", "version": "?"}
    problems = check_declarations(runtime)
    assert problems == ["Orphan: UnknownClass: Unknown class or role 'Ghost'"]


def test_subclasses_and_consumers(runtime):
    assert subclasses_of(runtime, "Shape") == ["Cube", "Square"]
    assert subclasses_of(runtime, "Cube") == []
    assert subclasses_of(runtime, "Nope") == []
    assert consumers_of(runtime, "Drawable") == ["Square"]


def test_cycles_are_reported(runtime):
    runtime.register_class(ClassDecl("A", parent="B"), defer=True)
    runtime.register_class(ClassDecl("B", parent="A"), defer=True)

    assert find_inheritance_cycles(runtime) == [["A", "B"]]
    problems = check_declarations(runtime)
    assert any(p.startswith("A: CyclicInheritance") for p in problems)
    assert "cycle: A -> B" in problems


def test_check_declarations_is_clean_for_valid_registry(runtime):
    assert check_declarations(runtime) == []


def test_explain_method_lists_dispatch_chain(runtime):
    info = explain_method(runtime, "Cube", "area")

    assert info["found"]
    assert info["lines"][0] == "Cube->area dispatches through 2 implementation(s):"
    assert "Square::area()" in info["lines"][1]
    assert "(overrides)" in info["lines"][1]
    assert "Shape::area()" in info["lines"][2]

    draw = explain_method(runtime, "Square", "draw")
    assert "(role)" in draw["lines"][1]
    assert draw["lines"][-1].startswith("  next implementation: none")

    assert explain_method(runtime, "Square", "nothing") == {
        "found": False,
        "method": "nothing",
        "lines": [],
    }


def test_explain_layout_and_describe_class(runtime):
    layout = explain_layout(runtime, "Cube")

    assert layout["class"] == "Cube"
    assert layout["lines"][1] == "    [0] Shape.name scalar param=name (optional-param-with-default)"
    assert "    Square.made" in layout["lines"]

    lines = describe_class(runtime, "Cube")
    assert lines[0] == "class Cube@0"
    assert lines[1] == "  chain: Cube -> Square -> Shape"


def test_print_hierarchy(runtime, capsys):
    print_hierarchy(runtime)

    out = capsys.readouterr().out.splitlines()
    assert out == [
        "Shape@0 (abstract)",
        "  Square@1.1 does Drawable",
        "    Cube@0",
        "roles: Drawable",
    ]
