import pytest

from strata import (
    AmbiguousRoleMethod,
    ClassDecl,
    CyclicInheritance,
    FieldDecl,
    InvalidDeclaration,
    MethodDecl,
    MissingOverrideTarget,
    MissingRequiredMethod,
    ParentRef,
    RoleDecl,
    UnknownClass,
    VersionConstraintViolated,
)
from strata.runtime.registry import ObjectRuntime


def returns(value):
    def body(ctx, *args):
        return value

    return body


def method(name, value=None, **kwargs):
    return MethodDecl(name, (), returns(value if value is not None else name), **kwargs)


@pytest.fixture
def runtime():
    return ObjectRuntime()


def test_parentless_class_chain_is_itself(runtime):
    runtime.register_class(ClassDecl("Point"))

    assert runtime.linearize("Point").chain == ("Point",)


def test_chain_follows_parents_to_root(runtime):
    runtime.register_class(ClassDecl("A"))
    runtime.register_class(ClassDecl("B", parent="A"))
    runtime.register_class(ClassDecl("C", parent="B"))

    cls = runtime.linearize("C")

    assert cls.chain == ("C", "B", "A")
    assert cls.isa("A")
    assert not cls.isa("Z")


def test_method_table_orders_own_roles_then_inherited(runtime):
    runtime.register_role(RoleDecl("R", methods=(method("speak", "role"),)))
    runtime.register_class(ClassDecl("A", methods=(method("speak", "A"),)))
    runtime.register_class(
        ClassDecl(
            "B",
            parent="A",
            roles=("R",),
            methods=(method("speak", "B", overrides=True),),
        )
    )

    chain = runtime.resolve("B", "speak")

    assert [impl.owner for impl in chain] == ["B", "R", "A"]
    assert [impl.owner_kind for impl in chain] == ["class", "role", "class"]


def test_role_fields_are_laid_out_after_own_fields(runtime):
    runtime.register_role(RoleDecl("Labelled", fields=(FieldDecl("label"),)))
    runtime.register_class(ClassDecl("A", fields=(FieldDecl("a"),)))
    runtime.register_class(
        ClassDecl("B", parent="A", roles=("Labelled",), fields=(FieldDecl("b"),))
    )

    cls = runtime.linearize("B")

    assert [(s.owner, s.name) for s in cls.layout] == [
        ("A", "a"),
        ("B", "b"),
        ("Labelled", "label"),
    ]
    assert cls.does("Labelled")


def test_does_includes_roles_of_ancestors(runtime):
    runtime.register_role(RoleDecl("R"))
    runtime.register_class(ClassDecl("A", roles=("R",)))
    runtime.register_class(ClassDecl("B", parent="A"))

    assert runtime.linearize("B").does("R")


def test_role_consumed_again_by_subclass_is_composed_once(runtime):
    runtime.register_role(
        RoleDecl(
            "Counted",
            fields=(FieldDecl("n", param="optional", default=0),),
            methods=(MethodDecl("n_plus", ("k",), lambda ctx, k: ctx.field("n") + k),),
        )
    )
    runtime.register_class(ClassDecl("A", roles=("Counted",)))
    runtime.register_class(ClassDecl("B", parent="A", roles=("Counted",)))

    cls = runtime.linearize("B")

    assert [(s.owner, s.name) for s in cls.layout] == [("Counted", "n")]
    assert len(cls.dispatch_list("n_plus")) == 1
    assert cls.does("Counted")
    assert runtime.instantiate("B", "n", 4).invoke("n_plus", 1) == 5


def test_override_without_target_is_rejected(runtime):
    runtime.register_class(ClassDecl("A", methods=(method("other"),)))

    with pytest.raises(MissingOverrideTarget) as excinfo:
        runtime.register_class(
            ClassDecl("B", parent="A", methods=(method("speak", overrides=True),))
        )

    assert excinfo.value.method_name == "speak"
    assert "B" not in runtime.store


def test_override_target_may_be_further_up_the_chain(runtime):
    runtime.register_class(ClassDecl("A", methods=(method("speak", "A"),)))
    runtime.register_class(ClassDecl("B", parent="A"))
    runtime.register_class(
        ClassDecl("C", parent="B", methods=(method("speak", "C", overrides=True),))
    )

    assert [impl.owner for impl in runtime.resolve("C", "speak")] == ["C", "A"]


def test_two_roles_with_same_method_conflict(runtime):
    runtime.register_role(RoleDecl("R1", methods=(method("foo"),)))
    runtime.register_role(RoleDecl("R2", methods=(method("foo"),)))

    with pytest.raises(AmbiguousRoleMethod) as excinfo:
        runtime.register_class(ClassDecl("C", roles=("R1", "R2")))

    assert (excinfo.value.role_a, excinfo.value.role_b) == ("R1", "R2")
    assert excinfo.value.method_name == "foo"


def test_required_methods_may_come_from_class_or_ancestor(runtime):
    runtime.register_role(RoleDecl("Comparable", requires=("compare",)))
    runtime.register_class(ClassDecl("Base", methods=(method("compare"),)))
    runtime.register_class(ClassDecl("Child", parent="Base", roles=("Comparable",)))

    with pytest.raises(MissingRequiredMethod) as excinfo:
        runtime.register_class(ClassDecl("Loose", roles=("Comparable",)))

    assert excinfo.value.role_name == "Comparable"
    assert excinfo.value.class_name == "Loose"


def test_shadowing_without_override_marker_is_journaled(runtime):
    runtime.register_class(ClassDecl("A", methods=(method("speak"),)))
    runtime.register_class(ClassDecl("B", parent="A", methods=(method("speak"),)))

    assert "warn:shadow:B::speak" in runtime.journal.entries


def test_unknown_parent_rejects_only_that_class(runtime):
    runtime.register_class(ClassDecl("A"))

    with pytest.raises(UnknownClass):
        runtime.register_class(ClassDecl("B", parent="Ghost"))

    assert "B" not in runtime.store
    assert runtime.linearize("A").chain == ("A",)
    assert any(entry.startswith("reject:B:") for entry in runtime.journal)


def test_rejected_declaration_can_be_registered_again(runtime):
    with pytest.raises(UnknownClass):
        runtime.register_class(ClassDecl("B", parent="A"))

    runtime.register_class(ClassDecl("A"))
    runtime.register_class(ClassDecl("B", parent="A"))

    assert runtime.linearize("B").chain == ("B", "A")


def test_parent_minimum_version(runtime):
    runtime.register_class(ClassDecl("A", version="1.2"))
    runtime.register_class(ClassDecl("B", parent=ParentRef("A", "1.1")))

    with pytest.raises(VersionConstraintViolated) as excinfo:
        runtime.register_class(ClassDecl("C", parent=ParentRef("A", "2")))

    assert excinfo.value.parent_name == "A"
    assert excinfo.value.actual == "1.2"


def test_role_as_parent_and_class_as_role_are_invalid(runtime):
    runtime.register_role(RoleDecl("R"))
    runtime.register_class(ClassDecl("A"))

    with pytest.raises(InvalidDeclaration):
        runtime.register_class(ClassDecl("B", parent="R"))
    with pytest.raises(InvalidDeclaration):
        runtime.register_class(ClassDecl("C", roles=("A",)))


def test_deferred_registration_allows_forward_references(runtime):
    runtime.register_class(ClassDecl("B", parent="A"), defer=True)
    runtime.register_class(ClassDecl("A"))

    assert not runtime.registry.is_linearized("B")
    assert runtime.linearize("B").chain == ("B", "A")
    assert runtime.registry.is_linearized("B")


def test_cyclic_inheritance_is_detected_on_first_use(runtime):
    runtime.register_class(ClassDecl("A", parent="B"), defer=True)
    runtime.register_class(ClassDecl("B", parent="A"), defer=True)

    with pytest.raises(CyclicInheritance) as excinfo:
        runtime.linearize("A")

    assert excinfo.value.chain == ("A", "B", "A")
    # the failure is deterministic and leaves no half-linearized state
    with pytest.raises(CyclicInheritance):
        runtime.linearize("A")
    assert runtime.registry.classes() == []


def test_self_parent_is_cyclic(runtime):
    with pytest.raises(CyclicInheritance):
        runtime.register_class(ClassDecl("A", parent="A"))

    assert "A" not in runtime.store


def test_linearization_is_memoized(runtime):
    runtime.register_class(ClassDecl("A"))

    assert runtime.linearize("A") is runtime.linearize("A")


def test_abstract_flag_is_never_inferred(runtime):
    runtime.register_class(ClassDecl("Shape", abstract=True))
    runtime.register_class(ClassDecl("Square", parent="Shape"))

    assert runtime.linearize("Shape").abstract
    assert not runtime.linearize("Square").abstract


def test_newer_parent_version_is_picked_up_by_new_children(runtime):
    runtime.register_class(ClassDecl("A", version="1", methods=(method("v", "1"),)))
    runtime.register_class(ClassDecl("B", parent="A"))
    runtime.register_class(ClassDecl("A", version="2", methods=(method("v", "2"),)))
    runtime.register_class(ClassDecl("C", parent="A"))

    assert runtime.linearize("B").parent.version == "1"
    assert runtime.linearize("C").parent.version == "2"
