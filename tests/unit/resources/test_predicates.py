import pytest

from clusterview.modules.resources.domain.predicate import (
    AndPredicate,
    CategoryIsEmptyPredicate,
    EqualsPredicate,
    GreaterEqualsPredicate,
    GreaterPredicate,
    LessPredicate,
    NotEqualsPredicate,
    NotPredicate,
    OrPredicate,
    PredicateBuilder,
)
from clusterview.modules.resources.domain.resource import Resource, ResourceType
from clusterview.shared.core.exceptions import PredicateEvaluationError


@pytest.fixture
def host():
    return Resource(
        ResourceType.HOST,
        {
            "Hosts/cluster_name": "c1",
            "Hosts/host_name": "h1",
            "Hosts/cpu_count": 4,
            "Hosts/os_type": "centos6",
            "Hosts/rack_info": None,
            "metrics/cpu/user": "12.5",
        },
    )


def test_equals_and_not_equals(host):
    assert EqualsPredicate("Hosts/host_name", "h1").evaluate(host)
    assert not EqualsPredicate("Hosts/host_name", "h2").evaluate(host)
    assert NotEqualsPredicate("Hosts/host_name", "h2").evaluate(host)
    # numeric strings compare numerically
    assert EqualsPredicate("Hosts/cpu_count", "4").evaluate(host)
    assert EqualsPredicate("metrics/cpu/user", 12.5).evaluate(host)


def test_absent_and_null_values(host):
    assert not EqualsPredicate("Hosts/ip", "10.0.0.1").evaluate(host)
    assert NotEqualsPredicate("Hosts/ip", "10.0.0.1").evaluate(host)
    assert EqualsPredicate("Hosts/rack_info", None).evaluate(host)
    assert not EqualsPredicate("Hosts/ip", None).evaluate(host)
    assert not GreaterPredicate("Hosts/rack_info", 1).evaluate(host)
    assert not LessPredicate("metrics/memory/free", 100).evaluate(host)


def test_ordering_comparisons(host):
    assert GreaterPredicate("Hosts/cpu_count", 2).evaluate(host)
    assert GreaterEqualsPredicate("Hosts/cpu_count", 4).evaluate(host)
    assert LessPredicate("metrics/cpu/user", 20).evaluate(host)
    assert LessPredicate("Hosts/os_type", "debian").evaluate(host)
    assert not LessPredicate("Hosts/os_type", "alpha").evaluate(host)
    assert GreaterPredicate("Hosts/os_type", "a").evaluate(host)


def test_ordering_incompatible_types_raises(host):
    with pytest.raises(PredicateEvaluationError) as exc:
        GreaterPredicate("Hosts/os_type", 5).evaluate(host)

    assert exc.value.code == "predicate_evaluation_error"
    assert exc.value.details["property_id"] == "Hosts/os_type"


def test_boolean_composition(host):
    in_c1 = EqualsPredicate("Hosts/cluster_name", "c1")
    is_h2 = EqualsPredicate("Hosts/host_name", "h2")

    assert AndPredicate((in_c1, NotPredicate(is_h2))).evaluate(host)
    assert OrPredicate((is_h2, in_c1)).evaluate(host)
    assert not (in_c1 & is_h2).evaluate(host)
    assert (~is_h2).evaluate(host)


def test_property_ids_are_flattened():
    predicate = (
        EqualsPredicate("a/x", 1)
        & (EqualsPredicate("b/y", 2) | ~EqualsPredicate("c/z", 3))
    )

    assert predicate.property_ids == {"a/x", "b/y", "c/z"}


def test_nested_and_is_flattened():
    a, b, c = EqualsPredicate("a/x", 1), EqualsPredicate("b/y", 2), EqualsPredicate("c/z", 3)

    assert (a & b & c) == AndPredicate((a, b, c))


def test_category_is_empty(host):
    assert CategoryIsEmptyPredicate("metrics/memory").evaluate(host)
    assert not CategoryIsEmptyPredicate("metrics/cpu").evaluate(host)
    assert CategoryIsEmptyPredicate("metrics").property_ids == {"metrics"}


def test_restrict_to_keeps_owned_conjuncts():
    store_part = EqualsPredicate("Hosts/os_type", "centos6")
    metric_part = GreaterPredicate("metrics/cpu/user", 50)
    owned = {"Hosts/os_type", "Hosts/host_name"}

    assert (store_part & metric_part).restrict_to(owned) == store_part
    assert (store_part | metric_part).restrict_to(owned) is None
    assert NotPredicate(store_part & metric_part).restrict_to(owned) is None
    assert NotPredicate(store_part).restrict_to(owned) == NotPredicate(store_part)
    assert metric_part.restrict_to(owned) is None


def test_restrict_to_never_excludes_matches(host):
    predicate = EqualsPredicate("Hosts/os_type", "centos6") & GreaterPredicate("metrics/cpu/user", 50)
    restricted = predicate.restrict_to({"Hosts/os_type"})

    # host fails the full predicate but must survive the pushed-down part
    assert not predicate.evaluate(host)
    assert restricted is not None and restricted.evaluate(host)


def test_builder_precedence_and_groups(host):
    predicate = (
        PredicateBuilder()
        .property("Hosts/host_name").equals("h2")
        .or_()
        .begin()
        .property("Hosts/cpu_count").greater_than(2)
        .and_().not_().property("Hosts/os_type").equals("windows")
        .end()
        .to_predicate()
    )

    assert isinstance(predicate, OrPredicate)
    assert predicate.evaluate(host)
    assert predicate.property_ids == {"Hosts/host_name", "Hosts/cpu_count", "Hosts/os_type"}


def test_builder_single_term_and_is_empty(host):
    assert PredicateBuilder().property("Hosts/host_name").equals("h1").to_predicate() == EqualsPredicate(
        "Hosts/host_name", "h1"
    )
    assert PredicateBuilder().property("metrics/disk").is_empty().to_predicate().evaluate(host)


@pytest.mark.parametrize(
    "build",
    [
        lambda b: b.to_predicate(),
        lambda b: b.and_(),
        lambda b: b.property("a/x").equals(1).property("b/y"),
        lambda b: b.begin().property("a/x").equals(1).to_predicate(),
        lambda b: b.end(),
        lambda b: b.equals(1),
    ],
)
def test_builder_rejects_malformed_expressions(build):
    with pytest.raises(ValueError):
        build(PredicateBuilder())
