import pytest

from leadflow.errors import ExpressionError
from leadflow.workflow.expressions import (
    evaluate_condition,
    evaluate_expression,
    normalize_source,
    run_script,
)

SCOPE = {
    "intent": "ORDER_REQUEST",
    "entities": {"quantity": 12, "product": "Desk Lamp"},
    "leadName": "Ada",
    "suggestedActions": ["create_order"],
}


def test_comparisons_and_member_access():
    assert evaluate_expression("context.intent == 'ORDER_REQUEST'", SCOPE) is True
    assert evaluate_expression("context.entities.quantity > 10", SCOPE) is True
    assert evaluate_expression("context['entities']['product']", SCOPE) == "Desk Lamp"
    assert evaluate_expression("'create_order' in context.suggestedActions", SCOPE) is True


def test_missing_members_are_none_safe():
    assert evaluate_expression("context.entities.missing", SCOPE) is None
    assert evaluate_expression("context.nothing.deeper.still", SCOPE) is None
    assert evaluate_expression("context.entities.missing > 3", SCOPE) is False


def test_javascript_operators_are_normalised():
    normalized = normalize_source("a === 'x' && !b")
    assert " ".join(normalized.split()) == "a == 'x' and not b"
    assert evaluate_expression(
        "context.intent === 'ORDER_REQUEST' && context.entities?.quantity !== null", SCOPE
    )
    assert evaluate_expression("!context.entities.missing || false", SCOPE) is True


def test_operators_inside_string_literals_are_untouched():
    assert evaluate_expression("'a && b' == 'a && b'", {}) is True


def test_helpers_and_string_methods():
    assert evaluate_expression("len(context.suggestedActions)", SCOPE) == 1
    assert evaluate_expression("context.leadName.lower()", SCOPE) == "ada"
    assert evaluate_expression("upper(context.intent)", SCOPE) == "ORDER_REQUEST"


@pytest.mark.parametrize(
    "source",
    [
        "__import__('os')",
        "open('/etc/passwd')",
        "(lambda: 1)()",
        "[x for x in context.suggestedActions]",
    ],
)
def test_disallowed_constructs_raise(source):
    with pytest.raises(ExpressionError):
        evaluate_expression(source, SCOPE)


def test_dunder_attributes_resolve_as_missing_keys():
    assert evaluate_expression("context.__class__", SCOPE) is None


def test_run_script_with_branches():
    script = """
qty = context.entities.quantity
if qty > 10:
    tier = 'bulk'
else:
    tier = 'single'
return tier + ':' + context.leadName;
"""
    assert run_script(script, SCOPE) == "bulk:Ada"
    assert run_script("x = 1", SCOPE) is None


def test_run_script_rejects_imports_and_loops():
    with pytest.raises(ExpressionError):
        run_script("import os", SCOPE)
    with pytest.raises(ExpressionError):
        run_script("for i in context.suggestedActions:\n    pass", SCOPE)
    with pytest.raises(ExpressionError):
        run_script("context = 1", SCOPE)


def test_evaluate_condition_treats_errors_as_false():
    assert evaluate_condition("always", None, SCOPE) is True
    assert evaluate_condition("expression", None, SCOPE) is False
    assert evaluate_condition("expression", "context.intent ==", SCOPE) is False
    assert evaluate_condition("expression", "unknown_name", SCOPE) is False
    assert evaluate_condition("script", "return context.entities.quantity == 12", SCOPE) is True


def test_leading_negation_in_conditions():
    assert normalize_source("!context.flag") == "not context.flag"
    assert evaluate_condition("expression", "!context.entities.missing", SCOPE) is True
    assert evaluate_condition("expression", "!context.entities.quantity", SCOPE) is False
    assert evaluate_condition("expression", "  !(context.leadName == 'Ada')", SCOPE) is False
    assert evaluate_condition("script", "return !context.entities.missing;", SCOPE) is True
    assert (
        evaluate_condition(
            "script",
            "if !context.entities.missing:\n    return true\nreturn false",
            SCOPE,
        )
        is True
    )
