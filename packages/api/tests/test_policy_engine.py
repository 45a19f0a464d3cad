# This project was developed with assistance from AI tools.
"""Tests for policy rule evaluation."""

import uuid
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from buddy_db import FinancialFact
from buddy_db.enums import FactOwnerType, PolicyProgram

from buddy.services.policy import (
    DEFAULT_POLICY_RULES,
    FAIL,
    PASS,
    UNKNOWN,
    InvalidConditionError,
    RuleEvaluation,
    create_policy_rule,
    evaluate_deal_policy,
    evaluate_rule,
    get_missing_facts,
    get_next_critical_fact,
    load_policy_rules,
    program_for_loan_type,
    validate_condition,
)
from tests.factories import make_mock_deal, make_mock_session, make_user

FACTS = {
    "financials": {"dscr": 1.3, "revenue": 2_400_000.0},
    "business": {"naics": "332710", "is_for_profit": "true", "state": "OH"},
}

# ---------------------------------------------------------------------------
# Leaf operators
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "condition,expected",
    [
        ({"fact": "financials.dscr", "op": "gte", "value": 1.25}, PASS),
        ({"fact": "financials.dscr", "op": "gt", "value": 1.3}, FAIL),
        ({"fact": "financials.dscr", "op": "lt", "value": 1.5}, PASS),
        ({"fact": "financials.revenue", "op": "lte", "value": 1_000_000}, FAIL),
        ({"fact": "business.state", "value": "OH"}, PASS),
        ({"fact": "business.state", "op": "ne", "value": "OH"}, FAIL),
        ({"fact": "business.state", "op": "in", "value": ["OH", "PA"]}, PASS),
        ({"fact": "business.state", "op": "not_in", "value": ["OH", "PA"]}, FAIL),
        ({"fact": "business.naics", "op": "starts_with", "value": "33"}, PASS),
        ({"fact": "business.naics", "op": "contains", "value": "271"}, PASS),
        ({"fact": "business.naics", "op": "exists"}, PASS),
    ],
)
def test_leaf_operators(condition, expected):
    assert evaluate_rule(condition, FACTS).result == expected


def test_decided_rules_have_full_confidence():
    result = evaluate_rule({"fact": "financials.dscr", "op": "gte", "value": 1.25}, FACTS)
    assert result.confidence == 1.0
    assert result.explanation == "Rule condition satisfied"


def test_rule_explanation_is_used_when_given():
    result = evaluate_rule(
        {"fact": "financials.dscr", "op": "gte", "value": 2.0}, FACTS, "DSCR must be 2.0x"
    )
    assert result.result == FAIL
    assert result.explanation == "DSCR must be 2.0x"


# ---------------------------------------------------------------------------
# Missing facts and errors
# ---------------------------------------------------------------------------


def test_missing_fact_is_unknown():
    result = evaluate_rule({"fact": "property.ltv", "op": "lte", "value": 0.8}, FACTS)
    assert result.result == UNKNOWN
    assert result.missing_facts == ["property.ltv"]
    assert result.confidence == 0.0
    assert "property.ltv" in result.explanation


def test_exists_on_missing_fact_is_unknown():
    result = evaluate_rule({"fact": "property.ltv", "op": "exists"}, FACTS)
    assert result.result == UNKNOWN


def test_type_mismatch_is_unknown():
    result = evaluate_rule({"fact": "business.naics", "op": "gt", "value": 5}, FACTS)
    assert result.result == UNKNOWN
    assert result.explanation.startswith("Evaluation error")


def test_unknown_operator_is_unknown():
    result = evaluate_rule({"fact": "financials.dscr", "op": "approx", "value": 1}, FACTS)
    assert result.result == UNKNOWN


# ---------------------------------------------------------------------------
# Combinators
# ---------------------------------------------------------------------------


def test_all_requires_every_branch():
    condition = {
        "all": [
            {"fact": "financials.dscr", "op": "gte", "value": 1.25},
            {"fact": "business.state", "op": "eq", "value": "PA"},
        ]
    }
    assert evaluate_rule(condition, FACTS).result == FAIL


def test_all_with_missing_branch_is_unknown():
    condition = {
        "all": [
            {"fact": "financials.dscr", "op": "gte", "value": 1.25},
            {"fact": "property.ltv", "op": "lte", "value": 0.8},
        ]
    }
    result = evaluate_rule(condition, FACTS)
    assert result.result == UNKNOWN
    assert result.missing_facts == ["property.ltv"]


def test_any_decided_by_known_branch():
    condition = {
        "any": [
            {"fact": "property.ltv", "op": "lte", "value": 0.8},
            {"fact": "financials.dscr", "op": "gte", "value": 1.25},
        ]
    }
    assert evaluate_rule(condition, FACTS).result == PASS


def test_any_with_every_branch_missing_is_unknown():
    condition = {
        "any": [
            {"fact": "property.ltv", "op": "lte", "value": 0.8},
            {"fact": "property.occupancy", "op": "gte", "value": 0.9},
        ]
    }
    assert evaluate_rule(condition, FACTS).result == UNKNOWN


def test_not_inverts():
    passive = DEFAULT_POLICY_RULES[PolicyProgram.SBA_7A][3]["condition"]
    assert evaluate_rule(passive, FACTS).result == PASS
    lessor = {"business": {"naics": "531120"}}
    assert evaluate_rule(passive, lessor).result == FAIL
    assert evaluate_rule(passive, {}).result == UNKNOWN


# ---------------------------------------------------------------------------
# Validation and aggregation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "condition",
    [
        "dscr > 1.25",
        {"op": "gte", "value": 1},
        {"fact": "financials.dscr", "op": "approx"},
        {"all": []},
        {"any": [{"fact": "a.b"}, "bad"]},
    ],
)
def test_validate_condition_rejects(condition):
    with pytest.raises(InvalidConditionError):
        validate_condition(condition)


@pytest.mark.parametrize("program", list(PolicyProgram))
def test_default_rules_are_valid(program):
    for rule in DEFAULT_POLICY_RULES[program]:
        validate_condition(rule["condition"])


def test_missing_facts_and_next_critical_fact():
    results = {
        "a": RuleEvaluation(result=UNKNOWN, explanation="", missing_facts=["financials.dscr"]),
        "b": RuleEvaluation(
            result=UNKNOWN, explanation="", missing_facts=["property.ltv", "financials.dscr"]
        ),
        "c": RuleEvaluation(result=PASS, explanation="", confidence=1.0),
    }
    assert get_missing_facts(results) == ["financials.dscr", "property.ltv"]
    assert get_next_critical_fact(results) == {"fact": "financials.dscr", "impact": 2}


def test_next_critical_fact_none_when_all_decided():
    assert get_next_critical_fact({"a": RuleEvaluation(result=FAIL, explanation="")}) is None


@pytest.mark.parametrize(
    "loan_type,program",
    [("SBA 504", PolicyProgram.SBA_504), ("SBA 7(a)", PolicyProgram.SBA_7A), (None, PolicyProgram.SBA_7A)],
)
def test_program_for_loan_type(loan_type, program):
    assert program_for_loan_type(loan_type) == program


# ---------------------------------------------------------------------------
# DB-backed
# ---------------------------------------------------------------------------


def _rule_row(rule_key, bank_id, value):
    row = MagicMock()
    row.rule_key = rule_key
    row.bank_id = bank_id
    row.title = rule_key
    row.condition_json = {"fact": "financials.dscr", "op": "gte", "value": value}
    row.explanation = None
    return row


async def test_load_rules_falls_back_to_defaults():
    rules = await load_policy_rules(make_mock_session(items=[]), "bank-1", PolicyProgram.SBA_504)
    assert [r["rule_key"] for r in rules] == [r["rule_key"] for r in DEFAULT_POLICY_RULES[PolicyProgram.SBA_504]]
    assert {r["source"] for r in rules} == {"default"}


async def test_bank_rule_overrides_global():
    rows = [_rule_row("min_dscr", "bank-1", 1.35), _rule_row("min_dscr", None, 1.15)]
    rules = await load_policy_rules(make_mock_session(items=rows), "bank-1", PolicyProgram.SBA_7A)
    assert len(rules) == 1
    assert rules[0]["source"] == "bank"
    assert rules[0]["condition"]["value"] == 1.35


def _fact(fact_type, fact_key, num=None, text=None):
    return FinancialFact(
        deal_id=uuid.UUID(int=1),
        fact_type=fact_type,
        fact_key=fact_key,
        fact_period="",
        value_num=num,
        value_text=text,
        owner_type=FactOwnerType.DEAL,
        owner_entity_id="",
    )


async def test_evaluate_deal_policy_with_defaults():
    deal = make_mock_deal(loan_type="SBA 7(a)", loan_amount=Decimal("750000"))
    facts = [
        _fact("financials", "dscr", num=Decimal("1.30")),
        _fact("business", "is_for_profit", text="true"),
    ]
    with (
        patch("buddy.services.policy.require_deal", new_callable=AsyncMock, return_value=deal),
        patch("buddy.services.policy._load_facts", new_callable=AsyncMock, return_value=facts),
    ):
        report = await evaluate_deal_policy(make_mock_session(items=[]), make_user(), deal.id)

    results = {r["rule_key"]: r["result"] for r in report["results"]}
    assert report["program"] == PolicyProgram.SBA_7A
    assert results == {
        "max_loan_amount": PASS,
        "for_profit": PASS,
        "min_dscr": PASS,
        "no_passive_real_estate": UNKNOWN,
    }
    assert report["summary"] == {PASS: 3, FAIL: 0, UNKNOWN: 1}
    assert report["missing_facts"] == ["business.naics"]
    assert report["next_critical_fact"] == {"fact": "business.naics", "impact": 1}


async def test_create_rule_rejects_bad_condition():
    session = make_mock_session()
    with pytest.raises(InvalidConditionError):
        await create_policy_rule(
            session, program=PolicyProgram.SBA_7A, rule_key="x", title="x", condition={"op": "eq"}
        )
    session.add.assert_not_called()


async def test_create_rule_persists():
    session = make_mock_session()
    rule = await create_policy_rule(
        session,
        program=PolicyProgram.SBA_504,
        rule_key="min_equity",
        title="Minimum equity injection",
        condition={"fact": "deal.equity_pct", "op": "gte", "value": 10},
        bank_id="bank-1",
    )
    session.add.assert_called_once_with(rule)
    session.commit.assert_awaited_once()
    assert rule.condition_json["op"] == "gte"
