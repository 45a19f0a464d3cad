# This project was developed with assistance from AI tools.
"""Policy rule evaluation.

Rules are JSON conditions evaluated against a deal's fact tree. Leaves
compare one fact (dotted path, e.g. ``financials.dscr``) with a value;
``all`` / ``any`` / ``not`` combine them. Each rule comes out PASS, FAIL
or UNKNOWN (a fact it needs is missing, or the condition is malformed).

Condition examples::

    {"fact": "financials.dscr", "op": "gte", "value": 1.25}
    {"all": [{"fact": "business.naics", "op": "exists"},
             {"not": {"fact": "business.naics", "op": "starts_with", "value": "5311"}}]}
"""

import logging
import uuid
from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal

from buddy_db import PolicyRule
from buddy_db.enums import PolicyProgram
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..schemas.auth import UserContext
from .deal import require_deal
from .facts import _load_facts, facts_as_tree

logger = logging.getLogger(__name__)

PASS = "PASS"
FAIL = "FAIL"
UNKNOWN = "UNKNOWN"

OPERATORS = frozenset(
    {"eq", "ne", "gt", "gte", "lt", "lte", "in", "not_in", "contains", "starts_with", "exists"}
)

_MISSING = object()


class InvalidConditionError(ValueError):
    """Raised for a condition that is not valid rule DSL."""

    pass


@dataclass
class RuleEvaluation:
    result: str
    explanation: str
    missing_facts: list[str] = field(default_factory=list)
    confidence: float = 0.0


# Built-in rules used when neither the bank nor the global table defines any
# for the program. Keys: rule_key, title, condition, explanation.
DEFAULT_POLICY_RULES: dict[PolicyProgram, list[dict]] = {
    PolicyProgram.SBA_7A: [
        {
            "rule_key": "max_loan_amount",
            "title": "7(a) maximum loan amount",
            "condition": {"fact": "deal.loan_amount", "op": "lte", "value": 5_000_000},
            "explanation": "SBA 7(a) loans are capped at $5,000,000.",
        },
        {
            "rule_key": "for_profit",
            "title": "For-profit business",
            "condition": {"fact": "business.is_for_profit", "op": "eq", "value": "true"},
            "explanation": "Borrower must be an operating for-profit business.",
        },
        {
            "rule_key": "min_dscr",
            "title": "Debt service coverage",
            "condition": {"fact": "financials.dscr", "op": "gte", "value": 1.15},
            "explanation": "Global DSCR must be at least 1.15x.",
        },
        {
            "rule_key": "no_passive_real_estate",
            "title": "Not a passive real estate business",
            "condition": {
                "not": {
                    "any": [
                        {"fact": "business.naics", "op": "starts_with", "value": "5311"},
                        {"fact": "business.naics", "op": "starts_with", "value": "5312"},
                    ]
                }
            },
            "explanation": "Passive lessors and real estate agencies are ineligible.",
        },
    ],
    PolicyProgram.SBA_504: [
        {
            "rule_key": "max_net_worth",
            "title": "Tangible net worth limit",
            "condition": {"fact": "business.tangible_net_worth", "op": "lte", "value": 20_000_000},
            "explanation": "Tangible net worth may not exceed $20 million.",
        },
        {
            "rule_key": "max_net_income",
            "title": "Average net income limit",
            "condition": {"fact": "business.avg_net_income", "op": "lte", "value": 6_500_000},
            "explanation": "Average net income after taxes for the prior two years may not exceed $6.5 million.",
        },
        {
            "rule_key": "owner_occupancy",
            "title": "Owner occupancy",
            "condition": {"fact": "property.owner_occupancy_pct", "op": "gte", "value": 51},
            "explanation": "The business must occupy at least 51% of an existing building.",
        },
        {
            "rule_key": "min_dscr",
            "title": "Debt service coverage",
            "condition": {"fact": "financials.dscr", "op": "gte", "value": 1.15},
            "explanation": "Global DSCR must be at least 1.15x.",
        },
    ],
}


# ---------------------------------------------------------------------------
# Condition evaluation (pure)
# ---------------------------------------------------------------------------


def _fact_value(facts: dict, path: str):
    value = facts
    for key in path.split("."):
        if not isinstance(value, dict) or key not in value:
            return _MISSING
        value = value[key]
    return value


def validate_condition(condition) -> None:
    """Raise InvalidConditionError unless ``condition`` is well-formed DSL."""
    if not isinstance(condition, dict):
        raise InvalidConditionError("condition must be an object")
    if "all" in condition or "any" in condition:
        branches = condition.get("all", condition.get("any"))
        if not isinstance(branches, list) or not branches:
            raise InvalidConditionError("'all' / 'any' need a non-empty list")
        for branch in branches:
            validate_condition(branch)
        return
    if "not" in condition:
        validate_condition(condition["not"])
        return
    if not condition.get("fact"):
        raise InvalidConditionError("Invalid condition: missing 'fact'")
    op = condition.get("op", "eq")
    if op not in OPERATORS:
        raise InvalidConditionError(f"Unknown operator: {op}")


def _compare(op: str, actual, expected) -> bool:
    if op == "eq":
        return actual == expected
    if op == "ne":
        return actual != expected
    if op == "gt":
        return actual > expected
    if op == "gte":
        return actual >= expected
    if op == "lt":
        return actual < expected
    if op == "lte":
        return actual <= expected
    if op == "in":
        return isinstance(expected, list) and actual in expected
    if op == "not_in":
        return isinstance(expected, list) and actual not in expected
    if op == "contains":
        return isinstance(actual, str) and str(expected) in actual
    if op == "starts_with":
        return isinstance(actual, str) and actual.startswith(str(expected))
    raise InvalidConditionError(f"Unknown operator: {op}")


def _evaluate(condition: dict, facts: dict) -> tuple[bool, list[str]]:
    """Return (passed, missing facts) for a condition tree."""
    if not isinstance(condition, dict):
        raise InvalidConditionError("condition must be an object")

    if "all" in condition:
        results = [_evaluate(c, facts) for c in condition["all"]]
        return all(p for p, _ in results), [m for _, missing in results for m in missing]

    if "any" in condition:
        results = [_evaluate(c, facts) for c in condition["any"]]
        passed = any(p for p, _ in results)
        # Missing facts matter only if no branch could be decided
        if results and all(missing for _, missing in results):
            return passed, results[0][1]
        return passed, []

    if "not" in condition:
        passed, missing = _evaluate(condition["not"], facts)
        return not passed, missing

    fact = condition.get("fact")
    if not fact:
        raise InvalidConditionError("Invalid condition: missing 'fact'")

    op = condition.get("op", "eq")
    actual = _fact_value(facts, fact)
    if op == "exists":
        return actual is not _MISSING, [] if actual is not _MISSING else [fact]
    if actual is _MISSING:
        return False, [fact]
    return _compare(op, actual, condition.get("value")), []


def evaluate_rule(condition: dict, facts: dict, explanation: str = "") -> RuleEvaluation:
    """Evaluate one rule condition against a fact tree.

    Malformed conditions and type mismatches (e.g. comparing text to a
    number) come back UNKNOWN rather than raising.
    """
    try:
        passed, missing = _evaluate(condition, facts)
    except (InvalidConditionError, TypeError) as exc:
        logger.warning("Rule evaluation error: %s", exc)
        return RuleEvaluation(result=UNKNOWN, explanation=f"Evaluation error: {exc}")

    if missing:
        unique = list(dict.fromkeys(missing))
        return RuleEvaluation(
            result=UNKNOWN,
            explanation=f"Cannot determine eligibility. Missing facts: {', '.join(unique)}",
            missing_facts=unique,
        )

    if passed:
        return RuleEvaluation(
            result=PASS, explanation=explanation or "Rule condition satisfied", confidence=1.0
        )
    return RuleEvaluation(
        result=FAIL, explanation=explanation or "Rule condition not satisfied", confidence=1.0
    )


def get_missing_facts(results: dict[str, RuleEvaluation]) -> list[str]:
    """Distinct missing facts across all rules, in first-seen order."""
    missing: dict[str, None] = {}
    for evaluation in results.values():
        for fact in evaluation.missing_facts:
            missing.setdefault(fact)
    return list(missing)


def get_next_critical_fact(results: dict[str, RuleEvaluation]) -> dict | None:
    """The missing fact that appears in the most UNKNOWN rules."""
    impact: Counter[str] = Counter()
    for evaluation in results.values():
        if evaluation.result == UNKNOWN:
            impact.update(evaluation.missing_facts)
    if not impact:
        return None
    fact, count = impact.most_common(1)[0]
    return {"fact": fact, "impact": count}


# ---------------------------------------------------------------------------
# DB-backed evaluation
# ---------------------------------------------------------------------------


def program_for_loan_type(loan_type: str | None) -> PolicyProgram:
    if loan_type and "504" in loan_type:
        return PolicyProgram.SBA_504
    return PolicyProgram.SBA_7A


async def load_policy_rules(
    session: AsyncSession,
    bank_id: str,
    program: PolicyProgram,
) -> list[dict]:
    """Bank rules layered over global rules (bank wins per rule_key).

    Falls back to the built-in defaults when no rows exist for the program.
    """
    stmt = select(PolicyRule).where(
        PolicyRule.program == program,
        or_(PolicyRule.bank_id == bank_id, PolicyRule.bank_id.is_(None)),
    )
    rows = list((await session.execute(stmt)).scalars().all())
    if not rows:
        return [dict(rule, source="default") for rule in DEFAULT_POLICY_RULES[program]]

    merged: dict[str, dict] = {}
    # Global first so bank rows overwrite
    for row in sorted(rows, key=lambda r: r.bank_id is not None):
        merged[row.rule_key] = {
            "rule_key": row.rule_key,
            "title": row.title,
            "condition": row.condition_json,
            "explanation": row.explanation or "",
            "source": "bank" if row.bank_id else "global",
        }
    return list(merged.values())


def _deal_facts(deal) -> dict:
    amount = deal.loan_amount
    return {
        "loan_amount": float(amount) if isinstance(amount, Decimal) else amount,
        "loan_type": deal.loan_type,
    }


async def evaluate_deal_policy(
    session: AsyncSession,
    user: UserContext,
    deal_id: uuid.UUID,
    program: PolicyProgram | None = None,
) -> dict:
    """Evaluate every rule of a program against the deal's facts.

    Raises:
        DealNotFoundError: deal missing or out of scope.
    """
    deal = await require_deal(session, user, deal_id)
    program = program or program_for_loan_type(deal.loan_type)

    facts = facts_as_tree(await _load_facts(session, deal.id))
    facts["deal"] = {k: v for k, v in _deal_facts(deal).items() if v is not None}

    rules = await load_policy_rules(session, deal.bank_id, program)
    results: dict[str, RuleEvaluation] = {}
    report = []
    for rule in rules:
        evaluation = evaluate_rule(rule["condition"], facts, rule["explanation"])
        results[rule["rule_key"]] = evaluation
        report.append(
            {
                "rule_key": rule["rule_key"],
                "title": rule["title"],
                "source": rule["source"],
                "result": evaluation.result,
                "explanation": evaluation.explanation,
                "missing_facts": evaluation.missing_facts,
                "confidence": evaluation.confidence,
            }
        )

    counts = Counter(e.result for e in results.values())
    return {
        "deal_id": deal.id,
        "program": program,
        "results": report,
        "summary": {PASS: counts[PASS], FAIL: counts[FAIL], UNKNOWN: counts[UNKNOWN]},
        "missing_facts": get_missing_facts(results),
        "next_critical_fact": get_next_critical_fact(results),
    }


async def create_policy_rule(
    session: AsyncSession,
    *,
    program: PolicyProgram,
    rule_key: str,
    title: str,
    condition: dict,
    explanation: str | None = None,
    bank_id: str | None = None,
) -> PolicyRule:
    """Persist a rule after validating its condition. Raises InvalidConditionError."""
    validate_condition(condition)
    rule = PolicyRule(
        bank_id=bank_id,
        program=program,
        rule_key=rule_key,
        title=title,
        condition_json=condition,
        explanation=explanation,
    )
    session.add(rule)
    await session.commit()
    return rule
