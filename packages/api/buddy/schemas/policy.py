# This project was developed with assistance from AI tools.
"""Policy evaluation schemas."""

import uuid

from buddy_db.enums import PolicyProgram
from pydantic import BaseModel, ConfigDict, Field


class RuleResult(BaseModel):
    rule_key: str
    title: str
    source: str
    result: str
    explanation: str
    missing_facts: list[str] = []
    confidence: float


class CriticalFact(BaseModel):
    fact: str
    impact: int


class PolicyEvaluationResponse(BaseModel):
    deal_id: uuid.UUID
    program: PolicyProgram
    results: list[RuleResult]
    summary: dict[str, int]
    missing_facts: list[str] = []
    next_critical_fact: CriticalFact | None = None


class PolicyRuleCreate(BaseModel):
    """New rule. ``bank_id`` null makes it global (admins only)."""

    program: PolicyProgram
    rule_key: str = Field(min_length=1, max_length=100)
    title: str = Field(min_length=1, max_length=255)
    condition: dict
    explanation: str | None = None
    bank_id: str | None = None


class PolicyRuleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    bank_id: str | None = None
    program: PolicyProgram
    rule_key: str
    title: str
    condition_json: dict
    explanation: str | None = None
