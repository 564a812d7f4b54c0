"""
Rule conditions over campaign metrics.

WHAT:
    Serializable predicates evaluated against one campaign's observations
    (see custom_rules.campaign_observations):
    - threshold:    "clicks >= 50", "ctr < 1%"
    - field_equals: "status is ENABLED"
    - composite:    AND / OR of two or more conditions
    - not:          negation of one condition

WHY:
    Custom optimization rules are data posted by users, so conditions
    round-trip through plain dicts (`to_dict` / `condition_from_dict`) and
    every evaluation carries a human-readable explanation for the UI.

REFERENCES:
    - backend/app/services/analyzers/custom_rules.py (rule definitions)
"""

import logging
import operator as op
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Type

logger = logging.getLogger(__name__)

# Ratios shown as percentages, money metrics with a currency sign
PERCENT_METRICS = {"ctr", "conversion_rate", "search_impression_share", "budget_utilization"}
MONEY_METRICS = {"cost", "average_cpc", "cpa", "budget", "daily_spend", "conversion_value"}

FLOAT_TOLERANCE = 0.0001


def format_metric(metric: str, value: float) -> str:
    if metric in PERCENT_METRICS:
        return f"{value * 100:.2f}%"
    if metric in MONEY_METRICS:
        return f"${value:,.2f}"
    return f"{value:,.2f}"


@dataclass
class EvalContext:
    """Observations for one campaign, e.g. {"clicks": 72, "ctr": 0.004, "status": "ENABLED"}."""

    observations: Dict[str, Any]
    entity_id: Optional[str] = None
    entity_name: Optional[str] = None


@dataclass
class ConditionResult:
    met: bool
    explanation: str
    inputs: Dict[str, Any] = field(default_factory=dict)
    details: Optional[Dict[str, Any]] = None


_REGISTRY: Dict[str, Type["Condition"]] = {}


def _register(cls):
    _REGISTRY[cls.type_name] = cls
    return cls


class Condition(ABC):
    """A predicate over EvalContext.observations."""

    type_name: str = ""

    @abstractmethod
    def evaluate(self, context: EvalContext) -> ConditionResult:
        ...

    @abstractmethod
    def explain(self) -> str:
        """The condition itself, independent of any campaign."""

    @abstractmethod
    def _fields(self) -> Dict[str, Any]:
        ...

    @classmethod
    @abstractmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Condition":
        ...

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type_name, **self._fields()}

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.explain()}>"


@_register
class ThresholdCondition(Condition):
    """Numeric metric compared with a constant. Accepts "gte" or ">=" style operators."""

    type_name = "threshold"

    COMPARATORS: Dict[str, Callable[[float, float], bool]] = {
        "gt": op.gt,
        "gte": op.ge,
        "lt": op.lt,
        "lte": op.le,
        "eq": lambda a, b: abs(a - b) < FLOAT_TOLERANCE,
        "neq": lambda a, b: abs(a - b) >= FLOAT_TOLERANCE,
    }
    WORDS = {
        "gt": "greater than",
        "gte": "greater than or equal to",
        "lt": "less than",
        "lte": "less than or equal to",
        "eq": "equal to",
        "neq": "not equal to",
    }
    SYMBOLS = {"<": "lt", "<=": "lte", ">": "gt", ">=": "gte", "=": "eq", "==": "eq", "!=": "neq"}

    def __init__(self, metric: str, operator: str, value: float):
        operator = self.SYMBOLS.get(operator, operator)
        if operator not in self.COMPARATORS:
            raise ValueError(f"Invalid operator: {operator}")
        self.metric = metric
        self.operator = operator
        self.value = float(value)

    def evaluate(self, context: EvalContext) -> ConditionResult:
        raw = context.observations.get(self.metric)
        inputs = {"metric": self.metric, "operator": self.operator, "threshold": self.value}
        if raw is None:
            return ConditionResult(
                met=False,
                explanation=f"{self.metric} is not available",
                inputs={**inputs, "current_value": None},
                details={"error": "metric_not_found"},
            )

        current = float(raw)
        met = self.COMPARATORS[self.operator](current, self.value)
        verb = "is" if met else "is not"
        return ConditionResult(
            met=met,
            explanation=(
                f"{self.metric} {format_metric(self.metric, current)} {verb} "
                f"{self.WORDS[self.operator]} {format_metric(self.metric, self.value)}"
            ),
            inputs={**inputs, "current_value": current},
        )

    def explain(self) -> str:
        return f"{self.metric.upper()} {self.WORDS[self.operator]} {self.value}"

    def _fields(self) -> Dict[str, Any]:
        return {"metric": self.metric, "operator": self.operator, "value": self.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ThresholdCondition":
        return cls(data["metric"], data["operator"], data["value"])


@_register
class FieldEqualsCondition(Condition):
    """Case-insensitive match on a categorical field such as status or channel_type."""

    type_name = "field_equals"

    def __init__(self, field: str, value: str):
        self.field = field
        self.value = value

    def evaluate(self, context: EvalContext) -> ConditionResult:
        current = context.observations.get(self.field)
        met = current is not None and str(current).upper() == str(self.value).upper()
        return ConditionResult(
            met=met,
            explanation=f"{self.field} is {current}" + ("" if met else f", expected {self.value}"),
            inputs={"field": self.field, "expected": self.value, "current_value": current},
        )

    def explain(self) -> str:
        return f"{self.field.upper()} is {self.value}"

    def _fields(self) -> Dict[str, Any]:
        return {"field": self.field, "value": self.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldEqualsCondition":
        return cls(data["field"], data["value"])


@_register
class CompositeCondition(Condition):
    """AND / OR over two or more conditions. Every child is evaluated so the explanation is complete."""

    type_name = "composite"

    def __init__(self, operator: str, conditions: List[Condition]):
        if operator not in ("and", "or"):
            raise ValueError(f"Invalid composite operator: {operator}")
        if len(conditions) < 2:
            raise ValueError("Composite condition requires at least 2 conditions")
        self.operator = operator
        self.conditions = conditions

    def evaluate(self, context: EvalContext) -> ConditionResult:
        results = [c.evaluate(context) for c in self.conditions]
        combine = all if self.operator == "and" else any
        met = combine(r.met for r in results)

        # Explain with the children that decided the outcome
        if met == (self.operator == "and"):
            deciding = results
        else:
            deciding = [r for r in results if r.met == met]
        return ConditionResult(
            met=met,
            explanation=f" {self.operator.upper()} ".join(r.explanation for r in deciding),
            inputs={"operator": self.operator, "conditions": [r.inputs for r in results]},
            details={"results": [{"met": r.met, "explanation": r.explanation} for r in results]},
        )

    def explain(self) -> str:
        joiner = f" {self.operator.upper()} "
        return f"({joiner.join(c.explain() for c in self.conditions)})"

    def _fields(self) -> Dict[str, Any]:
        return {"operator": self.operator, "conditions": [c.to_dict() for c in self.conditions]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompositeCondition":
        children = data["conditions"]
        if not isinstance(children, list):
            raise ValueError("Composite conditions must be a list")
        return cls(data["operator"], [condition_from_dict(c) for c in children])


@_register
class NotCondition(Condition):
    type_name = "not"

    def __init__(self, condition: Condition):
        self.condition = condition

    def evaluate(self, context: EvalContext) -> ConditionResult:
        inner = self.condition.evaluate(context)
        return ConditionResult(
            met=not inner.met,
            explanation=f"not ({inner.explanation})",
            inputs={"negated": True, "inner_condition": inner.inputs},
            details={"inner_result": {"met": inner.met, "explanation": inner.explanation}},
        )

    def explain(self) -> str:
        return f"NOT ({self.condition.explain()})"

    def _fields(self) -> Dict[str, Any]:
        return {"condition": self.condition.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NotCondition":
        return cls(condition_from_dict(data["condition"]))


def condition_from_dict(data: Dict[str, Any]) -> Condition:
    """
    Build a condition tree from its dict form.

    Raises:
        ValueError: Not a dict, unknown condition type or invalid operator
        KeyError: Missing required key
    """
    if not isinstance(data, dict):
        raise ValueError(f"Condition must be an object, got {type(data).__name__}")
    condition_type = data.get("type")
    cls = _REGISTRY.get(condition_type)
    if cls is None:
        raise ValueError(f"Unknown condition type: {condition_type}")
    return cls.from_dict(data)
