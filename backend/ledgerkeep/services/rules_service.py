"""
Category rules: matching, loading and synthesis of auto-rules during imports.

A ``RuleSet`` is an immutable value. The import pipeline threads it through
its batch loop and swaps in an extended set at each batch boundary, so rules
learned from one batch only ever affect the batches after it.
"""

import re
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from ledgerkeep.models.rule import CategoryRule, AUTO_RULE_PRIORITY, MANUAL_RULE_PRIORITY
from ledgerkeep.services.normalizer import (
    Classification,
    description_key,
    normalize_date,
    parse_finite_amount,
)


RULE_CONFIDENCE = 1.0

STRING_OPERATORS = {"contains", "equals", "startsWith", "endsWith", "regex"}
ORDERED_OPERATORS = {"equals", "greaterThan", "lessThan", "between"}

FIELD_OPERATORS = {
    "description": STRING_OPERATORS,
    "account": STRING_OPERATORS,
    "amount": ORDERED_OPERATORS,
    "date": ORDERED_OPERATORS,
}


@dataclass(frozen=True)
class RuleCondition:
    field: str  # description, amount, account, date
    operator: str
    value: Any
    value_end: Any = None
    case_sensitive: bool = False

    def matches(self, txn: Mapping[str, Any]) -> bool:
        actual = txn.get(self.field)
        if actual is None:
            return False

        if self.field in ("amount", "date"):
            return self._matches_ordered(actual)
        return self._matches_text(str(actual))

    def _matches_text(self, actual: str) -> bool:
        expected = str(self.value)
        if self.operator == "regex":
            flags = 0 if self.case_sensitive else re.IGNORECASE
            try:
                return re.search(expected, actual, flags) is not None
            except re.error:
                return False

        if not self.case_sensitive:
            actual = description_key(actual)
            expected = description_key(expected)

        if self.operator == "contains":
            return expected in actual
        if self.operator == "equals":
            return actual == expected
        if self.operator == "startsWith":
            return actual.startswith(expected)
        if self.operator == "endsWith":
            return actual.endswith(expected)
        return False

    def _coerce(self, value: Any) -> Any:
        if self.field == "amount":
            return parse_finite_amount(value)
        return normalize_date(value)

    def _matches_ordered(self, actual: Any) -> bool:
        actual = self._coerce(actual)
        low = self._coerce(self.value)
        if actual is None or low is None:
            return False

        if self.operator == "equals":
            return actual == low
        if self.operator == "greaterThan":
            return actual > low
        if self.operator == "lessThan":
            return actual < low
        if self.operator == "between":
            high = self._coerce(self.value_end)
            return high is not None and low <= actual <= high
        return False

    def to_document(self) -> Dict[str, Any]:
        doc = {
            "field": self.field,
            "operator": self.operator,
            "value": _json_value(self.value),
            "caseSensitive": self.case_sensitive,
        }
        if self.value_end is not None:
            doc["valueEnd"] = _json_value(self.value_end)
        return doc

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "RuleCondition":
        field_name = doc["field"]
        operator = doc["operator"]
        if field_name not in FIELD_OPERATORS:
            raise ValueError(f"unknown condition field '{field_name}'")
        if operator not in FIELD_OPERATORS[field_name]:
            raise ValueError(f"operator '{operator}' does not apply to {field_name}")
        return cls(
            field=field_name,
            operator=operator,
            value=doc.get("value"),
            value_end=doc.get("valueEnd"),
            case_sensitive=bool(doc.get("caseSensitive", False)),
        )


@dataclass(frozen=True)
class Rule:
    id: str
    name: str
    conditions: Tuple[RuleCondition, ...]
    category: str
    subcategory: Optional[str] = None
    priority: int = MANUAL_RULE_PRIORITY
    is_active: bool = True
    description: Optional[str] = None

    def matches(self, txn: Mapping[str, Any]) -> bool:
        if not self.is_active or not self.conditions:
            return False
        return all(condition.matches(txn) for condition in self.conditions)

    def classification(self) -> Classification:
        return Classification(
            self.category,
            self.subcategory,
            RULE_CONFIDENCE,
            f"Matched rule '{self.name}'",
            "rule",
        )

    def to_document(self) -> Dict[str, Any]:
        """Envelope shape of the rule."""
        action = {"categoryName": self.category}
        if self.subcategory:
            action["subcategoryName"] = self.subcategory
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "isActive": self.is_active,
            "priority": self.priority,
            "conditions": [c.to_document() for c in self.conditions],
            "action": action,
        }

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "Rule":
        action = doc.get("action") or {}
        category = action.get("categoryName") or action.get("categoryId")
        if not category:
            raise ValueError("rule action has no category")
        return cls(
            id=str(doc.get("id") or uuid.uuid4()),
            name=doc.get("name") or "Unnamed rule",
            conditions=tuple(RuleCondition.from_document(c) for c in doc.get("conditions") or []),
            category=category,
            subcategory=action.get("subcategoryName"),
            priority=int(doc.get("priority", MANUAL_RULE_PRIORITY)),
            is_active=bool(doc.get("isActive", True)),
            description=doc.get("description"),
        )

    @classmethod
    def from_model(cls, model: CategoryRule) -> "Rule":
        doc = {
            "id": model.id,
            "name": model.name,
            "description": model.description,
            "isActive": model.is_active,
            "priority": model.priority,
            "conditions": model.conditions,
            "action": model.action,
        }
        return cls.from_document(doc)


@dataclass(frozen=True)
class RuleSet:
    """Ordered, immutable collection of rules; first match by priority wins."""

    rules: Tuple[Rule, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.rules)

    def with_rules(self, new_rules: Iterable[Rule]) -> "RuleSet":
        known = {r.id for r in self.rules}
        merged = list(self.rules) + [r for r in new_rules if r.id not in known]
        # sorted() is stable, so equal priorities keep insertion order
        return RuleSet(tuple(sorted(merged, key=lambda r: r.priority)))

    def match(self, txn: Mapping[str, Any]) -> Optional[Rule]:
        for rule in self.rules:
            if rule.matches(txn):
                return rule
        return None

    def has_auto_rule_for(self, account: str, description: str) -> bool:
        probe = {"account": account, "description": description}
        return any(
            r.priority == AUTO_RULE_PRIORITY and r.matches(probe)
            for r in self.rules
        )


def _json_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def load_rule_set(db: Session) -> RuleSet:
    """Active rules from the store, priority ordered."""
    models = db.query(CategoryRule).filter(CategoryRule.is_active == True).all()  # noqa: E712
    return RuleSet().with_rules(Rule.from_model(m) for m in models)


def create_auto_rule(
    account: str,
    description: str,
    category: str,
    subcategory: Optional[str] = None,
    confidence: float = 1.0
) -> Rule:
    """Exact account + description rule derived from a confident classification."""
    label = description if len(description) <= 30 else f"{description[:30]}..."
    return Rule(
        id=str(uuid.uuid4()),
        name=f"Auto: {account} - {label}",
        description=f"Auto-generated from import classification (confidence: {round(confidence * 100)}%)",
        priority=AUTO_RULE_PRIORITY,
        conditions=(
            RuleCondition("account", "equals", account),
            RuleCondition("description", "equals", description),
        ),
        category=category,
        subcategory=subcategory,
    )


def synthesize_rules(
    classified: Sequence[Tuple[Mapping[str, Any], Classification]],
    rule_set: RuleSet,
    min_confidence: float
) -> List[Rule]:
    """
    Derive auto-rules from one batch of classifications.

    A keyword classification qualifies when the same account/description pair
    occurs at least twice in the batch; an AI classification qualifies on its
    own. Both need ``min_confidence`` and a real category.
    """
    counts: Dict[Tuple[str, str], int] = {}
    for txn, _ in classified:
        key = (txn["account"], description_key(txn["description"]))
        counts[key] = counts.get(key, 0) + 1

    new_rules: List[Rule] = []
    seen = set()
    for txn, result in classified:
        if result.source not in ("keyword", "ai") or result.is_uncategorized:
            continue
        if result.confidence < min_confidence:
            continue

        key = (txn["account"], description_key(txn["description"]))
        if key in seen:
            continue
        if result.source == "keyword" and counts[key] < 2:
            continue
        if rule_set.has_auto_rule_for(txn["account"], txn["description"]):
            continue

        seen.add(key)
        new_rules.append(create_auto_rule(
            txn["account"],
            txn["description"].strip(),
            result.category,
            result.subcategory,
            result.confidence,
        ))

    return new_rules
