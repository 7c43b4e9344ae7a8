"""
Match predicates deciding which filters apply to a message.

A chain only ever sees zero-argument predicates. This module builds them
from ``MatchCondition`` lists that close over a ``MessageContext``, which
the proxy updates as requests and responses go by.
"""
import fnmatch
import logging
import re
from typing import Any, Callable, Dict, List, Optional

from .errors import FilterConfigurationError
from .messages import MessageContext

logger = logging.getLogger(__name__)

# push_filter() keyword -> field read from the context
MATCH_FIELDS = {
    "method": "request.method",
    "scheme": "request.scheme",
    "host": "request.host",
    "path": "request.path",
    "query": "request.query",
    "mime": "response.content_type",
}


class MatchCondition:
    """A single test on one field of the current message."""

    def __init__(self, field: str, operator: str, value: Any):
        """Initialize a match condition.

        Args:
            field: Dotted field to read (e.g. "request.path")
            operator: The operator to use (e.g. "equals", "regex")
            value: The value to compare against
        """
        self.field = field
        self.operator = operator
        self.value = value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field,
            "operator": self.operator,
            "value": self.value
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MatchCondition':
        return cls(
            field=data["field"],
            operator=data["operator"],
            value=data["value"]
        )

    def __repr__(self) -> str:
        return f"MatchCondition({self.field!r}, {self.operator!r}, {self.value!r})"


def _mime_matches(pattern: str, content_type: str) -> bool:
    if not content_type:
        # Messages without a content type only match catch-all patterns
        return pattern in ("*", "*/*")
    if "/" not in pattern:
        pattern = f"{pattern}/*"
    return fnmatch.fnmatchcase(content_type, pattern.lower())


class ConditionEvaluator:
    """Evaluates match conditions against a message context."""

    OPERATORS = (
        "equals", "not_equals", "contains", "starts_with", "ends_with",
        "regex", "in_list", "mime",
    )

    def resolve(self, field: str, context: MessageContext) -> Any:
        """Read a dotted field from the context. None if any part is missing."""
        value: Any = context
        for part in field.split('.'):
            if value is None:
                return None
            if isinstance(value, dict):
                value = value.get(part)
            else:
                value = getattr(value, part, None)
        return value

    def evaluate(self, condition: MatchCondition, context: MessageContext) -> bool:
        """Evaluate a single condition against the current message."""
        value = self.resolve(condition.field, context)

        if condition.operator == "mime":
            return _mime_matches(condition.value, value or "")
        if value is None:
            return False

        if condition.operator == "equals":
            return value == condition.value
        elif condition.operator == "not_equals":
            return value != condition.value
        elif condition.operator == "contains":
            return condition.value in str(value)
        elif condition.operator == "starts_with":
            return str(value).startswith(condition.value)
        elif condition.operator == "ends_with":
            return str(value).endswith(condition.value)
        elif condition.operator == "regex":
            return bool(re.search(condition.value, str(value)))
        elif condition.operator == "in_list":
            return value in condition.value
        else:
            logger.warning(f"Unknown operator: {condition.operator}")
            return False

    def evaluate_all(self, conditions: List[MatchCondition], context: MessageContext) -> bool:
        """Evaluate all conditions (AND logic). An empty list always matches."""
        return all(self.evaluate(condition, context) for condition in conditions)


def match_conditions(**match: Optional[str]) -> List[MatchCondition]:
    """Turn ``push_filter`` style keywords into conditions.

    ``method`` is a comma-separated list, ``scheme`` is compared exactly,
    ``host``, ``path`` and ``query`` are regular expressions and ``mime``
    is a ``type/subtype`` glob. Keywords set to None are ignored.

    Raises:
        FilterConfigurationError: On an unknown keyword or a bad regex
    """
    conditions = []
    for key, value in match.items():
        if key not in MATCH_FIELDS:
            raise FilterConfigurationError(f"Unknown match parameter: {key}")
        if value is None:
            continue

        field = MATCH_FIELDS[key]
        if key == "method":
            methods = [m.strip().upper() for m in value.split(",") if m.strip()]
            conditions.append(MatchCondition(field, "in_list", methods))
        elif key == "scheme":
            conditions.append(MatchCondition(field, "equals", value.lower()))
        elif key == "mime":
            conditions.append(MatchCondition(field, "mime", value))
        else:
            try:
                re.compile(value)
            except re.error as e:
                raise FilterConfigurationError(f"Invalid {key} pattern {value!r}: {e}")
            conditions.append(MatchCondition(field, "regex", value))
    return conditions


def build_predicate(
    context: MessageContext,
    conditions: List[MatchCondition],
    evaluator: Optional[ConditionEvaluator] = None,
) -> Callable[[], bool]:
    """Return a zero-argument predicate testing ``conditions`` on ``context``."""
    evaluator = evaluator or ConditionEvaluator()
    conditions = list(conditions)
    for condition in conditions:
        if condition.operator not in ConditionEvaluator.OPERATORS:
            raise FilterConfigurationError(f"Unknown operator: {condition.operator}")

    def predicate() -> bool:
        return evaluator.evaluate_all(conditions, context)

    predicate.conditions = conditions
    return predicate
