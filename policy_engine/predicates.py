"""
Policy Rule Engine - Rule Predicates.

============================================================
PURPOSE
============================================================
Rule-specific logic, applied after the evidence check passes.

A rule names its predicate (PolicyRule.predicate). Rules that
name none use the default, which requires every required
evidence type to be present and verified.

Predicates may be plain functions or coroutines:

    def predicate(rule: PolicyRule, context: PolicyEvaluationContext) -> bool
    async def predicate(rule: PolicyRule, context: PolicyEvaluationContext) -> bool

A predicate that raises, or returns anything other than a bool,
fails only its own rule.

============================================================
"""

import inspect
import logging
from typing import Awaitable, Callable, Dict, Optional, Union

from core.exceptions import InvalidConfigError, RuleEvaluationError

from .types import PolicyEvaluationContext, PolicyRule


logger = logging.getLogger(__name__)


RulePredicate = Callable[[PolicyRule, PolicyEvaluationContext], Union[bool, Awaitable[bool]]]

DEFAULT_PREDICATE = "verified_evidence"
ALLOWLIST_PREDICATE = "attribute_in_allowlist"


# ============================================================
# BUILT-IN PREDICATES
# ============================================================


def verified_evidence(rule: PolicyRule, context: PolicyEvaluationContext) -> bool:
    """Every required evidence type is present with status Verified."""
    verified = context.verified_evidence_types()
    return all(t.casefold() in verified for t in rule.required_evidence_types)


def attribute_in_allowlist(rule: PolicyRule, context: PolicyEvaluationContext) -> bool:
    """
    A context attribute must take one of the configured values.

    Rule configuration:
        attribute: "token_type" | "jurisdiction" | key of additional_data
        allowed: list of accepted values (case-insensitive)
    """
    attribute = rule.configuration.get("attribute")
    allowed = rule.configuration.get("allowed")
    if not attribute or allowed is None:
        raise RuleEvaluationError(
            "attribute_in_allowlist requires 'attribute' and 'allowed'",
            rule_id=rule.rule_id,
        )

    if attribute in ("token_type", "jurisdiction"):
        value = getattr(context, attribute)
    else:
        value = context.additional_data.get(attribute)

    if value is None:
        return False
    return str(value).casefold() in {str(a).casefold() for a in allowed}


# ============================================================
# REGISTRY
# ============================================================


class RulePredicateRegistry:
    """
    Name -> predicate lookup.

    Populated at engine start. Registration after that point is
    allowed but must happen before concurrent evaluations begin.
    """

    def __init__(self, include_builtins: bool = True):
        self._predicates: Dict[str, RulePredicate] = {}
        if include_builtins:
            self.register(DEFAULT_PREDICATE, verified_evidence)
            self.register(ALLOWLIST_PREDICATE, attribute_in_allowlist)

    def register(self, name: str, predicate: RulePredicate) -> None:
        if not callable(predicate):
            raise InvalidConfigError("predicate", name, "predicate must be callable")
        self._predicates[name] = predicate
        logger.debug(f"Registered rule predicate: {name}")

    def get(self, name: Optional[str]) -> RulePredicate:
        """
        Resolve a predicate name (None means the default).

        Raises:
            RuleEvaluationError: Unknown predicate name
        """
        key = name or DEFAULT_PREDICATE
        predicate = self._predicates.get(key)
        if predicate is None:
            raise RuleEvaluationError(f"Unknown rule predicate: {key}")
        return predicate

    def names(self):
        return sorted(self._predicates)

    async def apply(self, rule: PolicyRule, context: PolicyEvaluationContext) -> bool:
        """Run the rule's predicate, awaiting it if it is a coroutine."""
        predicate = self.get(rule.predicate)
        result = predicate(rule, context)
        if inspect.isawaitable(result):
            result = await result
        if not isinstance(result, bool):
            raise RuleEvaluationError(
                f"Predicate {rule.predicate or DEFAULT_PREDICATE} returned {type(result).__name__}",
                rule_id=rule.rule_id,
            )
        return result
