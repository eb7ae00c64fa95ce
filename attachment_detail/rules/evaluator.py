# ============================================================================
# attachment_detail/rules/evaluator.py - Rule evaluation against attachments
# ============================================================================

import logging
from typing import Dict, Sequence

from ..errors import EvaluationError
from ..models import AttachmentRecord, Clause, CompiledRule, EvalRule, Operator
from .loader import CHECK_ATTACHMENT_COUNT, CHECK_ATTACHMENT_MIME_ERROR, RuleSet


def clause_matches(clause: Clause, value: str) -> bool:
    """Apply one clause to an attachment field value."""
    operator = clause.operator
    if operator is Operator.EQ:
        return value == clause.pattern
    if operator is Operator.NE:
        return value != clause.pattern
    if operator is Operator.MATCH:
        return clause.pattern.search(value) is not None
    if operator is Operator.NOT_MATCH:
        return clause.pattern.search(value) is None
    raise EvaluationError(f"unsupported operator {operator}")


def check_attachment_count(records: Sequence[AttachmentRecord], min_count: int, max_count: int) -> bool:
    """True if the number of attachments is between min_count and max_count (inclusive)."""
    return min_count <= len(records) <= max_count


def check_attachment_mime_error(records: Sequence[AttachmentRecord]) -> bool:
    """True if any attachment had a MIME header parsing error."""
    return any(record.mime_errors > 0 for record in records)


class RuleEvaluator:
    """Evaluates compiled attachment rules against one message's attachment records."""

    check_attachment_count = staticmethod(check_attachment_count)
    check_attachment_mime_error = staticmethod(check_attachment_mime_error)

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def evaluate(self, rule: CompiledRule, records: Sequence[AttachmentRecord]) -> bool:
        """True if any single attachment satisfies every clause of the rule."""
        self.logger.debug(f"Running attachment rule {rule.name}")

        for record in records:
            for clause in rule.clauses:
                value = record.value_for(clause.target)
                if not clause_matches(clause, value):
                    break
                self.logger.debug(f"{clause.target.value} matched: '{value}' {clause.describe()}")
            else:
                self.logger.debug(f"Criteria for {rule.name} met by attachment '{record.name}'")
                return True
        return False

    def evaluate_eval_rule(self, rule: EvalRule, records: Sequence[AttachmentRecord]) -> bool:
        if rule.check == CHECK_ATTACHMENT_COUNT:
            return check_attachment_count(records, *rule.args)
        if rule.check == CHECK_ATTACHMENT_MIME_ERROR:
            return check_attachment_mime_error(records)
        raise EvaluationError(f"unknown check {rule.check}")

    def evaluate_all(self, rule_set: RuleSet, records: Sequence[AttachmentRecord]) -> Dict[str, bool]:
        """Evaluate every rule in the set. A rule that cannot be evaluated does not hit."""
        results: Dict[str, bool] = {}
        for name, rule in rule_set.attachment_rules.items():
            results[name] = self._safe(name, self.evaluate, rule, records)
        for name, rule in rule_set.eval_rules.items():
            results[name] = self._safe(name, self.evaluate_eval_rule, rule, records)
        return results

    def _safe(self, name, func, rule, records) -> bool:
        try:
            return func(rule, records)
        except EvaluationError as e:
            self.logger.error(f"Attachment rule {name} failed: {e}")
            return False
