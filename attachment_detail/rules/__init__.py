from .compiler import RuleCompiler
from .evaluator import RuleEvaluator, check_attachment_count, check_attachment_mime_error, clause_matches
from .loader import RejectedRule, RuleSet, RuleSetLoader

__all__ = [
    'RuleCompiler',
    'RuleEvaluator',
    'RuleSet',
    'RuleSetLoader',
    'RejectedRule',
    'check_attachment_count',
    'check_attachment_mime_error',
    'clause_matches',
]
