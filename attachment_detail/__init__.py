# ============================================================================
# attachment_detail/__init__.py - Factory and DI setup
# ============================================================================

import logging
import sys
from pathlib import Path
from typing import Optional, Union

from .attachment_extractor import AttachmentExtractor, EmailMessagePart, RawMimePart, iter_message_parts
from .errors import EvaluationError, HeaderParseError, RuleSyntaxError
from .header_params import HeaderParamParser
from .models import AttachmentContext, AttachmentRecord, CompiledRule, MessageAggregate
from .parsers.eml_parser import EmlFormatParser
from .parsers.msg_parser import MsgFormatParser
from .rules import RuleCompiler, RuleEvaluator, RuleSet, RuleSetLoader
from .scanner import AttachmentScanner

__version__ = "0.51.0"


def create_attachment_scanner(
    log_level: int = logging.INFO,
    rules_path: Optional[Union[str, Path]] = None,
    rules_text: Optional[str] = None,
    strict_rules: Optional[bool] = None,
) -> AttachmentScanner:
    """Factory function to create a fully configured AttachmentScanner."""
    # Setup logging
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logger = logging.getLogger(__name__)

    # Create dependencies
    header_parser = HeaderParamParser(logger)
    extractor = AttachmentExtractor(logger, header_parser)
    evaluator = RuleEvaluator(logger)
    loader = RuleSetLoader(logger, RuleCompiler(logger, strict=strict_rules))

    # Rules are compiled once here and shared read-only by every scan
    if rules_path:
        rule_set = loader.load_file(rules_path)
    else:
        rule_set = loader.load_text(rules_text or '')

    # Create parsers in order of preference
    parsers = [
        MsgFormatParser(logger),
        EmlFormatParser(logger),  # EML last as it's the fallback
    ]

    return AttachmentScanner(parsers, extractor, evaluator, rule_set, logger)


__all__ = [
    'create_attachment_scanner',
    'AttachmentScanner',
    'AttachmentExtractor',
    'AttachmentContext',
    'AttachmentRecord',
    'MessageAggregate',
    'CompiledRule',
    'EmailMessagePart',
    'RawMimePart',
    'iter_message_parts',
    'HeaderParamParser',
    'RuleCompiler',
    'RuleEvaluator',
    'RuleSet',
    'RuleSetLoader',
    'HeaderParseError',
    'RuleSyntaxError',
    'EvaluationError',
]
