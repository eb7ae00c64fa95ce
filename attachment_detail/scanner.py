# ============================================================================
# attachment_detail/scanner.py - Main entry point: message in, rule hits out
# ============================================================================

from typing import Any, Dict, Iterable, List, Optional, Union
import logging
from email.message import Message

from .attachment_extractor import AttachmentExtractor, iter_message_parts
from .config import config
from .errors import ErrorHandler
from .interfaces import EmailFormatParser, MimePart
from .parsers.msg_parser import MSG_SUPPORT, MsgFormatParser
from .rules.evaluator import RuleEvaluator, check_attachment_mime_error
from .rules.loader import RuleSet


class AttachmentScanner:
    """Loads a message, extracts attachment details and evaluates attachment rules."""

    def __init__(self, parsers: List[EmailFormatParser], extractor: AttachmentExtractor,
                 evaluator: RuleEvaluator, rule_set: Optional[RuleSet], logger: logging.Logger):
        self.parsers = parsers
        self.extractor = extractor
        self.evaluator = evaluator
        self.rule_set = rule_set or RuleSet()
        self.logger = logger

    def scan(self, input_data: Union[str, bytes], filename: Optional[str] = None) -> Dict[str, Any]:
        """Scan raw message data.

        Args:
            input_data: Email data as string or bytes
            filename: Optional filename used for format detection and reporting

        Returns:
            Dictionary with attachment records, tags and rule results, or an
            ErrorHandler response when the message cannot be loaded
        """
        source = filename or '<message>'
        if isinstance(input_data, str):
            data_bytes = input_data.encode('utf-8')
        else:
            data_bytes = input_data

        max_size = config.MAX_FILE_SIZE_MB * 1024 * 1024
        if len(data_bytes) > max_size:
            return ErrorHandler.handle_file_size_error(len(data_bytes), max_size, source)

        # Find the best parser
        best_parser = None
        best_confidence = 0.0
        for parser in self.parsers:
            can_parse, confidence = parser.can_parse(data_bytes, filename)
            if can_parse and confidence > best_confidence:
                best_parser = parser
                best_confidence = confidence

        if not best_parser:
            return ErrorHandler.handle_unsupported_format_error("No suitable parser found", source)
        if isinstance(best_parser, MsgFormatParser) and not MSG_SUPPORT:
            return ErrorHandler.handle_unsupported_format_error("MSG support requires extract_msg", source)

        message = best_parser.parse(data_bytes, filename)
        if message is None:
            return ErrorHandler.handle_parsing_error(
                f"{type(best_parser).__name__} failed to extract message", source)

        result = {
            "status": "success",
            "detected_format": type(best_parser).__name__.replace('FormatParser', '').lower(),
            "format_confidence": best_confidence,
        }
        result.update(self.scan_message(message))
        return result

    def scan_message(self, message: Message) -> Dict[str, Any]:
        """Scan an already parsed ``email.message.Message``."""
        return self.scan_parts(iter_message_parts(message))

    def scan_parts(self, parts: Iterable[MimePart]) -> Dict[str, Any]:
        """Extract attachments from the parts, then evaluate every loaded rule."""
        context = self.extractor.extract(parts)
        rule_results = self.evaluator.evaluate_all(self.rule_set, context.records)
        rule_hits = [name for name, hit in rule_results.items() if hit]
        if rule_hits:
            self.logger.info(f"Attachment rules hit: {', '.join(rule_hits)}")

        return {
            "status": "success",
            "attachments": [record.to_dict() for record in context.records],
            "tags": context.aggregate.tags(),
            "rule_hits": rule_hits,
            "rule_results": rule_results,
            "mime_error": check_attachment_mime_error(context.records),
        }
