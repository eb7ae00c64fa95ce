"""Exceptions and error responses for attachment detail."""

import logging
from datetime import datetime, timezone
from typing import Dict, Any, Optional


class AttachmentDetailError(Exception):
    """Base class for all attachment detail errors."""


class HeaderParseError(AttachmentDetailError):
    """A structured MIME header could not be tokenized."""

    def __init__(self, message: str, header_value: Optional[str] = None):
        super().__init__(message)
        self.header_value = header_value


class RuleSyntaxError(AttachmentDetailError):
    """An attachment rule definition is malformed."""

    def __init__(self, message: str, rule_name: str, fragment: Optional[str] = None):
        super().__init__(message)
        self.rule_name = rule_name
        self.fragment = fragment

    def __str__(self) -> str:
        text = f"rule {self.rule_name}: {self.args[0]}"
        if self.fragment:
            text += f" (near '{self.fragment}')"
        return text


class EvaluationError(AttachmentDetailError):
    """Rule evaluation failed. Not raised for well-formed rules and records."""


class ErrorHandler:
    """Centralized error handling for the attachment scanner."""

    @staticmethod
    def handle_parsing_error(error_message: str, source: str) -> Dict[str, Any]:
        """Handle message loading errors."""
        return ErrorHandler._build_error_response(
            code="PARSING_ERROR",
            message="Failed to parse email content",
            details=error_message,
            source=source,
            log_level=logging.ERROR
        )

    @staticmethod
    def handle_rule_error(rule_name: str, reason: str, source: str) -> Dict[str, Any]:
        """Handle a rejected attachment rule."""
        return ErrorHandler._build_error_response(
            code="RULE_SYNTAX_ERROR",
            message=f"Attachment rule {rule_name} was rejected",
            details=reason,
            source=source,
            log_level=logging.ERROR
        )

    @staticmethod
    def handle_file_size_error(file_size: int, max_size: int, source: str) -> Dict[str, Any]:
        """Handle file size limit errors."""
        return ErrorHandler._build_error_response(
            code="FILE_TOO_LARGE",
            message="Email file exceeds size limit",
            details=f"File size: {file_size} bytes, Maximum allowed: {max_size} bytes",
            source=source,
            log_level=logging.WARNING
        )

    @staticmethod
    def handle_unsupported_format_error(format_info: str, source: str) -> Dict[str, Any]:
        """Handle unsupported file format errors."""
        return ErrorHandler._build_error_response(
            code="UNSUPPORTED_FORMAT",
            message="Email format is not supported",
            details=format_info,
            source=source,
            log_level=logging.WARNING
        )

    @staticmethod
    def handle_unexpected_error(error_message: str, source: str) -> Dict[str, Any]:
        """Handle unexpected internal errors."""
        return ErrorHandler._build_error_response(
            code="INTERNAL_ERROR",
            message="An unexpected error occurred during processing",
            details=f"Internal error: {error_message}",
            source=source,
            log_level=logging.ERROR
        )

    @staticmethod
    def _build_error_response(
        code: str,
        message: str,
        details: str,
        source: str,
        log_level: int = logging.ERROR
    ) -> Dict[str, Any]:
        """
        Build a standardized error response.

        Args:
            code: Error code for categorization
            message: User-friendly error message
            details: Detailed error information
            source: Name of the message or rules file being processed
            log_level: Logging level for this error

        Returns:
            Standardized error response dictionary
        """
        log_message = f"{source} error [{code}]: {message} - {details}"

        if log_level == logging.WARNING:
            logging.warning(log_message)
        elif log_level == logging.ERROR:
            logging.error(log_message)
        else:
            logging.info(log_message)

        return {
            "success": False,
            "status": "failed",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "source": source,
            "error": {
                "code": code,
                "message": message,
                "details": details
            },
            "troubleshooting": ErrorHandler._get_troubleshooting_info(code)
        }

    @staticmethod
    def _get_troubleshooting_info(error_code: str) -> Dict[str, Any]:
        """Get troubleshooting information for specific error codes."""
        troubleshooting_guide = {
            "PARSING_ERROR": {
                "common_causes": [
                    "Corrupted email file",
                    "Unsupported email format",
                    "Outlook .msg file without extract_msg installed"
                ],
                "solutions": [
                    "Verify the email file is not corrupted",
                    "Ensure the email is in a supported format (.eml, .msg)",
                    "Install extract-msg for .msg support"
                ]
            },
            "RULE_SYNTAX_ERROR": {
                "common_causes": [
                    "Unknown key (valid keys: name, ext, type, disposition, encoding, charset)",
                    "Invalid regular expression",
                    "No 'key op value' clause in the definition"
                ],
                "solutions": [
                    "Write clauses as: key ==|!=|=~|!~ value",
                    "Delimit regular expressions with slashes, e.g. /\\.exe$/i",
                    "Quote literal values that contain spaces"
                ]
            },
            "FILE_TOO_LARGE": {
                "common_causes": [
                    "Email file exceeds size limit",
                    "Large attachments in email"
                ],
                "solutions": [
                    "Raise AD_MAX_FILE_SIZE_MB",
                    "Scan a smaller message"
                ]
            },
            "UNSUPPORTED_FORMAT": {
                "common_causes": [
                    "Email format not recognized",
                    "Incorrect file extension"
                ],
                "solutions": [
                    "Ensure email is in .eml or .msg format",
                    "Check file extension matches content"
                ]
            },
            "INTERNAL_ERROR": {
                "common_causes": [
                    "Unexpected system error",
                    "Code bug or edge case"
                ],
                "solutions": [
                    "Run again with --log-level DEBUG",
                    "Report the message that triggered the error"
                ]
            }
        }

        return troubleshooting_guide.get(error_code, {
            "common_causes": ["Unknown error"],
            "solutions": ["Contact support for assistance"]
        })
