# ============================================================================
# attachment_detail/parsers/msg_parser.py
# ============================================================================

import email.parser
import email.policy
import email.utils
import logging
import os
import tempfile
import uuid
from email.message import Message
from typing import List, Optional, Tuple

from ..interfaces import EmailFormatParser

try:
    import extract_msg
    MSG_SUPPORT = True
except ImportError:
    MSG_SUPPORT = False


class MsgFormatParser(EmailFormatParser):
    """Parser for Microsoft Outlook MSG files.

    Only the attachment headers matter downstream, so the MSG file is
    rebuilt as a multipart/mixed skeleton: one empty part per attachment
    carrying its Content-Type and Content-Disposition filename.
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.parser = email.parser.Parser(policy=email.policy.default)

    def can_parse(self, data: bytes, filename: Optional[str] = None) -> Tuple[bool, float]:
        """Check if this is a MSG file."""
        # Check magic bytes for OLE/MSG format
        if data.startswith(b'\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1'):
            return True, 0.9

        # Check filename
        if filename and filename.lower().endswith('.msg'):
            return True, 0.7

        return False, 0.0

    def parse(self, data: bytes, filename: Optional[str] = None) -> Optional[Message]:
        """Parse MSG file data."""
        if not MSG_SUPPORT:
            self.logger.error("MSG support requires extract_msg")
            return None

        return self._parse_msg_file(data)

    def _parse_msg_file(self, data: bytes) -> Optional[Message]:
        tmp_file_path = None
        try:
            self.logger.info("Parsing MSG file using extract_msg")

            # Write to temporary file for extract_msg
            with tempfile.NamedTemporaryFile(suffix='.msg', delete=False) as tmp_file:
                tmp_file.write(data)
                tmp_file.flush()
                tmp_file_path = tmp_file.name

            msg = extract_msg.Message(tmp_file_path)
            try:
                email_content = self._convert_msg_to_email_format(msg)
            finally:
                msg.close()

            return self.parser.parsestr(email_content)

        except Exception as e:
            self.logger.error(f"Failed to parse MSG file: {e}")
            return None
        finally:
            if tmp_file_path and os.path.exists(tmp_file_path):
                os.unlink(tmp_file_path)

    def _convert_msg_to_email_format(self, msg) -> str:
        boundary = f"----=_MSG_{uuid.uuid4().hex}"
        lines = [
            f"From: {self._header_text(getattr(msg, 'sender', ''))}",
            f"To: {self._header_text(getattr(msg, 'to', ''))}",
            f"Subject: {self._header_text(getattr(msg, 'subject', ''))}",
            "MIME-Version: 1.0",
            f"Content-Type: multipart/mixed; boundary=\"{boundary}\"",
            "",
            f"--{boundary}",
            "Content-Type: text/plain; charset=utf-8",
            "",
            "",
        ]

        attachments = getattr(msg, 'attachments', None) or []
        self.logger.info(f"Found {len(attachments)} attachments in MSG file")
        for i, attachment in enumerate(attachments):
            self._add_attachment(lines, attachment, i, boundary)

        lines.append(f"--{boundary}--")
        lines.append("")
        return "\n".join(lines)

    def _add_attachment(self, lines: List[str], attachment, index: int, boundary: str) -> None:
        filename = (getattr(attachment, 'longFilename', None) or
                    getattr(attachment, 'shortFilename', None) or '')
        mime_type = getattr(attachment, 'mimetype', None) or 'application/octet-stream'
        self.logger.debug(f"MSG attachment {index}: filename={filename} type={mime_type}")

        lines.append(f"--{boundary}")
        if filename:
            lines.append(f"Content-Type: {mime_type}; {self._format_param('name', filename)}")
            lines.append(f"Content-Disposition: attachment; {self._format_param('filename', filename)}")
        else:
            lines.append(f"Content-Type: {mime_type}")
            lines.append("Content-Disposition: attachment")
        lines.append("")
        lines.append("")

    @staticmethod
    def _header_text(value) -> str:
        return ' '.join(str(value or '').split())

    @staticmethod
    def _format_param(param: str, value: str) -> str:
        try:
            value.encode('ascii')
            return f'{param}="{email.utils.quote(value)}"'
        except UnicodeEncodeError:
            return f"{param}*={email.utils.encode_rfc2231(value, 'utf-8')}"
