# ============================================================================
# attachment_detail/attachment_extractor.py - Attachment records from MIME parts
# ============================================================================

import logging
import re
from email.message import Message
from typing import Dict, Iterable, Iterator, Optional

from .config import config
from .errors import HeaderParseError
from .header_params import HeaderParamParser
from .interfaces import MimePart
from .models import AttachmentContext, AttachmentRecord


class EmailMessagePart(MimePart):
    """MimePart view of an ``email.message.Message`` node using its raw header values."""

    def __init__(self, message: Message):
        self.message = message
        self._headers: Dict[str, str] = {}
        for name, value in message.raw_items():
            self._headers.setdefault(name.lower(), self._to_text(value))

    def get_header(self, name: str) -> Optional[str]:
        return self._headers.get(name.lower())

    @staticmethod
    def _to_text(value) -> str:
        value = str(value)
        try:
            value.encode('utf-8')
            return value
        except UnicodeEncodeError:
            # 8-bit header bytes come back from BytesParser as surrogate escapes
            data = value.encode('utf-8', 'surrogateescape')
            try:
                return data.decode('utf-8')
            except UnicodeDecodeError:
                return data.decode('latin-1')


class RawMimePart(MimePart):
    """MimePart backed by a plain mapping of header names to raw values."""

    def __init__(self, headers: Optional[Dict[str, str]] = None):
        self._headers = {name.lower(): value for name, value in (headers or {}).items()}

    def get_header(self, name: str) -> Optional[str]:
        return self._headers.get(name.lower())


def iter_message_parts(message: Message) -> Iterator[MimePart]:
    """Yield every part of the message in document order, containers included."""
    for part in message.walk():
        yield EmailMessagePart(part)


class AttachmentExtractor:
    """Builds attachment records and message aggregates from a message's MIME parts."""

    EXTENSION_PATTERN = re.compile(r'\.(\w+)$')
    ENCODING_PATTERN = re.compile(
        r'^(?:' + '|'.join(re.escape(e) for e in config.RECOGNIZED_ENCODINGS) + r'|x-.+)$',
        re.IGNORECASE
    )

    def __init__(self, logger: logging.Logger, header_parser: Optional[HeaderParamParser] = None):
        self.logger = logger
        self.header_parser = header_parser or HeaderParamParser(logger)
        self.html_pattern = re.compile(config.HTML_SUFFIX_PATTERN, re.IGNORECASE)

    def extract(self, parts: Iterable[MimePart], context: Optional[AttachmentContext] = None) -> AttachmentContext:
        """Append a record for every qualifying part to the context and return it."""
        if context is None:
            context = AttachmentContext()

        for index, part in enumerate(parts):
            record = self._build_record(part, index)
            if record is not None:
                context.add(record)

        self.logger.info(f"Found {len(context.records)} attachments")
        return context

    def extract_message(self, message: Message, context: Optional[AttachmentContext] = None) -> AttachmentContext:
        return self.extract(iter_message_parts(message), context)

    # ------------------------------------------------------------------
    def _build_record(self, part: MimePart, index: int) -> Optional[AttachmentRecord]:
        name = None
        disposition = ''
        mime_type = ''
        charset = ''
        mime_errors = 0

        cd_value = part.get_header('content-disposition')
        if cd_value is not None and cd_value.strip():
            try:
                parsed = self.header_parser.parse_content_disposition(cd_value)
                disposition = parsed.value
                name = parsed.params.get('filename')
            except HeaderParseError as e:
                self.logger.debug(f"Content-Disposition parse error in part {index}: {e}")
                mime_errors += 1

        ct_value = part.get_header('content-type')
        if ct_value is not None and ct_value.strip():
            try:
                parsed = self.header_parser.parse_content_type(ct_value)
                mime_type = parsed.value
                charset = parsed.params.get('charset', '')
                if name is None:
                    name = parsed.params.get('name')
            except HeaderParseError as e:
                self.logger.debug(f"Content-Type parse error in part {index}: {e}")
                mime_errors += 1

        name = name or ''
        if not name and disposition != 'attachment':
            return None

        self.logger.debug(
            f"Found attachment name={name} type={mime_type} charset={charset} disposition={disposition}"
        )

        encoding = part.get_header('content-transfer-encoding')
        if encoding is not None:
            encoding = encoding.rstrip('\r\n')
            if encoding and not self.ENCODING_PATTERN.match(encoding):
                self.logger.debug(f"Invalid Content-Transfer-Encoding in part {index}: {encoding}")
                mime_errors += 1
        else:
            encoding = ''

        return AttachmentRecord(
            name=name,
            extension=self._extension(name),
            mime_type=mime_type,
            effective_type='text/html' if self.html_pattern.search(name) else mime_type,
            charset=charset,
            disposition=disposition,
            encoding=encoding,
            mime_errors=mime_errors,
            part_index=index,
        )

    def _extension(self, name: str) -> str:
        match = self.EXTENSION_PATTERN.search(name)
        return match.group(1).lower() if match else ''
