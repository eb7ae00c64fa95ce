# ============================================================================
# attachment_detail/header_params.py - Content-Type / Content-Disposition parsing
# ============================================================================
"""Structured MIME header parsing with RFC 2231 parameter decoding."""

import codecs
import logging
import re
import urllib.parse
from email import errors as email_errors
from email.header import decode_header
from typing import Dict, List, Optional, Tuple

from .config import config
from .errors import HeaderParseError
from .models import ParsedHeader


class HeaderParamParser:
    """Split a structured header into its primary token and decoded parameters.

    Parsing is lenient about parameter syntax: parameters that cannot be read
    are skipped. Only a missing primary token, a broken RFC 2231 continuation
    or an unknown RFC 2231 charset raise HeaderParseError.
    """

    TOKEN = r'[^\x00-\x20\x7f()<>@,;:\\"/\[\]?=]+'

    _CONTENT_TYPE = re.compile(rf'({TOKEN})[ \t]*/[ \t]*({TOKEN})')
    _DISPOSITION = re.compile(rf'({TOKEN})')
    _PARAM_NAME = re.compile(rf'({TOKEN})[ \t]*=[ \t]*')
    _QUOTED = re.compile(r'"((?:[^"\\]|\\.)*)"', re.DOTALL)
    # Bare values may contain spaces, but stop before a word that starts a new "name=".
    _BARE = re.compile(rf'[^;\s]+(?:[ \t]+(?!{TOKEN}[ \t]*=)[^;\s]+)*')
    _TRAILING_COMMENT = re.compile(r'[ \t]+\([^()]*\)$')
    _SECTION = re.compile(r'^(?P<base>[^*]+)(?:\*(?P<index>\d+))?(?P<extended>\*)?$')
    _FOLD = re.compile(r'\r?\n(?=[ \t])')
    _ENCODED_WORD = re.compile(r'=\?[^?\s]+\?[BbQq]\?[^?\s]*\?=')

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    # ------------------------------------------------------------------
    def parse_content_type(self, header_value: str) -> ParsedHeader:
        """Parse a Content-Type value into lower-cased ``type/subtype`` and parameters."""
        text = self._unfold(header_value)
        pos = self._skip_cfws(text, 0)
        match = self._CONTENT_TYPE.match(text, pos)
        if not match:
            raise HeaderParseError(f"invalid Content-Type '{text.strip()}'", header_value)
        self._check_primary_end(text, match.end(), 'Content-Type', header_value)
        mime_type = f"{match.group(1)}/{match.group(2)}".lower()
        return ParsedHeader(mime_type, self._parse_params(text, match.end(), header_value))

    def parse_content_disposition(self, header_value: str) -> ParsedHeader:
        """Parse a Content-Disposition value into its lower-cased type and parameters."""
        text = self._unfold(header_value)
        pos = self._skip_cfws(text, 0)
        match = self._DISPOSITION.match(text, pos)
        if not match:
            raise HeaderParseError(f"invalid Content-Disposition '{text.strip()}'", header_value)
        self._check_primary_end(text, match.end(), 'Content-Disposition', header_value)
        return ParsedHeader(match.group(1).lower(), self._parse_params(text, match.end(), header_value))

    def parse(self, header_name: str, header_value: str) -> ParsedHeader:
        if header_name.lower() == 'content-type':
            return self.parse_content_type(header_value)
        return self.parse_content_disposition(header_value)

    # ------------------------------------------------------------------
    def _unfold(self, value: str) -> str:
        value = self._FOLD.sub('', value)
        return value.replace('\r', ' ').replace('\n', ' ').strip()

    def _check_primary_end(self, text: str, pos: int, header_name: str, header_value: str) -> None:
        # "filename=x.pdf" with no disposition type reads as a parameter, not a token
        pos = self._skip_cfws(text, pos)
        if text[pos:pos + 1] == '=':
            raise HeaderParseError(f"{header_name} has no primary value", header_value)

    def _skip_cfws(self, text: str, pos: int) -> int:
        """Skip whitespace and (possibly nested) comments starting at pos."""
        length = len(text)
        while pos < length:
            char = text[pos]
            if char in ' \t':
                pos += 1
            elif char == '(':
                depth = 0
                while pos < length:
                    char = text[pos]
                    if char == '\\':
                        pos += 2
                        continue
                    if char == '(':
                        depth += 1
                    elif char == ')':
                        depth -= 1
                        if depth == 0:
                            pos += 1
                            break
                    pos += 1
            else:
                break
        return min(pos, length)

    def _parse_params(self, text: str, pos: int, header_value: str) -> Dict[str, str]:
        raw: List[Tuple[str, str]] = []
        length = len(text)

        while True:
            pos = self._skip_cfws(text, pos)
            while pos < length and text[pos] == ';':
                pos = self._skip_cfws(text, pos + 1)
            if pos >= length:
                break

            name_match = self._PARAM_NAME.match(text, pos)
            if not name_match:
                end = text.find(';', pos)
                end = length if end == -1 else end
                self.logger.debug(f"Skipping malformed parameter '{text[pos:end].strip()}'")
                pos = end
                continue

            name = name_match.group(1).lower()
            pos = self._skip_cfws(text, name_match.end())

            if pos < length and text[pos] == '"':
                quoted = self._QUOTED.match(text, pos)
                if not quoted:
                    self.logger.debug(f"Skipping parameter {name} with unterminated quoted string")
                    break
                value = re.sub(r'\\(.)', r'\1', quoted.group(1), flags=re.DOTALL)
                pos = quoted.end()
            else:
                bare = self._BARE.match(text, pos)
                if bare:
                    value = self._TRAILING_COMMENT.sub('', bare.group(0))
                    pos = bare.end()
                else:
                    value = ''

            raw.append((name, value))

        return self._combine(raw, header_value)

    # ------------------------------------------------------------------
    def _combine(self, raw: List[Tuple[str, str]], header_value: str) -> Dict[str, str]:
        """Merge plain, RFC 2231 extended and continued parameters into one mapping."""
        plain: Dict[str, str] = {}
        extended: Dict[str, str] = {}
        sections: Dict[str, Dict[int, Tuple[str, bool]]] = {}

        for name, value in raw:
            match = self._SECTION.match(name)
            if not match:
                self.logger.debug(f"Skipping parameter with malformed name '{name}'")
                continue
            base = match.group('base')
            if match.group('index') is None:
                if match.group('extended'):
                    extended[base] = self._decode_extended(value, header_value)
                else:
                    plain[base] = value
                continue

            index = int(match.group('index'))
            bucket = sections.setdefault(base, {})
            if index in bucket:
                raise HeaderParseError(
                    f"parameter {base} repeats RFC 2231 section {index}", header_value)
            bucket[index] = (value, bool(match.group('extended')))

        params = dict(plain)
        params.update(extended)
        for base, bucket in sections.items():
            params[base] = self._join_sections(base, bucket, header_value)

        if config.DECODE_RFC2047_PARAMS:
            for name, value in list(params.items()):
                if self._ENCODED_WORD.search(value):
                    params[name] = self._decode_encoded_words(value)
        return params

    def _join_sections(self, base: str, bucket: Dict[int, Tuple[str, bool]], header_value: str) -> str:
        indices = sorted(bucket)
        if indices != list(range(len(indices))):
            raise HeaderParseError(
                f"parameter {base} has a broken RFC 2231 continuation (sections {indices})", header_value)

        if not any(is_extended for _, is_extended in bucket.values()):
            return ''.join(bucket[index][0] for index in indices)

        charset = None
        value, is_extended = bucket[0]
        if is_extended:
            charset, value = self._split_charset(value)
        codec_name = self._lookup_charset(charset, header_value)

        chunks: List[bytes] = []
        for index in indices:
            if index:
                value, is_extended = bucket[index]
            if is_extended:
                chunks.append(urllib.parse.unquote_to_bytes(value))
            else:
                chunks.append(value.encode(codec_name, errors='replace'))
        return b''.join(chunks).decode(codec_name, errors='replace')

    def _decode_extended(self, value: str, header_value: str) -> str:
        charset, value = self._split_charset(value)
        codec_name = self._lookup_charset(charset, header_value)
        return urllib.parse.unquote_to_bytes(value).decode(codec_name, errors='replace')

    def _split_charset(self, value: str) -> Tuple[Optional[str], str]:
        """Split ``charset'language'text``; text without the marker has no charset."""
        charset, sep, rest = value.partition("'")
        if not sep:
            return None, value
        _language, sep, text = rest.partition("'")
        if not sep:
            return None, value
        return charset or None, text

    def _lookup_charset(self, charset: Optional[str], header_value: str) -> str:
        if not charset:
            return 'latin-1'
        try:
            return codecs.lookup(charset).name
        except LookupError:
            raise HeaderParseError(f"unknown RFC 2231 charset '{charset}'", header_value)

    def _decode_encoded_words(self, value: str) -> str:
        """Decode each encoded word on its own; text around them is left as is."""
        parts = []
        pos = 0
        for match in self._ENCODED_WORD.finditer(value):
            between = value[pos:match.start()]
            # whitespace between adjacent encoded words is dropped
            if pos == 0 or between.strip():
                parts.append(between)
            parts.append(self._decode_word(match.group(0)))
            pos = match.end()
        parts.append(value[pos:])
        return ''.join(parts)

    def _decode_word(self, word: str) -> str:
        try:
            decoded = []
            for text, charset in decode_header(word):
                if isinstance(text, str):
                    decoded.append(text)
                else:
                    decoded.append(text.decode(charset or 'ascii', errors='replace'))
            return ''.join(decoded)
        except (LookupError, ValueError, email_errors.HeaderParseError) as e:
            self.logger.debug(f"Leaving encoded word {word} undecoded: {e}")
            return word
