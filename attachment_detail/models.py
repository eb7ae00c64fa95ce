from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple, Union

from .config import config


class Target(enum.Enum):
    """Attachment attributes a rule clause can test."""

    NAME = "name"
    EXT = "ext"
    TYPE = "type"
    DISPOSITION = "disposition"
    ENCODING = "encoding"
    CHARSET = "charset"


class Operator(enum.Enum):
    EQ = "=="
    NE = "!="
    MATCH = "=~"
    NOT_MATCH = "!~"

    @property
    def is_regex(self) -> bool:
        return self in (Operator.MATCH, Operator.NOT_MATCH)


@dataclass(frozen=True)
class ParsedHeader:
    """Primary token and decoded parameters of a structured header."""

    value: str
    params: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class AttachmentRecord:
    name: str = ""
    extension: str = ""
    mime_type: str = ""
    effective_type: str = ""
    charset: str = ""
    disposition: str = ""
    encoding: str = ""
    mime_errors: int = 0
    part_index: int = 0

    def value_for(self, target: Target) -> str:
        """Return the value a rule clause on ``target`` is matched against."""
        if target is Target.NAME:
            return self.name
        if target is Target.EXT:
            return self.extension
        if target is Target.TYPE:
            return self.mime_type
        if target is Target.DISPOSITION:
            return self.disposition
        if target is Target.ENCODING:
            return self.encoding
        return self.charset

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'ext': self.extension,
            'type': self.mime_type,
            'effective_type': self.effective_type,
            'charset': self.charset,
            'disposition': self.disposition,
            'encoding': self.encoding,
            'mime_errors': self.mime_errors,
            'part_index': self.part_index,
        }


@dataclass
class MessageAggregate:
    """Per-message attachment statistics, rendered as report tags."""

    attachment_count: int = 0
    attachment_types: List[str] = field(default_factory=list)
    attachment_extensions: List[str] = field(default_factory=list)

    def add(self, record: AttachmentRecord) -> None:
        self.attachment_count += 1
        if record.extension and record.extension not in self.attachment_extensions:
            self.attachment_extensions.append(record.extension)
        if record.mime_type and record.mime_type not in self.attachment_types:
            self.attachment_types.append(record.mime_type)

    def tags(self) -> Dict[str, str]:
        separator = config.TAG_SEPARATOR
        return {
            'ATTACHMENT_COUNT': str(self.attachment_count),
            'ATTACHMENT_TYPES': separator.join(self.attachment_types),
            'ATTACHMENT_EXTS': separator.join(self.attachment_extensions),
        }


@dataclass
class AttachmentContext:
    """Attachment records and aggregate owned by the processing of one message."""

    records: List[AttachmentRecord] = field(default_factory=list)
    aggregate: MessageAggregate = field(default_factory=MessageAggregate)

    def add(self, record: AttachmentRecord) -> None:
        self.records.append(record)
        self.aggregate.add(record)


Pattern = Union[re.Pattern, str]


@dataclass(frozen=True)
class Clause:
    target: Target
    operator: Operator
    pattern: Pattern
    source: str = ""

    def describe(self) -> str:
        pattern = self.pattern.pattern if isinstance(self.pattern, re.Pattern) else self.pattern
        return f"{self.target.value} {self.operator.value} {pattern}"


@dataclass(frozen=True)
class CompiledRule:
    """A named, immutable set of clauses that must all hold for one attachment."""

    name: str
    clauses: Tuple[Clause, ...]


@dataclass(frozen=True)
class EvalRule:
    """A named auxiliary check: attachment count range or MIME error presence."""

    name: str
    check: str
    args: Tuple[int, ...] = ()
