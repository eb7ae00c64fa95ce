# ============================================================================
# attachment_detail/rules/compiler.py - Attachment rule definitions
# ============================================================================
"""Compile ``key op value`` rule definitions into immutable clause sets."""

import logging
import re
from typing import List, Optional, Tuple

from ..config import config
from ..errors import RuleSyntaxError
from ..models import Clause, CompiledRule, Operator, Target


class RuleCompiler:
    """Compiles attachment rule definitions.

    A definition is a whitespace separated list of clauses such as
    ``name =~ /\\.s?html?$/i type != text/html``. Text that is not part of a
    clause is ignored with a warning, or rejected when ``strict`` is set.
    """

    CLAUSE_PATTERN = re.compile(
        r"""
        \b(?P<key>[A-Za-z_]\w*)\b \s*
        (?P<op>[=!][~=]) \s*
        (?P<value>
            (?: /.*?/
              | m\{.*?\} | m\(.*?\) | m\[.*?\] | m<.*?>
              | m(?P<delim>\W).*?(?P=delim)
            )[imsx]*
          | (?P<quote>["']).*?(?P=quote)
          | [^\s"']+
        )
        (?=\s|$)
        """,
        re.VERBOSE
    )

    SLASH_REGEX = re.compile(r'^/(?P<body>.*)/(?P<flags>[imsx]*)$', re.DOTALL)
    BRACKET_REGEX = re.compile(r'^m(?P<open>[{(\[<])(?P<body>.*)(?P<close>[})\]>])(?P<flags>[imsx]*)$', re.DOTALL)
    DELIMITED_REGEX = re.compile(r'^m(?P<delim>\W)(?P<body>.*)(?P=delim)(?P<flags>[imsx]*)$', re.DOTALL)

    BRACKET_PAIRS = {'{': '}', '(': ')', '[': ']', '<': '>'}
    FLAG_MAP = {
        'i': re.IGNORECASE,
        'm': re.MULTILINE,
        's': re.DOTALL,
        'x': re.VERBOSE,
    }

    def __init__(self, logger: logging.Logger, strict: Optional[bool] = None):
        self.logger = logger
        self.strict = config.STRICT_RULES if strict is None else strict

    def compile(self, name: str, definition: str) -> CompiledRule:
        """Compile one rule definition or raise RuleSyntaxError."""
        clauses: List[Clause] = []
        leftover: List[str] = []
        pos = 0

        for match in self.CLAUSE_PATTERN.finditer(definition):
            leftover.append(definition[pos:match.start()])
            pos = match.end()
            clauses.append(self._compile_clause(name, match))
        leftover.append(definition[pos:])

        garbage = ' '.join(fragment.strip() for fragment in leftover if fragment.strip())
        if not clauses:
            raise RuleSyntaxError("no valid 'key op value' clause", name, definition.strip() or None)
        if garbage:
            if self.strict:
                raise RuleSyntaxError("unrecognized text in rule definition", name, garbage)
            self.logger.warning(f"Ignoring unrecognized text in attachment rule {name}: '{garbage}'")

        # A repeated key replaces the earlier clause for that key
        last_index = {clause.target: index for index, clause in enumerate(clauses)}
        for index, clause in enumerate(clauses):
            if last_index[clause.target] != index:
                self.logger.debug(
                    f"Clause ({clause.describe()}) in {name} replaced by a later {clause.target.value} clause"
                )
        clauses = [clause for index, clause in enumerate(clauses) if last_index[clause.target] == index]

        self.logger.debug(f"Added attachment rule {name} with {len(clauses)} clauses")
        return CompiledRule(name=name, clauses=tuple(clauses))

    # ------------------------------------------------------------------
    def _compile_clause(self, rule_name: str, match: 're.Match[str]') -> Clause:
        key = match.group('key')
        try:
            target = Target(key)
        except ValueError:
            raise RuleSyntaxError(f"unknown key '{key}'", rule_name, match.group(0))

        operator = Operator(match.group('op'))
        value = match.group('value')

        if operator.is_regex:
            pattern = self._compile_regex(rule_name, value)
        else:
            pattern = self._strip_quotes(value)

        clause = Clause(target=target, operator=operator, pattern=pattern, source=match.group(0))
        self.logger.debug(f"Adding ({clause.describe()}) to {rule_name}")
        return clause

    def _compile_regex(self, rule_name: str, value: str) -> 're.Pattern[str]':
        body, flags = self._split_regex(rule_name, value)
        try:
            return re.compile(body, flags)
        except re.error as e:
            raise RuleSyntaxError(f"invalid regular expression: {e}", rule_name, value)

    def _split_regex(self, rule_name: str, value: str) -> Tuple[str, int]:
        """Remove delimiters and translate trailing modifiers into re flags."""
        match = self.SLASH_REGEX.match(value)
        if not match:
            match = self.BRACKET_REGEX.match(value)
            if match and self.BRACKET_PAIRS[match.group('open')] != match.group('close'):
                match = None
        if not match:
            match = self.DELIMITED_REGEX.match(value)
        if not match:
            unquoted = self._strip_quotes(value)
            if unquoted == value:
                raise RuleSyntaxError("missing regular expression delimiters", rule_name, value)
            return unquoted, 0

        flags = 0
        for flag in match.group('flags'):
            flags |= self.FLAG_MAP[flag]
        return match.group('body'), flags

    @staticmethod
    def _strip_quotes(value: str) -> str:
        if len(value) >= 2 and value[0] == value[-1] and value[0] in '"\'':
            return value[1:-1]
        return value
