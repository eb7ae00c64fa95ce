# ============================================================================
# attachment_detail/rules/loader.py - Rule file loading
# ============================================================================
"""Load attachment rules and count/MIME-error checks from rule definition lines."""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from ..errors import RuleSyntaxError
from ..models import CompiledRule, EvalRule
from .compiler import RuleCompiler

CHECK_ATTACHMENT_COUNT = "check_attachment_count"
CHECK_ATTACHMENT_MIME_ERROR = "check_attachment_mime_error"


@dataclass
class RejectedRule:
    name: str
    line_number: int
    reason: str


@dataclass
class RuleSet:
    """Rules loaded from configuration. Read-only once loading has finished."""

    attachment_rules: Dict[str, CompiledRule] = field(default_factory=dict)
    eval_rules: Dict[str, EvalRule] = field(default_factory=dict)
    errors: List[RejectedRule] = field(default_factory=list)

    def names(self) -> List[str]:
        return list(self.attachment_rules) + list(self.eval_rules)

    def __len__(self) -> int:
        return len(self.attachment_rules) + len(self.eval_rules)


class RuleSetLoader:
    """Reads ``attachment`` and ``body ... eval:`` lines into a RuleSet.

    A rejected line is logged and recorded in ``RuleSet.errors``; the rest
    of the input is still loaded.
    """

    DIRECTIVE = re.compile(r'^(\S+)(?:\s+(.*))?$')
    NAMED_VALUE = re.compile(r'^(\S+)\s+(.+)$')
    EVAL_CALL = re.compile(r'^(\S+)\s+eval:(\w+)\(\s*(.*?)\s*\)$')
    COMMENT = re.compile(r'(?<!\\)#.*$')

    def __init__(self, logger: logging.Logger, compiler: Optional[RuleCompiler] = None):
        self.logger = logger
        self.compiler = compiler or RuleCompiler(logger)

    def load_file(self, path: Union[str, Path]) -> RuleSet:
        path = Path(path)
        self.logger.info(f"Loading attachment rules from {path}")
        text = path.read_text(encoding='utf-8', errors='replace')
        return self.load_text(text)

    def load_text(self, text: str) -> RuleSet:
        return self.load_lines(text.splitlines())

    def load_lines(self, lines: Iterable[str]) -> RuleSet:
        rule_set = RuleSet()

        for line_number, line in enumerate(lines, start=1):
            line = self.COMMENT.sub('', line).replace('\\#', '#').strip()
            if not line:
                continue

            directive = self.DIRECTIVE.match(line)
            keyword = directive.group(1).lower()
            value = (directive.group(2) or '').strip()

            try:
                if keyword == 'attachment':
                    self._add_attachment_rule(rule_set, value)
                elif keyword == 'body' and 'eval:' in value:
                    self._add_eval_rule(rule_set, value)
                else:
                    self.logger.debug(f"Ignoring line {line_number}: {keyword}")
            except RuleSyntaxError as e:
                self.logger.error(f"Rejected attachment rule on line {line_number}: {e}")
                rule_set.errors.append(RejectedRule(e.rule_name, line_number, str(e)))

        self.logger.info(
            f"Loaded {len(rule_set)} attachment rules ({len(rule_set.errors)} rejected)"
        )
        return rule_set

    # ------------------------------------------------------------------
    def _add_attachment_rule(self, rule_set: RuleSet, value: str) -> None:
        match = self.NAMED_VALUE.match(value)
        if not match:
            raise RuleSyntaxError("missing rule name or definition", value or '<unnamed>')
        name, definition = match.groups()
        rule = self.compiler.compile(name, definition)
        self._register(rule_set, name)
        rule_set.attachment_rules[name] = rule

    def _add_eval_rule(self, rule_set: RuleSet, value: str) -> None:
        match = self.EVAL_CALL.match(value)
        if not match:
            self.logger.debug(f"Ignoring body rule: {value}")
            return
        name, function, raw_args = match.groups()
        if function not in (CHECK_ATTACHMENT_COUNT, CHECK_ATTACHMENT_MIME_ERROR):
            self.logger.debug(f"Ignoring eval rule {name} for {function}")
            return

        args = self._parse_args(name, raw_args)
        if function == CHECK_ATTACHMENT_COUNT and len(args) != 2:
            raise RuleSyntaxError(f"{function} takes (min, max)", name, raw_args)
        if function == CHECK_ATTACHMENT_MIME_ERROR and args:
            raise RuleSyntaxError(f"{function} takes no arguments", name, raw_args)

        self._register(rule_set, name)
        rule_set.eval_rules[name] = EvalRule(name=name, check=function, args=args)
        self.logger.debug(f"Added eval rule {name}: {function}{args}")

    def _parse_args(self, name: str, raw_args: str) -> Tuple[int, ...]:
        if not raw_args:
            return ()
        args = []
        for arg in raw_args.split(','):
            arg = arg.strip().strip('"\'')
            try:
                args.append(int(arg))
            except ValueError:
                raise RuleSyntaxError(f"argument '{arg}' is not an integer", name, raw_args)
        return tuple(args)

    def _register(self, rule_set: RuleSet, name: str) -> None:
        if name in rule_set.attachment_rules or name in rule_set.eval_rules:
            self.logger.warning(f"Attachment rule {name} redefined, keeping the last definition")
            rule_set.attachment_rules.pop(name, None)
            rule_set.eval_rules.pop(name, None)
