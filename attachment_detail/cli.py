# ============================================================================
# attachment_detail/cli.py - CLI
# ============================================================================

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import create_attachment_scanner
from .config import config
from .errors import ErrorHandler


def main(argv: Optional[List[str]] = None) -> int:
    """Command line interface for attachment detail scanning."""
    parser = argparse.ArgumentParser(
        description="Inspect email attachments and evaluate attachment rules",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # List attachment details and tags:
  python -m attachment_detail message.eml

  # Evaluate a rule file:
  python -m attachment_detail message.eml --rules attachment.cf

  # Print tags as report headers:
  python -m attachment_detail message.eml --headers

Rule file format:
  attachment INVALID_HTML_TYPE  name =~ /\\.s?html?$/i type != text/html
  body       __ATTACH_SINGLE    eval:check_attachment_count(1,1)
  body       __ATTACH_MIME_ERR  eval:check_attachment_mime_error()
        """
    )
    parser.add_argument("files", type=Path, nargs="+", help="Input email files (.eml, .msg)")
    parser.add_argument("--rules", type=Path, help="Rule definition file")
    parser.add_argument("--strict-rules", action="store_true",
                        help="Reject rules containing text outside 'key op value' clauses")
    parser.add_argument("--log-level", type=str, default=config.DEFAULT_LOG_LEVEL,
                        choices=config.VALID_LOG_LEVELS,
                        help="Set logging level")
    parser.add_argument("--output", type=Path, help="Output JSON file")
    parser.add_argument("--headers", action="store_true",
                        help="Print attachment tags as X-Spam-Attachment-* headers instead of JSON")
    args = parser.parse_args(argv)

    # Set log level
    log_level = getattr(logging, args.log_level.upper())

    scanner = create_attachment_scanner(
        log_level=log_level,
        rules_path=args.rules,
        strict_rules=True if args.strict_rules else None,
    )

    rule_errors = [
        ErrorHandler.handle_rule_error(rejected.name, rejected.reason, f"{args.rules}:{rejected.line_number}")
        for rejected in scanner.rule_set.errors
    ]

    results: Dict[str, Any] = {}
    exit_code = 0
    for path in args.files:
        try:
            result = scanner.scan(path.read_bytes(), path.name)
        except Exception as e:
            result = ErrorHandler.handle_unexpected_error(str(e), str(path))
        if result.get("status") != "success":
            exit_code = 1
        results[str(path)] = result

    if args.headers:
        for name, result in results.items():
            print(_format_headers(name, result))
        return exit_code

    output = {"results": results, "rule_errors": rule_errors}
    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            json.dump(output, f, indent=2, default=str)
        print(f"Results saved to: {args.output}")
    else:
        print(json.dumps(output, indent=2, default=str))

    return exit_code


def _format_headers(name: str, result: Dict[str, Any]) -> str:
    """Render the attachment tags the way a report header template would."""
    if result.get("status") != "success":
        return f"{name}: {result['error']['message']}"
    tags = result["tags"]
    lines = [
        f"==> {name}",
        f"X-Spam-Attachment-Count: {tags['ATTACHMENT_COUNT']}",
        f"X-Spam-Attachment-Types: {tags['ATTACHMENT_TYPES']}",
        f"X-Spam-Attachment-Exts: {tags['ATTACHMENT_EXTS']}",
    ]
    if result["rule_hits"]:
        lines.append(f"X-Spam-Attachment-Rules: {','.join(result['rule_hits'])}")
    return "\n".join(lines)


if __name__ == "__main__":  # pragma: no cover
    import sys
    sys.exit(main())
