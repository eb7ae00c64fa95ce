import email.parser
import email.policy
import json
import logging

import attachment_detail as ad
from attachment_detail.attachment_extractor import AttachmentExtractor, RawMimePart
from attachment_detail.cli import main
from attachment_detail.config import config
from attachment_detail.interfaces import EmailFormatParser
from attachment_detail.parsers.msg_parser import MsgFormatParser
from attachment_detail.rules import RuleEvaluator

SAMPLE = b"""From: a@example.com
To: b@example.com
Subject: report
Date: Mon, 1 Jan 2024 10:00:00 +0000
MIME-Version: 1.0
Content-Type: multipart/mixed; boundary="b1"

--b1
Content-Type: text/plain

see attached
--b1
Content-Type: image/png; name="chart.png"
Content-Disposition: attachment; filename="chart.png"
Content-Transfer-Encoding: base64

iVBORw0KGgo=
--b1
Content-Type: application/pdf; name="report.pdf"
Content-Disposition: attachment; filename="report.pdf"
Content-Transfer-Encoding: base64

JVBERi0=
--b1--
"""

RULES = r"""
attachment PDF_ATTACHED   ext == pdf
attachment HTML_ATTACHED  ext =~ /^s?html?$/
body __ATTACH_MULTI       eval:check_attachment_count(2,9999)
body __ATTACH_MIME_ERROR  eval:check_attachment_mime_error()
"""


def _scanner(rules_text=RULES):
    return ad.create_attachment_scanner(rules_text=rules_text)


def test_scan_eml_reports_attachments_tags_and_hits():
    result = _scanner().scan(SAMPLE, "sample.eml")
    assert result["status"] == "success"
    assert result["detected_format"] == "eml"
    assert [a["name"] for a in result["attachments"]] == ["chart.png", "report.pdf"]
    assert result["tags"] == {
        "ATTACHMENT_COUNT": "2",
        "ATTACHMENT_TYPES": "image/png,application/pdf",
        "ATTACHMENT_EXTS": "png,pdf",
    }
    assert result["rule_hits"] == ["PDF_ATTACHED", "__ATTACH_MULTI"]
    assert result["rule_results"]["HTML_ATTACHED"] is False
    assert result["mime_error"] is False


def test_parse_simple_eml():
    result = _scanner().scan(b"From: a@b\n\nbody", "sample.eml")
    assert result["status"] == "success"
    assert result["attachments"] == []
    assert result["tags"]["ATTACHMENT_COUNT"] == "0"


def test_scan_accepts_text_input():
    result = _scanner().scan(SAMPLE.decode("ascii"))
    assert result["status"] == "success"
    assert result["tags"]["ATTACHMENT_COUNT"] == "2"


def test_scan_flags_mime_errors():
    data = SAMPLE.replace(b'filename="report.pdf"', b"filename*1*=report.pdf")
    result = _scanner().scan(data, "broken.eml")
    assert result["mime_error"] is True
    assert "__ATTACH_MIME_ERROR" in result["rule_hits"]
    assert result["attachments"][1]["mime_errors"] == 1
    assert result["attachments"][1]["name"] == "report.pdf"


def test_scan_message_and_parts():
    scanner = _scanner()
    message = email.parser.BytesParser(policy=email.policy.default).parsebytes(SAMPLE)
    assert scanner.scan_message(message)["tags"]["ATTACHMENT_EXTS"] == "png,pdf"

    result = scanner.scan_parts([
        RawMimePart({"Content-Type": "text/html", "Content-Disposition": 'attachment; filename="a.htm"'}),
    ])
    assert result["rule_hits"] == ["HTML_ATTACHED"]


def test_oversized_input_is_rejected(monkeypatch):
    monkeypatch.setattr(config, "MAX_FILE_SIZE_MB", 0)
    result = _scanner().scan(SAMPLE, "sample.eml")
    assert result["status"] == "failed"
    assert result["error"]["code"] == "FILE_TOO_LARGE"


def test_msg_without_extract_msg_is_unsupported(monkeypatch):
    monkeypatch.setattr("attachment_detail.scanner.MSG_SUPPORT", False)
    data = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1" + b"\x00" * 64
    result = _scanner().scan(data, "mail.msg")
    assert result["error"]["code"] == "UNSUPPORTED_FORMAT"


def test_config_dict_reflects_settings():
    settings = config.get_config_dict()
    assert settings["max_file_size_mb"] == config.MAX_FILE_SIZE_MB
    assert settings["html_suffix_pattern"] == config.HTML_SUFFIX_PATTERN
    assert "base64" in settings["recognized_encodings"]


class _FailingParser(EmailFormatParser):
    def can_parse(self, data, filename=None):
        return True, 1.0

    def parse(self, data, filename=None):
        return None


def _bare_scanner(parsers):
    logger = logging.getLogger("test")
    return ad.AttachmentScanner(parsers, AttachmentExtractor(logger), RuleEvaluator(logger), None, logger)


def test_parser_failure_is_reported():
    result = _bare_scanner([_FailingParser()]).scan(SAMPLE)
    assert result["error"]["code"] == "PARSING_ERROR"
    assert result["source"] == "<message>"


def test_no_parser_is_unsupported():
    result = _bare_scanner([]).scan(SAMPLE)
    assert result["error"]["code"] == "UNSUPPORTED_FORMAT"


class _DummyAttachment:
    def __init__(self, longFilename=None, shortFilename=None, mimetype=None):
        self.longFilename = longFilename
        self.shortFilename = shortFilename
        self.mimetype = mimetype


class _DummyMsg:
    def __init__(self, attachments=None):
        self.sender = "s@a"
        self.to = "t@b"
        self.subject = "subj\r\n folded"
        self.attachments = attachments


def test_convert_msg_handles_no_attachments():
    parser = MsgFormatParser(logging.getLogger("test"))
    content = parser._convert_msg_to_email_format(_DummyMsg(None))
    assert "From: s@a" in content
    assert "Subject: subj folded" in content


def test_convert_msg_attachments_become_mime_parts():
    logger = logging.getLogger("test")
    msg = _DummyMsg([
        _DummyAttachment(longFilename="résumé.pdf", shortFilename="RESUME~1.PDF", mimetype="application/pdf"),
        _DummyAttachment(shortFilename="IMG.JPG"),
        _DummyAttachment(),
    ])
    content = MsgFormatParser(logger)._convert_msg_to_email_format(msg)
    message = email.parser.Parser(policy=email.policy.default).parsestr(content)

    context = AttachmentExtractor(logger).extract_message(message)
    assert [r.name for r in context.records] == ["résumé.pdf", "IMG.JPG", ""]
    assert [r.mime_type for r in context.records] == [
        "application/pdf", "application/octet-stream", "application/octet-stream"]
    assert all(r.disposition == "attachment" for r in context.records)


# ---------------------------------------------------------------------------
# CLI

def test_cli_writes_json_report(tmp_path):
    eml = tmp_path / "sample.eml"
    eml.write_bytes(SAMPLE)
    rules = tmp_path / "attachment.cf"
    rules.write_text(RULES + "attachment BROKEN size == 1\n", encoding="utf-8")
    out = tmp_path / "report.json"

    exit_code = main([str(eml), "--rules", str(rules), "--output", str(out)])
    assert exit_code == 0

    report = json.loads(out.read_text(encoding="utf-8"))
    result = report["results"][str(eml)]
    assert result["tags"]["ATTACHMENT_COUNT"] == "2"
    assert "PDF_ATTACHED" in result["rule_hits"]
    assert [e["error"]["code"] for e in report["rule_errors"]] == ["RULE_SYNTAX_ERROR"]


def test_cli_reports_missing_file(tmp_path):
    out = tmp_path / "report.json"
    missing = tmp_path / "missing.eml"
    exit_code = main([str(missing), "--output", str(out)])
    assert exit_code == 1

    report = json.loads(out.read_text(encoding="utf-8"))
    assert report["results"][str(missing)]["error"]["code"] == "INTERNAL_ERROR"


def test_cli_header_output(tmp_path, capsys):
    eml = tmp_path / "sample.eml"
    eml.write_bytes(SAMPLE)
    rules = tmp_path / "attachment.cf"
    rules.write_text(RULES, encoding="utf-8")

    assert main([str(eml), "--rules", str(rules), "--headers"]) == 0
    output = capsys.readouterr().out
    assert "X-Spam-Attachment-Count: 2" in output
    assert "X-Spam-Attachment-Types: image/png,application/pdf" in output
    assert "X-Spam-Attachment-Exts: png,pdf" in output
    assert "X-Spam-Attachment-Rules: PDF_ATTACHED,__ATTACH_MULTI" in output
