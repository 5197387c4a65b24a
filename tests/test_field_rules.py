from __future__ import annotations

import pytest


def _markup_doc(html: str):
    from receipt_verifier.modules.verification.models import DocumentFormat, RawDocument
    from receipt_verifier.modules.verification.parse import parse_document

    return parse_document(
        RawDocument(format=DocumentFormat.HTML, content=html.encode(), source_url="https://x")
    )


def _json_doc(data):
    from receipt_verifier.modules.verification.models import DocumentFormat
    from receipt_verifier.modules.verification.parse import ParsedDocument

    return ParsedDocument(format=DocumentFormat.JSON, source_url="https://x", data=data)


def test_first_non_empty_rule_wins_and_later_rules_are_skipped():
    from receipt_verifier.modules.verification.parse import ParsedDocument
    from receipt_verifier.modules.verification.models import DocumentFormat
    from receipt_verifier.modules.verification.rules import (
        FieldKind,
        FieldSpec,
        PatternRule,
        extract_field,
    )

    evaluated: list[str] = []

    class _Recording(PatternRule):
        def extract(self, doc):
            evaluated.append(self.pattern)
            return super().extract(doc)

    spec = FieldSpec(
        "reference",
        FieldKind.TEXT,
        (
            _Recording(r"Invoice\s+(\w+)"),
            _Recording(r"Reference\s+(\w+)"),
            _Recording(r"(FT\w+)"),
        ),
    )
    doc = ParsedDocument(
        format=DocumentFormat.PDF, source_url="https://x", text="Reference FT123 Amount 5"
    )

    assert extract_field(doc, spec) == "FT123"
    assert evaluated == [r"Invoice\s+(\w+)", r"Reference\s+(\w+)"]


def test_pattern_rule_occurrence_selects_nth_match():
    from receipt_verifier.modules.verification.models import DocumentFormat
    from receipt_verifier.modules.verification.parse import ParsedDocument
    from receipt_verifier.modules.verification.rules import PatternRule

    doc = ParsedDocument(
        format=DocumentFormat.PDF,
        source_url="https://x",
        text="Payer A Account 1****1111 Receiver B Account 1****2222",
    )
    rule = PatternRule(r"Account\s*([0-9*]+)", occurrence=1)
    assert rule.extract(doc) == "1****2222"
    assert PatternRule(r"Account\s*([0-9*]+)", occurrence=2).extract(doc) == ""


def test_markup_pattern_strips_tags_and_entities():
    from receipt_verifier.modules.verification.rules import PatternRule

    doc = _markup_doc("<table><tr><td>Name</td><td><b>Abebe</b> &amp; Sons</td></tr></table>")
    rule = PatternRule(r"Name</td>\s*<td>(.*?)</td>", target="markup")
    assert " ".join(rule.extract(doc).split()) == "Abebe & Sons"


def test_cell_rule_takes_next_cell_from_innermost_match():
    from receipt_verifier.modules.verification.rules import CellRule

    doc = _markup_doc(
        "<table><tr><td>"
        "<table><tr><td>Payer Name</td><td>ABEBE KEBEDE</td></tr>"
        "<tr><td>Status</td><td>Completed</td></tr></table>"
        "</td></tr></table>"
    )
    assert CellRule(labels=("Payer Name",)).extract(doc) == "ABEBE KEBEDE"
    assert CellRule(labels=("Status",)).extract(doc) == "Completed"
    assert CellRule(labels=("Missing",)).extract(doc) == ""


def test_cell_rule_last_cell_of_row_and_exclusions():
    from receipt_verifier.modules.verification.rules import CellRule

    doc = _markup_doc(
        "<table>"
        "<tr><td>Service fee VAT</td><td>x</td><td>0.15 Birr</td></tr>"
        "<tr><td>Service fee</td><td>x</td><td>1.00 Birr</td></tr>"
        "</table>"
    )
    rule = CellRule(selector="tr", labels=("Service fee",), exclude=("VAT",), take="last")
    assert rule.extract(doc) == "1.00 Birr"


def test_key_rule_walks_keys_and_indexes_with_empty_default():
    from receipt_verifier.modules.verification.rules import KeyRule

    doc = _json_doc({"body": [{"Payer's Name": "ABEBE", "amount": 12.5}], "header": None})
    assert KeyRule(("body", 0, "Payer's Name")).extract(doc) == "ABEBE"
    assert KeyRule(("body", 0, "amount")).extract(doc) == "12.5"
    assert KeyRule(("body", 3, "amount")).extract(doc) == ""
    assert KeyRule(("header", "status")).extract(doc) == ""
    assert KeyRule(("body",)).extract(doc) == ""


def test_field_spec_requires_at_least_one_rule():
    from receipt_verifier.modules.verification.rules import FieldKind, FieldSpec

    with pytest.raises(ValueError):
        FieldSpec("payer", FieldKind.NAME, ())


def test_extract_record_omits_empty_fields():
    from receipt_verifier.modules.verification.rules import (
        FieldKind,
        FieldSpec,
        KeyRule,
        extract_record,
    )

    doc = _json_doc({"data": {"receiptNo": " CE1 ", "payerName": ""}})
    fields = (
        FieldSpec("receipt_no", FieldKind.TEXT, (KeyRule(("data", "receiptNo")),)),
        FieldSpec("payer_name", FieldKind.NAME, (KeyRule(("data", "payerName")),)),
    )
    assert extract_record(doc, fields) == {"receipt_no": "CE1"}
