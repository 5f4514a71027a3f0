"""Tests for ResponseParser (embedded JSON and regex entity extraction)."""

import pytest

from tradeintel.document_pipeline.response_parser import ResponseParser
from tradeintel.errors import ParseError


@pytest.fixture
def parser():
    return ResponseParser()


class TestParseStructured:
    def test_json_embedded_in_prose(self, parser):
        result = parser.parse_structured('Here is the result: {"code":"0401","confidence":90}')
        assert result == {"code": "0401", "confidence": 90}

    def test_markdown_fenced_json(self, parser):
        text = 'Sure!\n```json\n{"isValid": true, "score": 88}\n```\nLet me know.'
        assert parser.parse_structured(text) == {"isValid": True, "score": 88}

    def test_braces_inside_strings_are_ignored(self, parser):
        text = 'Result: {"message": "use {curly} braces", "nested": {"a": "}"}} trailing'
        result = parser.parse_structured(text)
        assert result["message"] == "use {curly} braces"
        assert result["nested"] == {"a": "}"}

    def test_escaped_quotes_inside_strings(self, parser):
        text = r'{"note": "he said \"hi {\" ok", "n": 1}'
        assert parser.parse_structured(text)["n"] == 1

    def test_skips_invalid_span_and_returns_next_object(self, parser):
        text = "{not json} then {\"score\": 70}"
        assert parser.parse_structured(text) == {"score": 70}

    def test_expected_keys_filters_objects(self, parser):
        text = 'Example: {"foo": 1}. Answer: {"suggestions": []}'
        assert parser.parse_structured(text, expected_keys=("suggestions",)) == {"suggestions": []}

    def test_no_braces_raises(self, parser):
        with pytest.raises(ParseError):
            parser.parse_structured("The document looks fine.")

    def test_empty_raises(self, parser):
        with pytest.raises(ParseError):
            parser.parse_structured("")

    def test_unbalanced_raises(self, parser):
        with pytest.raises(ParseError):
            parser.parse_structured('{"score": 70')

    def test_json_array_is_not_an_object(self, parser):
        with pytest.raises(ParseError):
            parser.parse_structured('[{"a" 1}]')


class TestExtractEntities:
    def test_email_and_amount(self, parser):
        entities = parser.extract_entities("Contact a@b.com about the $100.00 balance")
        by_type = {e.type: e for e in entities}
        assert set(by_type) == {"email", "amount"}
        assert by_type["email"].value == "a@b.com"
        assert by_type["email"].confidence == 90
        assert by_type["amount"].value == "$100.00"
        assert by_type["amount"].confidence == 80

    def test_date_is_not_reported_as_phone_or_amount(self, parser):
        entities = parser.extract_entities("Invoice date 2024-01-15")
        assert [(e.type, e.value) for e in entities] == [("date", "2024-01-15")]
        assert entities[0].confidence == 85

    def test_phone_number(self, parser):
        entities = parser.extract_entities("Call +1 555-123-4567 today")
        phones = [e for e in entities if e.type == "phone"]
        assert len(phones) == 1
        assert "555-123-4567" in phones[0].value
        assert phones[0].confidence == 85

    def test_currency_code_amounts(self, parser):
        entities = parser.extract_entities("Total USD 1,500.00 and INR 2500")
        amounts = [e.value for e in entities if e.type == "amount"]
        assert "USD 1,500.00" in amounts
        assert "INR 2500" in amounts

    def test_bare_integers_are_not_amounts(self, parser):
        assert parser.extract_entities("Quantity 12 of item 7") == []

    def test_duplicates_removed(self, parser):
        entities = parser.extract_entities("a@b.com and again a@b.com")
        assert len(entities) == 1

    def test_empty_text(self, parser):
        assert parser.extract_entities("") == []

    def test_distinct_emails_and_dates_counted_once(self, parser):
        text = (
            "Contacts: ops@acme.com, billing@acme.com, customs@port-agent.in. "
            "Invoice dated 2024-01-15, shipped 20/01/2024. "
            "Reminder to ops@acme.com: invoice dated 2024-01-15."
        )

        entities = parser.extract_entities(text)

        emails = [e.value for e in entities if e.type == "email"]
        dates = [e.value for e in entities if e.type == "date"]
        assert sorted(emails) == ["billing@acme.com", "customs@port-agent.in", "ops@acme.com"]
        assert sorted(dates) == ["2024-01-15", "20/01/2024"]
        assert len(entities) == 5

    def test_dotted_date_is_not_an_amount(self, parser):
        entities = parser.extract_entities("Bill of entry date 15.01.2024")
        assert [(e.type, e.value) for e in entities] == [("date", "15.01.2024")]
