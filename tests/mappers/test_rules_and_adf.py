"""
Tests for keyword rule tables and rich-document description flattening
"""

from engmetrics.mappers.adf import collect_text, extract_description
from engmetrics.mappers.rules import first_match, first_match_any

RULES = ((("critical", "blocker"), "CRITICAL"), (("high",), "HIGH"))


def paragraph(text):
    return {"type": "paragraph", "content": [{"type": "text", "text": text}]}


class TestFirstMatch:
    """Tests for first_match and first_match_any"""

    def test_case_insensitive_substring(self):
        """Test that matching is case-insensitive substring containment"""
        assert first_match("Release Blocker", RULES, "MEDIUM") == "CRITICAL"
        assert first_match("HIGH", RULES, "MEDIUM") == "HIGH"

    def test_default(self):
        """Test the default for empty or unmatched text"""
        assert first_match(None, RULES, "MEDIUM") == "MEDIUM"
        assert first_match("", RULES, "MEDIUM") == "MEDIUM"
        assert first_match("normal", RULES, "MEDIUM") == "MEDIUM"

    def test_rule_order_beats_label_order(self):
        """Test that the earliest matching rule wins across labels"""
        assert first_match_any(["high", "critical"], RULES, "MEDIUM") == "CRITICAL"
        assert first_match_any([], RULES, "MEDIUM") == "MEDIUM"


class TestExtractDescription:
    """Tests for extract_description"""

    def test_document_tree(self):
        """Test that text leaves are joined with a single space"""
        document = {
            "type": "doc",
            "content": [
                {"type": "paragraph", "content": [{"type": "text", "text": "Hello"}]},
                {
                    "type": "bulletList",
                    "content": [
                        {"type": "listItem", "content": [paragraph("a")]},
                        {"type": "listItem", "content": [paragraph("b")]},
                    ],
                },
            ],
        }

        assert extract_description(document) == "Hello a b"

    def test_plain_string_and_none(self):
        """Test passthrough of strings and None"""
        assert extract_description("plain") == "plain"
        assert extract_description(None) is None

    def test_empty_document(self):
        """Test that a document without text yields an empty string"""
        assert extract_description({"type": "doc", "content": []}) == ""

    def test_collect_text_ignores_non_nodes(self):
        """Test that scalars inside content are ignored"""
        assert collect_text([{"text": "x"}, 3, None, "y"]) == ["x"]
