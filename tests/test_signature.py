"""Tests for signatures, operation heads and placeholder variables."""

from gqlhound.extraction.signature import describe_operation, normalize, placeholder_name
from gqlhound.extraction.variables import SAMPLE_ID, SAMPLE_STRING, default_value, infer_variables


class TestNormalize:
    """Tests for whitespace normalization."""

    def test_collapses_whitespace_runs(self) -> None:
        """Newlines, tabs and repeated spaces become single spaces."""
        text = "query  Foo {\n\t  id\n}\n"
        assert normalize(text) == "query Foo { id }"

    def test_is_idempotent(self) -> None:
        """Normalizing twice gives the same result."""
        samples = ["  query A {\n a }  ", "mutation\tB { b(x: 1) { ok } }", "", "   "]
        for sample in samples:
            assert normalize(normalize(sample)) == normalize(sample)

    def test_differently_formatted_texts_share_a_signature(self) -> None:
        """Formatting differences don't create distinct operations."""
        compact = "query Foo { user { id } }"
        spread = """
            query Foo {
              user {
                id
              }
            }
        """
        assert normalize(compact) == normalize(spread)


class TestDescribeOperation:
    """Tests for operation head parsing."""

    def test_named_query_with_arguments(self) -> None:
        head = describe_operation("query GetUser($id: ID!) { user(id: $id) { id } }")
        assert head.kind == "query"
        assert head.name == "GetUser"
        assert head.args == "$id: ID!"

    def test_anonymous_query(self) -> None:
        head = describe_operation("{ viewer { id } }")
        assert head.kind == "unknown"
        assert head.name is None

    def test_shorthand_keyword_without_name(self) -> None:
        head = describe_operation("mutation { logout }")
        assert head.kind == "mutation"
        assert head.name is None

    def test_fragment_with_type_condition(self) -> None:
        head = describe_operation("fragment UserParts on User { id name }")
        assert head.kind == "fragment"
        assert head.name == "UserParts"

    def test_compressed_head(self) -> None:
        """No space is needed before the body."""
        head = describe_operation("subscription OnEvent{event{id}")
        assert head.kind == "subscription"
        assert head.name == "OnEvent"


class TestPlaceholderName:
    """Tests for deterministic anonymous names."""

    def test_same_signature_same_name(self) -> None:
        signature = "query { viewer { id } }"
        assert placeholder_name("query", signature) == placeholder_name("query", signature)

    def test_format(self) -> None:
        name = placeholder_name("mutation", "mutation { logout }")
        assert name.startswith("AnonymousMutation_")
        assert len(name) == len("AnonymousMutation_") + 8

    def test_unknown_kind(self) -> None:
        assert placeholder_name("unknown", "{ a }").startswith("AnonymousOperation_")


class TestInferVariables:
    """Tests for placeholder variable values."""

    def test_type_defaults(self) -> None:
        """Each declared type maps to its placeholder."""
        result = infer_variables(
            "$name: String!, $count: Int, $ratio: Float, $on: Boolean, $id: ID!, $tags: [Tag], $input: UserInput"
        )
        assert result == {
            "name": SAMPLE_STRING,
            "count": 0,
            "ratio": 0,
            "on": False,
            "id": SAMPLE_ID,
            "tags": [],
            "input": None,
        }

    def test_check_order_prefers_scalar_names(self) -> None:
        """``[String]`` is checked for String before the list bracket."""
        assert default_value("[String!]!") == SAMPLE_STRING
        assert default_value("[Tag]") == []

    def test_newline_separated_arguments(self) -> None:
        result = infer_variables("$first: Int\n$after: String")
        assert result == {"first": 0, "after": SAMPLE_STRING}

    def test_existing_values_are_kept(self) -> None:
        known = {"id": "abc"}
        result = infer_variables("$id: ID!, $limit: Int", known)
        assert result == {"id": "abc", "limit": 0}
        assert known == {"id": "abc"}

    def test_no_arguments(self) -> None:
        assert infer_variables(None) == {}
        assert infer_variables(None, {"a": 1}) == {"a": 1}

    def test_deterministic(self) -> None:
        """Inference depends only on the argument text."""
        args = "$id: ID!, $first: Int = 10"
        assert infer_variables(args) == infer_variables(args)
