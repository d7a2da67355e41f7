"""
Record tests - case-insensitive access, soft-typed reads, dirty and signature tracking.
"""

import json
import pytest

from sqlitedb.core.crypto import CryptoError, ICryptoProvider
from sqlitedb.core.record import IRecordChangeHandler, Record, records_columns, records_to_json
from sqlitedb.core.row_source import IRowSource, MappingRowSource
from sqlitedb.core.values import ValueKind


class ReversingCrypto(ICryptoProvider):
    """Reversible stand-in for a real cipher."""

    def encrypt(self, value: str) -> str:
        return "enc:" + value[::-1]

    def decrypt(self, value: str) -> str:
        if not value.startswith("enc:"):
            raise CryptoError("not encrypted")
        return value[4:][::-1]


class RecordingHandler(IRecordChangeHandler):
    """Change handler that records calls and can veto."""

    def __init__(self, allow: bool = True):
        self.allow = allow
        self.before = []
        self.after = []

    def before_value_change(self, column, new_value):
        self.before.append((column, new_value))
        return self.allow

    def after_value_change(self, column, new_value):
        self.after.append((column, new_value))


@pytest.fixture
def alice():
    """Record decoded from {id: 5, name: 'Alice', deleted: null}."""
    return Record.from_mapping({"id": 5, "name": "Alice", "deleted": None})


class TestDecode:
    """Test decoding rows into records."""

    def test_concrete_row(self, alice):
        """Test the basic read/write scenario on a decoded row."""
        assert alice.get("Name", "") == "Alice"
        assert alice.get("deleted", False) is False

        alice.set("name", "Bob")
        assert alice.is_dirty is True
        assert alice.get("Name", "") == "Bob"

    def test_clean_after_decode(self, alice):
        """Test a fresh decode is clean and baseline equals current signature."""
        assert alice.is_dirty is False
        assert alice.signature(original=True) == alice.signature(original=False)

    def test_columns_keep_source_order(self, alice):
        """Test columns come back in source order."""
        assert alice.columns() == ["id", "name", "deleted"]

    def test_columns_only(self):
        """Test columns-only decode knows names but holds no values."""
        record = Record(MappingRowSource({"id": 1, "Name": "x"}), columns_only=True)
        assert record.columns() == ["id", "Name"]
        assert record.is_null("id")
        assert record.is_null("name")
        assert record.get("name", "default") == "default"

    def test_decode_replaces_state(self, alice):
        """Test decoding again resets columns, values and dirty flag."""
        alice.set("name", "Bob")
        alice.decode(MappingRowSource({"other": 1}))
        assert alice.columns() == ["other"]
        assert not alice.has_key("name")
        assert alice.is_dirty is False

    def test_repeated_column_names_share_one_slot(self):
        """Test column names differing only in case collapse onto the first."""

        class TwoColumns(MappingRowSource):
            def __init__(self):
                super().__init__({})
                self._names = ["ID", "id"]
                self._values = [1, 2]

        record = Record(TwoColumns())
        assert record.columns() == ["ID"]
        assert record.get("id", 0) == 2

    def test_null_check_wins_over_reported_type(self):
        """Test a source reporting INTEGER for a null cell decodes as NULL,
        and a non-null cell reported as NULL decodes as NULL too."""

        class MisreportingSource(IRowSource):
            def column_count(self):
                return 2

            def column_name(self, index):
                return ["reported_int", "reported_null"][index]

            def is_null(self, index):
                return index == 0

            def column_type(self, index):
                return [ValueKind.INTEGER, ValueKind.NULL][index]

            def value(self, index):
                return [7, "not null"][index]

        record = Record(MisreportingSource())
        assert record.value("reported_int").kind is ValueKind.NULL
        assert record.value("reported_null").kind is ValueKind.NULL
        assert record.get("reported_null", "default") == "default"

    def test_index_access_counts_distinct_columns(self):
        """Test get_at() indexes the collapsed column list, not source positions."""

        class ThreeColumns(MappingRowSource):
            def __init__(self):
                super().__init__({})
                self._names = ["id", "ID", "other"]
                self._values = [1, 2, 3]

        record = Record(ThreeColumns())
        assert record.columns() == ["id", "other"]
        assert record.get_at(1, -1) == 3
        assert record.get_at(2, -1) == -1

    def test_case_folding_matches_sharp_s(self):
        """Test keys are matched by case folding, like meta trees."""
        record = Record.from_mapping({"straße": 1})
        assert record.has_key("STRASSE")
        assert record.get("strasse", 0) == 1

    def test_typed_decode(self):
        """Test each source type decodes to the matching kind."""
        record = Record.from_mapping({"i": 1, "f": 2.5, "t": "x", "b": b"\x01", "n": None})
        assert record.value("i").kind is ValueKind.INTEGER
        assert record.value("f").kind is ValueKind.FLOAT
        assert record.value("t").kind is ValueKind.TEXT
        assert record.value("b").kind is ValueKind.BLOB
        assert record.value("n").kind is ValueKind.NULL


class TestCaseInsensitivity:
    """Test key resolution ignores case."""

    @pytest.mark.parametrize("variant", ["name", "NAME", "Name", "nAmE"])
    def test_variants_resolve_to_same_slot(self, alice, variant):
        """Test every case variant reads and writes the same column."""
        assert alice.has_key(variant)
        alice.set(variant, f"set-{variant}")
        assert alice.get("name", "") == f"set-{variant}"
        assert alice.columns() == ["id", "name", "deleted"]

    def test_contains(self, alice):
        """Test the in operator uses the same resolution."""
        assert "ID" in alice
        assert "missing" not in alice


class TestSoftTypedGet:
    """Test default-hinted reads never raise."""

    def test_missing_key_returns_default(self, alice):
        """Test unknown columns give the default back."""
        assert alice.get("nope", 7) == 7
        assert alice.get("nope") is None

    def test_int_from_integer(self, alice):
        assert alice.get("id", 0) == 5

    def test_int_from_numeric_text(self):
        """Test integer hints parse numeric text."""
        record = Record.from_mapping({"n": "42", "f": 2.5, "word": "abc"})
        assert record.get("n", 0) == 42
        assert record.get("f", 0) == 0
        assert record.get("word", -1) == -1

    def test_float_widens_integer(self, alice):
        assert alice.get("id", 0.0) == 5.0

    def test_text_renders_any_value(self):
        """Test string hints render every non-null kind."""
        record = Record.from_mapping({"i": 5, "f": 1.5, "b": True})
        assert record.get("i", "") == "5"
        assert record.get("f", "") == "1.5"
        assert record.get("b", "") == "true"

    @pytest.mark.parametrize("stored,expected", [
        (1, True),
        (0, False),
        ("yes", True),
        ("FALSE", False),
        (True, True),
    ])
    def test_bool_render_then_parse(self, stored, expected):
        """Test boolean hints parse the canonical rendering."""
        record = Record.from_mapping({"flag": stored})
        assert record.get("flag", not expected) is expected

    def test_bool_unparseable_falls_back(self):
        record = Record.from_mapping({"flag": "maybe", "n": 5})
        assert record.get("flag", True) is True
        assert record.get("n", False) is False

    def test_bytes_hint_needs_blob(self):
        record = Record.from_mapping({"b": b"\x01", "t": "x"})
        assert record.get("b", b"") == b"\x01"
        assert record.get("t", b"") == b""

    def test_untyped_get_returns_native(self, alice):
        assert alice.get("id") == 5
        assert alice.get("deleted") is None

    def test_get_null(self, alice):
        """Test get_null gives None for NULL or unconvertible values."""
        assert alice.get_null("deleted", "") is None
        assert alice.get_null("id", 0) == 5
        assert alice.get_null("name", 0) is None
        assert alice.get_null("missing", "") is None

    def test_index_access(self, alice):
        assert alice.get_at(1, "") == "Alice"
        assert alice.get_at(10, "x") == "x"
        assert alice.get_null_at(2, "") is None
        assert alice.column_index("NAME") == 1
        assert alice.column_index("missing") is None

    def test_text(self, alice):
        assert alice.text("id") == "5"
        assert alice.text("deleted", "none") == "none"
        assert alice.text("missing", "?") == "?"

    def test_item_access(self, alice):
        """Test dict-style access reads text and writes through set()."""
        assert alice["ID"] == "5"
        alice["name"] = "Carol"
        assert alice["NAME"] == "Carol"
        assert alice.is_dirty


class TestSet:
    """Test assignments, dirty flag and hooks."""

    def test_unknown_column_ignored(self, alice):
        """Test set on an unknown column is a silent no-op."""
        alice.set("extra", 1)
        assert not alice.has_key("extra")
        assert alice.is_dirty is False

    def test_allow_new_keys_creates_column(self):
        record = Record.from_mapping({"id": 1}, allow_new_keys=True)
        record.set("Extra", "value")
        assert record.columns() == ["id", "Extra"]
        assert record.get("EXTRA", "") == "value"
        assert record.is_dirty

    def test_same_value_still_marks_dirty(self, alice):
        """Test dirty means an assignment happened, not that a value differs."""
        alice.set("name", "Alice")
        assert alice.is_dirty is True
        assert alice.signature() == alice.signature(original=True)

    def test_reset_dirty_keeps_values(self, alice):
        alice.set("name", "Bob")
        alice.reset_dirty()
        assert alice.is_dirty is False
        assert alice.get("name", "") == "Bob"

    def test_revert_restores_signature(self, alice):
        """Test mutate-then-revert leaves dirty set but the signature unchanged."""
        alice.set("name", "Bob")
        assert alice.signature() != alice.signature(original=True)
        alice.set("name", "Alice")
        assert alice.is_dirty is True
        assert alice.signature() == alice.signature(original=True)

    def test_none_stores_null(self, alice):
        """Test None keeps the column but makes it NULL."""
        alice.set("name", None)
        assert alice.has_key("name")
        assert alice.is_null("name")

    def test_veto_blocks_change_and_dirty(self, alice):
        """Test a vetoing handler leaves the value and dirty flag untouched."""
        handler = RecordingHandler(allow=False)
        alice.change_handler = handler
        alice.set("NAME", "Bob")
        assert alice.get("name", "") == "Alice"
        assert alice.is_dirty is False
        assert handler.before == [("name", "Bob")]
        assert handler.after == []

    def test_hooks_called_around_change(self, alice):
        handler = RecordingHandler()
        alice.change_handler = handler
        alice.set("Name", "Bob")
        assert handler.before == [("name", "Bob")]
        assert handler.after == [("name", "Bob")]

    def test_item_assignment_uses_same_veto(self, alice):
        alice.change_handler = RecordingHandler(allow=False)
        alice["name"] = "Bob"
        assert alice.get("name", "") == "Alice"
        assert alice.is_dirty is False


class TestSignature:
    """Test signature rendering."""

    def test_signature_format(self):
        """Test sorted lowercase names with quoted values, tab delimited."""
        record = Record.from_mapping({"B": 1, "a": None})
        assert record.signature() == 'a\tnil\tb\t"1"'

    def test_empty_record(self):
        record = Record()
        assert record.is_empty
        assert record.signature() == ""
        assert record.columns() == []


class TestColumnsAndClone:
    """Test column listing and cloning."""

    def test_columns_excluding(self, alice):
        """Test exclusions are case-insensitive."""
        assert alice.columns("ID") == ["name", "deleted"]
        assert alice.columns("id", "DELETED") == ["name"]

    def test_clone_is_independent(self, alice):
        alice.set("name", "Bob")
        copy = alice.clone()
        assert copy.is_dirty is True
        assert copy.signature(original=True) == alice.signature(original=True)

        copy.set("name", "Carol")
        copy.reset_dirty()
        assert alice.get("name", "") == "Bob"
        assert alice.is_dirty is True

    def test_clone_does_not_copy_handler(self, alice):
        alice.change_handler = RecordingHandler()
        assert alice.clone().change_handler is None

    def test_clear(self, alice):
        alice.set("name", "Bob")
        alice.clear()
        assert alice.is_empty
        assert alice.is_dirty is False


class TestRecordCrypto:
    """Test the crypto capability threaded through set/get."""

    def test_round_trip(self, alice):
        crypto = ReversingCrypto()
        alice.set("name", "secret", crypto)
        assert alice.get("name", "", crypto) == "secret"
        assert alice.get("name", "") == "enc:terces"

    def test_decrypt_failure_returns_default(self, alice):
        assert alice.get("name", "fallback", ReversingCrypto()) == "fallback"

    def test_non_text_not_encrypted(self, alice):
        alice.set("id", 9, ReversingCrypto())
        assert alice.get("id", 0) == 9


class TestJson:
    """Test JSON export of records."""

    def test_to_json(self, alice):
        assert json.loads(alice.to_json()) == {"id": 5, "name": "Alice", "deleted": None}

    def test_result_set_helpers(self, alice):
        other = Record.from_mapping({"id": 6, "name": "Bob", "deleted": None})
        assert records_columns([alice, other]) == ["id", "name", "deleted"]
        assert records_columns([]) == []
        data = json.loads(records_to_json([alice, other]))
        assert [row["name"] for row in data["rows"]] == ["Alice", "Bob"]
