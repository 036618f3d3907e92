"""
Property-based tests for Message export/import and bulk create accounting.

Uses hypothesis to generate Messages and request batches.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from recordgate.backend.memory import InMemoryBackend
from recordgate.core.message import ById, ByIndex, Message, Multistatus, Record
from recordgate.core.models import FieldDescriptor
from recordgate.core.operations import RecordOperations

field_names = st.from_regex(r"^[a-z]{1,6}(\[[0-9]\])?$", fullmatch=True)
scalars = st.one_of(st.none(), st.text(max_size=10), st.integers(min_value=-1000, max_value=1000))
rows = st.dictionaries(field_names, scalars, max_size=4)
references = st.one_of(
    st.none(),
    st.builds(ById, record_id=st.text(min_size=1, max_size=8)),
    st.builds(ByIndex, index=st.integers(min_value=0, max_value=50)),
)


@st.composite
def messages(draw):
    message = Message()
    record_ids = draw(st.lists(st.text(alphabet="0123456789abc=", min_size=1, max_size=6), unique=True, max_size=5))
    for record_id in record_ids:
        message.add_record(Record(draw(st.one_of(st.none(), st.just(record_id))), data=draw(rows)))
    for name in draw(st.lists(st.from_regex(r"^[a-z]{1,6}$", fullmatch=True), unique=True, max_size=3)):
        message.set_meta_field(name, {"name": name, "maxRepeat": draw(st.integers(min_value=1, max_value=5))})
    for _ in range(draw(st.integers(min_value=0, max_value=3))):
        message.add_multistatus(Multistatus(
            status=draw(st.integers(min_value=0, max_value=50000)),
            reason=draw(st.text(max_size=10)),
            reference=draw(references),
        ))
    for key, value in draw(st.dictionaries(st.text(min_size=1, max_size=5), scalars, max_size=3)).items():
        message.set_info(key, value)
    for key, value in draw(st.dictionaries(st.text(min_size=1, max_size=5), st.text(max_size=10), max_size=2)).items():
        message.set_nav(key, value)
    return message


class TestMessageRoundTrip:
    """Property tests for export_array/import_array"""

    @given(messages())
    def test_property_import_export_reproduces_message(self, message):
        """Property test: import_array(export_array(m)) is equivalent to m"""
        copy = Message()
        copy.import_array(message.export_array())

        assert copy.get_section_names() == message.get_section_names()
        for name in message.get_section_names():
            assert len(copy.get_section(name)) == len(message.get_section(name))
        assert copy.export_array() == message.export_array()
        assert copy.get_records() == message.get_records()

    @given(messages())
    def test_property_meta_and_data_aligned(self, message):
        """Property test: meta and data always have one row per Record"""
        exported = message.export_array()
        assert len(exported.get("meta", [])) == len(exported.get("data", [])) == message.get_record_count()

    @given(messages())
    def test_property_record_id_index_consistent(self, message):
        """Property test: every record id resolves to its own Record"""
        for record in message.get_records():
            if record.record_id is not None:
                assert message.get_record_by_record_id(record.record_id) is record


class TestBulkCreateAccounting:
    """Property tests for bulk create outcomes"""

    @settings(max_examples=50)
    @given(st.lists(st.booleans(), max_size=8))
    def test_property_records_plus_failures_equal_request(self, valid_rows):
        """Property test: every request row yields a record or a multistatus entry"""
        backend = InMemoryBackend(layouts={"notes": [FieldDescriptor(name="title")]})
        request = Message()
        for valid in valid_rows:
            request.add_record(Record(data={"title": "t"} if valid else {"missing": "t"}))

        response = RecordOperations(backend, database="db", layout="notes").create_records(request)

        assert response.get_record_count() == valid_rows.count(True)
        assert response.get_multistatus_count() == valid_rows.count(False)
        assert response.get_record_count() + response.get_multistatus_count() == len(valid_rows)
        failed_indexes = [entry.reference.index for entry in response.get_multistatuses()]
        assert failed_indexes == [index for index, valid in enumerate(valid_rows) if not valid]
