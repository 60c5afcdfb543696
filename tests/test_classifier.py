from conftest import adv_line, post_line, rga_line, status_line, temp_line, turbo_line

from gemsreport.processing.classifier import (
    RECORD_SCHEMAS,
    SIGNATURES,
    RecordType,
    classify,
    is_garbage,
    tag_lines,
)


def test_classify_known_signatures():
    assert classify(post_line(1)) == RecordType.POST_TIME
    assert classify(status_line()) == RecordType.STATUS
    assert classify(rga_line(40, 1.5)) == RecordType.MASS_SPEC
    assert classify(turbo_line()) == RecordType.TURBO
    assert classify(temp_line()) == RecordType.TEMPERATURE
    assert classify(adv_line(3)) == RecordType.ADV


def test_classify_is_deterministic():
    lines = [status_line(), adv_line(7), rga_line(18, 2.0), "junk"]
    first = [classify(line) for line in lines]
    second = [classify(line) for line in lines]
    assert first == second
    assert first == [RecordType.STATUS, RecordType.ADV, RecordType.MASS_SPEC, None]


def test_classify_rejects_wrong_field_count():
    assert classify("R,40") is None
    assert classify("D,1,2,3") is None
    assert classify(status_line() + ",extra") is None


def test_classify_unknown_tag():
    assert classify("X,1,2") is None
    assert classify("") is None


def test_is_garbage_patterns():
    assert is_garbage("S,12?0,3")
    assert is_garbage("?1")
    assert is_garbage("D,V:12")
    assert not is_garbage("?2 is fine")
    assert not is_garbage(adv_line(5))


def test_tag_lines_assigns_batches_and_line_numbers():
    lines = [
        post_line(7),
        status_line(),
        "junk",
        adv_line(1),
        post_line(8),
        adv_line(2),
    ]
    records, stats = tag_lines(lines)

    assert [(r.record_type, r.batch_id, r.line_number) for r in records] == [
        (RecordType.POST_TIME, 7, 0),
        (RecordType.STATUS, 7, 1),
        (RecordType.ADV, 7, 3),
        (RecordType.POST_TIME, 8, 0),
        (RecordType.ADV, 8, 1),
    ]
    assert stats.unclassified_lines == 1
    assert stats.batches == 2
    assert stats.tagged_lines == 5


def test_tag_lines_drops_orphans_and_garbage():
    lines = [
        adv_line(1),
        post_line("abc"),
        adv_line(2),
        post_line(3),
        "D,1?1,",
        adv_line(3),
    ]
    records, stats = tag_lines(lines)

    assert stats.orphaned_lines == 3
    assert stats.garbage_lines == 1
    assert [(r.batch_id, r.line_number) for r in records] == [(3, 0), (3, 2)]


def test_repeated_send_id_continues_numbering():
    lines = [post_line(5), adv_line(1), post_line(5), adv_line(2)]
    records, stats = tag_lines(lines)

    assert [r.line_number for r in records] == [0, 1, 2, 3]
    assert len({(r.batch_id, r.line_number) for r in records}) == len(records)
    assert stats.batches == 1


def test_fields_exclude_tag():
    records, _ = tag_lines([post_line(1), rga_line(44, 3.25)])
    assert records[1].fields == ("44", "3.25")


def test_signature_field_counts_match_row_schemas():
    for tag, (record_type, schema) in RECORD_SCHEMAS.items():
        assert SIGNATURES[tag] == (record_type, len(schema.payload_fields()))
    assert SIGNATURES["D"][1] == 13
    assert SIGNATURES["S"][1] == 18


def test_every_builder_line_is_classified(feed_lines):
    records, stats = tag_lines(feed_lines)

    assert stats.by_type == {
        'post_time': 2,
        'status': 4,
        'adv': 9,
        'mass_spec': 7,
        'turbo': 2,
        'temperature': 2,
    }
    assert stats.tagged_lines + stats.garbage_lines + stats.unclassified_lines == stats.total_lines
