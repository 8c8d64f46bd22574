import io
import random
import struct

import pytest

from udpcopy.debug import DebugLevel, get_level, set_level, set_stream
from udpcopy.msgevents import ErrorDrop, ErrorFlipBits, EventResult, InfoSeqNo, MsgEvent


@pytest.fixture
def out():
    saved = get_level()
    buf = io.StringIO()
    set_stream(buf)
    set_level(DebugLevel.INFO)
    yield buf
    set_stream(None)
    set_level(saved)


def packet(seq, payload=b"data"):
    return bytearray(struct.pack("!I", seq) + b"\x00\x00" + bytes([16]) + payload)


def test_result_values(out):
    results = [
        InfoSeqNo().run(packet(1), 1),
        ErrorFlipBits(random.Random(1)).run(packet(1), 1),
        ErrorDrop().run(packet(1), 1),
    ]
    assert [r.value for r in results] == [0, 1, 2]


def test_msg_event_is_abstract():
    with pytest.raises(TypeError):
        MsgEvent()


def test_drop_all_by_default(out):
    event = ErrorDrop()
    assert event.run(packet(1), 1) == EventResult.DROP
    assert out.getvalue() == " - DROPPED "


def test_drop_disabled(out):
    event = ErrorDrop()
    event.set_drop_all(False)
    assert event.run(packet(1), 1) == EventResult.UNCHANGED
    assert out.getvalue() == ""


def test_drop_specific_messages(out):
    event = ErrorDrop()
    event.set_drop_specific([2, 4])
    results = [event.run(packet(n), n) for n in range(1, 6)]
    assert results == [
        EventResult.UNCHANGED,
        EventResult.DROP,
        EventResult.UNCHANGED,
        EventResult.DROP,
        EventResult.UNCHANGED,
    ]
    assert event.drop_all is False


def test_drop_rejects_missing_packet():
    with pytest.raises(ValueError):
        ErrorDrop().run(None, 1)


def test_flip_changes_exactly_one_byte(out):
    original = packet(9, b"payload bytes")
    buf = bytearray(original)
    result = ErrorFlipBits(random.Random(3)).run(buf, 1)
    assert result == EventResult.CHANGED
    diffs = [(a, b) for a, b in zip(original, buf) if a != b]
    assert len(diffs) == 1
    assert diffs[0][0] ^ 0xFF == diffs[0][1]
    assert len(buf) == len(original)
    assert out.getvalue() == " - FLIPPED BITS "


def test_flip_twice_with_same_seed_restores(out):
    original = packet(11, b"round trip")
    buf = bytearray(original)
    ErrorFlipBits(random.Random(5)).run(buf, 1)
    assert buf != original
    ErrorFlipBits(random.Random(5)).run(buf, 1)
    assert buf == original


def test_flip_rejects_empty_packet():
    with pytest.raises(ValueError):
        ErrorFlipBits(random.Random(1)).run(bytearray(), 1)


def test_info_seq_no_counts(capsys):
    event = InfoSeqNo()
    for seq in (1, 2, 2, 3, 1):
        buf = packet(seq)
        before = bytes(buf)
        assert event.run(buf, seq) == EventResult.UNCHANGED
        assert bytes(buf) == before
    assert event.history == [1, 2, 2, 3, 1]
    assert event.counts == {1: 2, 2: 2, 3: 1}
    text = event.report()
    assert "  Msgs (Total)       :     5\n" in text
    assert "  Msgs (Unique SeqNo):     3\n" in text
    assert text.startswith("======== SeqNo Report ========\n")
    assert capsys.readouterr().err == text


def test_info_seq_no_reads_network_order():
    event = InfoSeqNo()
    event.run(packet(0x01020304), 1)
    assert event.history == [0x01020304]


def test_info_seq_no_rejects_short_packet():
    with pytest.raises(ValueError):
        InfoSeqNo().run(bytearray(b"\x00\x01"), 1)


def test_event_names():
    events = (ErrorDrop(), ErrorFlipBits(random.Random(1)), InfoSeqNo())
    assert [event.name for event in events] == [
        "errorDrop",
        "errorFlipBits",
        "infoSeqNo",
    ]


def test_error_events_report_empty():
    assert ErrorDrop().report() == ""
    assert ErrorFlipBits().report() == ""