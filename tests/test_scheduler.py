"""Tests for the polling cycle.

Uses FakeMailbox (tests/helpers.py) in place of an IMAP connection.
"""

import threading
from unittest.mock import MagicMock

import pytest

from mailpoll.decode import MailDecoder
from mailpoll.errors import DecodeError, MailboxConnectionError, ProtocolError
from mailpoll.fetch.client import Flag
from mailpoll.fetch.scheduler import CycleResult, FetchScheduler, partition, run_cycle
from tests.helpers import FakeMailbox, make_config, make_raw_message


class RecordingSink:
    """Thread-safe sink collecting emitted records."""

    def __init__(self):
        self.records = []
        self._lock = threading.Lock()

    def __call__(self, record):
        with self._lock:
            self.records.append(record)

    @property
    def subjects(self) -> list[str]:
        return [r.fields["subject"] for r in self.records]


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


def mailbox_with(count: int, **kwargs) -> FakeMailbox:
    return FakeMailbox({n: make_raw_message(n) for n in range(1, count + 1)}, **kwargs)


class TestPartition:
    """Tests for partition()."""

    def test_splits_into_consecutive_batches(self):
        batches = partition(list(range(1, 121)), 50)

        assert [len(b) for b in batches] == [50, 50, 20]
        assert batches[0][0] == 1
        assert batches[2][-1] == 120

    def test_no_ids_no_batches(self):
        assert partition([], 50) == []

    def test_rejects_zero_size(self):
        with pytest.raises(ValueError):
            partition([1, 2], 0)


class TestCycleResult:
    """Tests for CycleResult dataclass."""

    def test_default_values(self):
        result = CycleResult()
        assert result.emitted == 0
        assert result.flagged == 0
        assert result.errors == 0
        assert result.error_details == []

    def test_add_error(self):
        result = CycleResult()
        result.add_error("message 7", "bad charset")

        assert result.errors == 1
        assert result.error_details == ["message 7: bad charset"]


class TestRunCycle:
    """Tests for FetchScheduler.run_cycle()."""

    def test_full_cycle_batches_and_flags_every_id_once(self, sink: RecordingSink):
        mailbox = mailbox_with(120)
        config = make_config(fetch_count=50)

        result = FetchScheduler(config).run_cycle(mailbox, sink)

        fetches = [call[1] for call in mailbox.calls if call[0] == "fetch"]
        assert sorted(len(ids) for ids in fetches) == [20, 50, 50]

        flagged = [i for ids, _ in mailbox.flags for i in ids]
        assert sorted(flagged) == list(range(1, 121))
        assert all(flag is Flag.SEEN for _, flag in mailbox.flags)

        assert result.found == 120
        assert result.batches == 3
        assert result.emitted == 120
        assert result.flagged == 120
        assert len(sink.records) == 120

    def test_flags_only_after_all_fetches(self, sink: RecordingSink):
        mailbox = mailbox_with(120, fetch_delay=0.01)

        FetchScheduler(make_config(fetch_count=50)).run_cycle(mailbox, sink)

        names = mailbox.call_names
        last_fetch = max(i for i, name in enumerate(names) if name == "fetch")
        first_store = min(i for i, name in enumerate(names) if name == "store_flags")
        assert last_fetch < first_store

    def test_fetches_never_overlap(self, sink: RecordingSink):
        mailbox = mailbox_with(30, fetch_delay=0.01)

        FetchScheduler(make_config(fetch_count=5, workers=3)).run_cycle(mailbox, sink)

        assert not mailbox.overlapping_fetches

    def test_call_sequence(self, sink: RecordingSink):
        mailbox = mailbox_with(2)
        config = make_config(folder="Alerts", query="UNSEEN")

        FetchScheduler(config).run_cycle(mailbox, sink)

        assert mailbox.calls[0] == ("connect",)
        assert mailbox.calls[1] == ("select_folder", "Alerts")
        assert mailbox.calls[2] == ("search", "UNSEEN")
        assert mailbox.call_names[-2:] == ["close", "disconnect"]

    def test_batch_order_matches_fetch_order(self, sink: RecordingSink):
        mailbox = mailbox_with(7)

        FetchScheduler(make_config(fetch_count=3, workers=1)).run_cycle(mailbox, sink)

        assert sink.subjects == [f"message {n}" for n in range(1, 8)]

    def test_delete_mode_uses_deleted_flag(self, sink: RecordingSink):
        mailbox = mailbox_with(3)

        FetchScheduler(make_config(delete=True)).run_cycle(mailbox, sink)

        assert mailbox.flags == [((1, 2, 3), Flag.DELETED)]

    def test_no_flags_when_flagging_disabled(self, sink: RecordingSink):
        mailbox = mailbox_with(3)

        result = FetchScheduler(make_config(flag_when_read=False)).run_cycle(mailbox, sink)

        assert "store_flags" not in mailbox.call_names
        assert result.flagged == 0
        assert len(sink.records) == 3

    def test_empty_search_is_a_no_op(self, sink: RecordingSink):
        mailbox = FakeMailbox({})

        result = FetchScheduler(make_config()).run_cycle(mailbox, sink)

        assert result.batches == 0
        assert "fetch" not in mailbox.call_names
        assert "store_flags" not in mailbox.call_names
        assert mailbox.call_names[-2:] == ["close", "disconnect"]

    def test_skips_items_without_content(self, sink: RecordingSink):
        mailbox = FakeMailbox({1: make_raw_message(1), 2: None, 3: make_raw_message(3)})

        result = FetchScheduler(make_config()).run_cycle(mailbox, sink)

        assert sink.subjects == ["message 1", "message 3"]
        assert result.skipped == 1
        assert result.errors == 0

    def test_decode_error_skips_only_that_message(self, sink: RecordingSink):
        config = make_config(fetch_count=2)
        real = MailDecoder(config)

        def decode_raw(raw: bytes):
            if b"message 2" in raw:
                raise DecodeError("broken")
            return real.decode_raw(raw)

        decoder = MagicMock()
        decoder.decode_raw.side_effect = decode_raw
        mailbox = mailbox_with(4)

        result = FetchScheduler(config, decoder=decoder).run_cycle(mailbox, sink)

        assert sorted(sink.subjects) == ["message 1", "message 3", "message 4"]
        assert result.errors == 1
        assert "message 2" in result.error_details[0]
        # The batch is still flagged
        assert result.flagged == 4

    def test_protocol_error_aborts_only_its_batch(self, sink: RecordingSink):
        mailbox = mailbox_with(6)
        mailbox.fetch_errors[3] = ProtocolError("BAD fetch")

        result = FetchScheduler(make_config(fetch_count=2)).run_cycle(mailbox, sink)

        assert sorted(sink.subjects) == ["message 1", "message 2", "message 5", "message 6"]
        flagged = sorted(i for ids, _ in mailbox.flags for i in ids)
        assert flagged == [1, 2, 5, 6]
        assert result.errors == 1
        assert "BAD fetch" in result.error_details[0]

    def test_sink_error_aborts_only_its_batch(self):
        emitted = []

        def failing_sink(record):
            if record.fields["subject"] == "message 3":
                raise OSError("sink down")
            emitted.append(record.fields["subject"])

        mailbox = mailbox_with(6)

        scheduler = FetchScheduler(make_config(fetch_count=2))
        result = scheduler.run_cycle(mailbox, failing_sink)

        assert sorted(emitted) == ["message 1", "message 2", "message 5", "message 6"]
        flagged = sorted(i for ids, _ in mailbox.flags for i in ids)
        assert flagged == [1, 2, 5, 6]
        assert result.errors == 1
        assert result.error_details == ["batch 3..4: sink down"]
        assert mailbox.call_names[-2:] == ["close", "disconnect"]

    def test_connection_error_aborts_cycle_without_flagging(self, sink: RecordingSink):
        mailbox = mailbox_with(6)
        mailbox.fetch_errors[3] = MailboxConnectionError("connection reset")

        with pytest.raises(MailboxConnectionError):
            FetchScheduler(make_config(fetch_count=2)).run_cycle(mailbox, sink)

        assert "store_flags" not in mailbox.call_names
        assert mailbox.call_names[-2:] == ["close", "disconnect"]

    def test_connect_failure_propagates(self, sink: RecordingSink):
        mailbox = mailbox_with(2)
        mailbox.connect_error = MailboxConnectionError("login failed")

        with pytest.raises(MailboxConnectionError):
            FetchScheduler(make_config()).run_cycle(mailbox, sink)

        assert mailbox.call_names == ["connect"]
        assert sink.records == []

    def test_store_protocol_error_is_recorded(self, sink: RecordingSink):
        mailbox = mailbox_with(2)
        mailbox.store_error = ProtocolError("NO store")

        result = FetchScheduler(make_config()).run_cycle(mailbox, sink)

        assert result.flagged == 0
        assert result.errors == 1
        assert len(sink.records) == 2

    def test_close_errors_do_not_mask_result(self, sink: RecordingSink):
        mailbox = mailbox_with(1)
        mailbox.close = MagicMock(side_effect=ProtocolError("No folder selected"))

        result = FetchScheduler(make_config()).run_cycle(mailbox, sink)

        assert result.emitted == 1
        assert "disconnect" in mailbox.call_names

    def test_module_level_run_cycle(self, sink: RecordingSink):
        mailbox = mailbox_with(2)

        result = run_cycle(mailbox, make_config(), sink)

        assert result.emitted == 2
