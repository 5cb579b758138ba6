"""Event log tests."""

from pool_events import CommitmentInserted, EventHandlerError, EventLog, NullifierSpent


class TestEventLog:
    def test_records_in_order(self):
        log = EventLog()
        log.emit(CommitmentInserted(1, 0, 10))
        log.emit(NullifierSpent(5, "w"))
        log.emit(CommitmentInserted(2, 1, 11))
        assert len(log) == 3
        assert [e.leaf_index for e in log.records(CommitmentInserted)] == [0, 1]
        assert [e.event_type for e in log.records()] == \
            ["CommitmentInserted", "NullifierSpent", "CommitmentInserted"]

    def test_subscribe_filters_by_type(self):
        log = EventLog()
        seen = []

        @log.subscribe(NullifierSpent)
        def on_spend(event):
            seen.append(event.nullifier)

        log.emit(CommitmentInserted(1, 0, 10))
        log.emit(NullifierSpent(5, "w"))
        assert seen == [5]

        assert log.unsubscribe(on_spend)
        log.emit(NullifierSpent(6, "w"))
        assert seen == [5]
        assert not log.unsubscribe(on_spend)

    def test_subscribe_all(self):
        log = EventLog()
        seen = []
        log.subscribe()(seen.append)
        log.emit(CommitmentInserted(1, 0, 10))
        log.emit(NullifierSpent(5, "w"))
        assert len(seen) == 2

    def test_to_dicts(self):
        log = EventLog()
        log.emit(CommitmentInserted(1, 0, 10))
        assert log.to_dicts() == [
            {"commitment": 1, "leaf_index": 0, "new_root": 10, "event_type": "CommitmentInserted"}
        ]


    def test_failing_handler_is_contained(self):
        failures = []
        log = EventLog(on_error=failures.append)
        seen = []

        @log.subscribe(NullifierSpent)
        def broken(event):
            raise RuntimeError("subscriber down")

        log.subscribe()(seen.append)

        log.emit(NullifierSpent(5, "w"))
        assert len(log) == 1
        assert len(seen) == 1
        assert log.error_count == 1
        assert len(failures) == 1
        assert isinstance(failures[0], EventHandlerError)
        assert isinstance(failures[0].error, RuntimeError)
        assert failures[0].event.nullifier == 5
        assert failures[0].handler is broken

    def test_failing_handler_without_callback(self):
        log = EventLog()

        @log.subscribe()
        def broken(event):
            raise ValueError("nope")

        log.emit(CommitmentInserted(1, 0, 10))
        log.emit(CommitmentInserted(2, 1, 11))
        assert log.error_count == 2
        assert len(log) == 2
