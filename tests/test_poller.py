import threading
from unittest.mock import MagicMock

import pytest

from jobtrace.history import HistoryQuery
from jobtrace.pipeline import RouteResult, TracePipeline, TraceStatus
from jobtrace.poller import LatestResult, LivePoller, TraceSession

QUERY = HistoryQuery("device-1", "JobOrder-1")


def make_result(query=QUERY, status=TraceStatus.OK):
    return RouteResult(query=query, status=status)


class TestLatestResult:

    def test_sequence_numbers_increase(self):
        latest = LatestResult()
        assert [latest.begin(), latest.begin(), latest.begin()] == [1, 2, 3]

    def test_stale_result_discarded(self):
        latest = LatestResult()
        first = latest.begin()
        second = latest.begin()

        assert latest.offer(second, "second")
        assert not latest.offer(first, "first")
        assert latest.value == "second"
        assert latest.applied_seq == second

    def test_in_order_results_applied(self):
        latest = LatestResult()
        first = latest.begin()
        assert latest.offer(first, "first")
        second = latest.begin()
        assert latest.offer(second, "second")
        assert latest.value == "second"

    def test_empty(self):
        latest = LatestResult()
        assert latest.value is None
        assert latest.applied_seq == 0


class TestTraceSession:

    def test_submit_applies_and_notifies(self):
        pipeline = MagicMock(spec=TracePipeline)
        result = make_result()
        pipeline.run.return_value = result
        received = []

        session = TraceSession(pipeline, received.append)
        returned, applied = session.submit(QUERY)

        assert applied
        assert returned is result
        assert session.current is result
        assert received == [result]

    def test_later_query_wins_over_slow_earlier_query(self):
        older = HistoryQuery("device-1", "JobOrder-1")
        newer = HistoryQuery("device-1", "JobOrder-2")
        older_started = threading.Event()
        release_older = threading.Event()
        received = []

        def run(query):
            if query == older:
                older_started.set()
                release_older.wait(5)
            return make_result(query)

        pipeline = MagicMock(spec=TracePipeline)
        pipeline.run.side_effect = run
        session = TraceSession(pipeline, received.append)

        outcomes = {}
        slow = threading.Thread(
            target=lambda: outcomes.setdefault("older", session.submit(older))
        )
        slow.start()
        # The older query holds its sequence number once its run started
        assert older_started.wait(5)

        _, newer_applied = session.submit(newer)
        release_older.set()
        slow.join(5)

        assert newer_applied
        assert outcomes["older"][1] is False
        assert session.current.query == newer
        assert [r.query for r in received] == [newer]


class TestLivePoller:

    def test_poll_once_runs_pipeline(self):
        pipeline = MagicMock(spec=TracePipeline)
        pipeline.run.return_value = make_result()
        received = []

        poller = LivePoller(pipeline, QUERY, received.append, interval=2.0)
        result = poller.poll_once()

        pipeline.run.assert_called_once_with(QUERY)
        assert received == [result]

    def test_runs_are_never_concurrent(self):
        active = []
        overlaps = []
        calls = threading.Semaphore(0)

        def run(query):
            active.append(query)
            if len(active) > 1:
                overlaps.append(len(active))
            active.pop()
            calls.release()
            return make_result(query)

        pipeline = MagicMock(spec=TracePipeline)
        pipeline.run.side_effect = run

        poller = LivePoller(pipeline, QUERY, lambda result: None, interval=0.01)
        poller.start()
        for _ in range(3):
            assert calls.acquire(timeout=5)
        poller.stop(timeout=5)

        assert not poller.is_running()
        assert overlaps == []
        assert pipeline.run.call_count >= 3

    def test_callback_failure_does_not_stop_polling(self):
        calls = threading.Semaphore(0)
        pipeline = MagicMock(spec=TracePipeline)
        pipeline.run.return_value = make_result()

        def on_result(result):
            calls.release()
            raise RuntimeError("display failed")

        poller = LivePoller(pipeline, QUERY, on_result, interval=0.01)
        poller.start()
        assert calls.acquire(timeout=5)
        assert calls.acquire(timeout=5)
        poller.stop(timeout=5)

    def test_start_refused_while_stopped_loop_is_finishing(self):
        entered = threading.Event()
        release = threading.Event()

        def run(query):
            entered.set()
            release.wait(5)
            return make_result(query)

        pipeline = MagicMock(spec=TracePipeline)
        pipeline.run.side_effect = run

        poller = LivePoller(pipeline, QUERY, lambda result: None, interval=10)
        poller.start()
        assert entered.wait(5)

        poller.stop(timeout=0.05)
        assert poller.is_running()
        with pytest.raises(RuntimeError):
            poller.start()
        assert pipeline.run.call_count == 1

        release.set()
        poller.stop(timeout=5)
        assert not poller.is_running()
