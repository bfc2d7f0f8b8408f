"""Unit tests for the latest-request-wins recomputation cell."""

import threading

import pytest

from sp_signals.recompute import LatestResultCell, session_cell


@pytest.fixture
def cell():
    c = LatestResultCell(max_workers=2)
    yield c
    c.shutdown()


class TestLatestResultCell:

    def test_sequential_requests(self, cell):
        first = cell.submit(lambda x: x * 2, 2)
        assert cell.wait(timeout=5) == (first, 4)
        second = cell.submit(lambda x: x * 2, 5)
        assert second > first
        assert cell.wait(timeout=5) == (second, 10)

    def test_slow_stale_result_never_overwrites_newer(self, cell):
        release = threading.Event()
        started = threading.Event()

        def slow():
            started.set()
            release.wait(timeout=5)
            return 'old'

        old_id = cell.submit(slow)
        started.wait(timeout=5)
        new_id = cell.submit(lambda: 'new')
        assert cell.wait(timeout=5) == (new_id, 'new')

        release.set()
        cell.shutdown(wait=True)
        assert old_id < new_id
        assert cell.latest() == (new_id, 'new')

    def test_nothing_submitted(self, cell):
        assert cell.latest() is None
        assert cell.wait(timeout=1) is None
        assert cell.latest_request_id == 0

    def test_error_reaches_waiter(self, cell):
        def boom():
            raise ValueError('bad params')

        cell.submit(boom)
        with pytest.raises(ValueError):
            cell.wait(timeout=5)
        assert cell.latest() is None

    def test_failed_request_is_not_left_pending(self, cell):
        def boom():
            raise ValueError('bad params')

        cell.submit(boom)
        with pytest.raises(ValueError):
            cell.wait(timeout=5)
        assert cell.pending == 0
        # the error stays attached to the newest request
        with pytest.raises(ValueError):
            cell.wait(timeout=5)

    def test_success_after_failure_clears_error(self, cell):
        def boom():
            raise ValueError('bad params')

        cell.submit(boom)
        with pytest.raises(ValueError):
            cell.wait(timeout=5)
        new_id = cell.submit(lambda: 'ok')
        assert cell.wait(timeout=5) == (new_id, 'ok')


class TestSessionCell:

    def test_one_cell_per_session(self):
        state_a, state_b = {}, {}
        cell_a = session_cell(state_a)
        cell_b = session_cell(state_b)
        try:
            assert cell_a is not cell_b
            assert session_cell(state_a) is cell_a
        finally:
            cell_a.shutdown()
            cell_b.shutdown()

    def test_sessions_do_not_see_each_other(self):
        state_a, state_b = {}, {}
        cell_a, cell_b = session_cell(state_a), session_cell(state_b)
        try:
            id_a = cell_a.submit(lambda tp: f'tp={tp}', 0.05)
            cell_b.submit(lambda tp: f'tp={tp}', 0.20)
            assert cell_a.wait(timeout=5) == (id_a, 'tp=0.05')
            assert cell_b.wait(timeout=5)[1] == 'tp=0.2'
        finally:
            cell_a.shutdown()
            cell_b.shutdown()
