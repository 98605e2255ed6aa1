"""
Stop-sequence filter tests.
"""

import threading

import pytest

from core.stop_filter import StopFilter


def run(fragments, stops):
    return list(StopFilter(iter(fragments), stops))


class CountingSource:
    """Fragment generator that records pulls and closure."""

    def __init__(self, fragments):
        self.fragments = fragments
        self.pulled = 0
        self.closed = False

    def __iter__(self):
        try:
            for fragment in self.fragments:
                self.pulled += 1
                yield fragment
        finally:
            self.closed = True


class TestStopFilter:

    def test_no_stop_words_passes_everything(self):
        assert run(["a", "b", "c"], []) == ["a", "b", "c"]

    def test_empty_stop_word_ignored(self):
        assert run(["a", "b"], [""]) == ["a", "b"]

    def test_full_match_ends_stream_and_discards(self):
        assert run(["Hello", " wor", "ld", "STOP", "more"], ["STOP"]) == ["Hello", " wor", "ld"]

    def test_match_spanning_fragments(self):
        assert run(["x", "S", "TO", "P tail", "y"], ["STOP"]) == ["x"]

    def test_partial_match_released_when_it_diverges(self):
        assert run(["ST", "x", "y"], ["STOP"]) == ["STx", "y"]

    def test_held_partial_dropped_at_end(self):
        assert run(["a", "ST"], ["STOP"]) == ["a"]

    def test_full_match_beats_partial_hold(self):
        # "ab" fully matches the first stop and is a prefix of the second
        assert run(["ab", "c"], ["abc", "ab"]) == []

    def test_any_stop_word_matches(self):
        assert run(["one", "\n\n", "two"], ["###", "\n\n"]) == ["one"]

    def test_match_records_stop_word(self):
        gate = StopFilter(iter(["a", "END"]), ["END"])
        assert list(gate) == ["a"]
        assert gate.matched == "END"

    @pytest.mark.parametrize("split", range(1, 16))
    def test_emitted_fragments_never_start_with_stop(self, split):
        text = "STOP then more!"
        fragments = [text[:split], text[split:]]
        out = run([f for f in fragments if f], ["STOP"])
        assert out == []

    @pytest.mark.parametrize("split", range(1, 12))
    def test_safe_for_any_two_way_split(self, split):
        text = "hello world"
        out = run([text[:split], text[split:]], ["hello", "world"])
        assert not any(frag.startswith(("hello", "world")) for frag in out)


class TestFusedBehaviour:

    def test_fused_after_natural_end(self):
        gate = StopFilter(iter(["a"]), ["z"])
        assert list(gate) == ["a"]
        assert gate.fused
        for _ in range(3):
            with pytest.raises(StopIteration):
                next(gate)

    def test_fused_after_match_stops_pulling(self):
        source = CountingSource(["a", "STOP", "b", "c"])
        gate = StopFilter(iter(source), ["STOP"])
        assert list(gate) == ["a"]
        assert source.pulled == 2
        assert source.closed
        with pytest.raises(StopIteration):
            next(gate)
        assert source.pulled == 2

    def test_close_releases_inner(self):
        source = CountingSource(["a", "b"])
        gate = StopFilter(iter(source), [])
        assert next(gate) == "a"
        gate.close()
        assert source.closed
        with pytest.raises(StopIteration):
            next(gate)

    def test_close_while_pull_in_progress(self):
        """close() from another thread waits for the running step, then closes."""
        started = threading.Event()
        release = threading.Event()
        closed = []

        def slow_source():
            try:
                yield "a"
                started.set()
                release.wait(5)
                yield "b"
                yield "c"
            finally:
                closed.append(True)

        gate = StopFilter(slow_source(), [])
        assert next(gate) == "a"

        pulled = []
        worker = threading.Thread(target=lambda: pulled.append(next(gate, None)))
        worker.start()
        assert started.wait(5)

        timer = threading.Timer(0.05, release.set)
        timer.start()
        gate.close()
        worker.join(5)
        timer.join()

        assert pulled == ["b"]
        assert closed == [True]
        assert next(gate, None) is None
