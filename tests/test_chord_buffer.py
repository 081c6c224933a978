import unittest

from chord_buffer import ChordBuffer
from config import CHORD_WINDOW_SEC


class FakeTimer:
    def __init__(self, interval, function, args=None):
        self.interval = interval
        self.function = function
        self.args = args or []
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        """Runs the callback as if the interval elapsed, even if cancelled too late."""
        self.function(*self.args)


class FakeTimerFactory:
    def __init__(self):
        self.timers = []

    def __call__(self, interval, function, args=None):
        timer = FakeTimer(interval, function, args)
        self.timers.append(timer)
        return timer

    @property
    def live(self):
        return [t for t in self.timers if t.started and not t.cancelled]


class TestChordBuffer(unittest.TestCase):
    def setUp(self):
        self.recorded = []
        self.timers = FakeTimerFactory()
        self.buffer = ChordBuffer(self.recorded.append, timer_factory=self.timers)

    def test_isolated_press_records_bare_label(self):
        self.buffer.press('a')
        self.assertTrue(self.buffer.pending)
        self.timers.timers[-1].fire()
        self.assertEqual(self.recorded, ['a'])
        self.assertFalse(self.buffer.pending)

    def test_presses_within_window_form_sorted_chord(self):
        for label in ['q', '1', '!']:
            self.buffer.press(label)
        self.timers.timers[-1].fire()
        self.assertEqual(self.recorded, ['[!1q]'])

    def test_arrival_order_does_not_matter(self):
        self.buffer.press('s')
        self.buffer.press('a')
        self.timers.timers[-1].fire()
        self.buffer.press('a')
        self.buffer.press('s')
        self.timers.timers[-1].fire()
        self.assertEqual(self.recorded, ['[as]', '[as]'])

    def test_each_press_restarts_the_window(self):
        self.buffer.press('a')
        self.buffer.press('b')
        self.buffer.press('c')
        self.assertEqual(len(self.timers.timers), 3)
        self.assertEqual(len(self.timers.live), 1)
        self.assertTrue(all(t.interval == CHORD_WINDOW_SEC for t in self.timers.timers))
        self.assertTrue(all(t.daemon for t in self.timers.timers))

    def test_superseded_timer_firing_late_does_nothing(self):
        self.buffer.press('a')
        first = self.timers.timers[0]
        self.buffer.press('b')
        first.fire()
        self.assertEqual(self.recorded, [])
        self.timers.timers[-1].fire()
        self.assertEqual(self.recorded, ['[ab]'])

    def test_repeated_label_counts_once(self):
        self.buffer.press('a')
        self.buffer.press('a')
        self.timers.timers[-1].fire()
        self.assertEqual(self.recorded, ['a'])

    def test_release_does_not_close_the_chord(self):
        self.buffer.press('a')
        self.buffer.release('a')
        self.buffer.press('b')
        self.buffer.release('b')
        self.assertEqual(self.recorded, [])
        self.timers.timers[-1].fire()
        self.assertEqual(self.recorded, ['[ab]'])

    def test_flush_emits_immediately(self):
        self.buffer.press('a')
        self.assertEqual(self.buffer.flush(), 'a')
        self.assertTrue(self.timers.timers[-1].cancelled)
        self.assertIsNone(self.buffer.flush())
        self.assertEqual(self.recorded, ['a'])

    def test_cancel_drops_pending_chord(self):
        self.buffer.press('a')
        timer = self.timers.timers[-1]
        self.buffer.cancel()
        self.assertTrue(timer.cancelled)
        timer.fire()
        self.assertEqual(self.recorded, [])
        self.assertFalse(self.buffer.pending)

    def test_callback_error_does_not_escape(self):
        def explode(token):
            raise RuntimeError("boom")

        buffer = ChordBuffer(explode, timer_factory=self.timers)
        buffer.press('a')
        self.timers.timers[-1].fire()
        self.assertFalse(buffer.pending)

    def test_real_timer_closes_chord(self):
        import threading

        done = threading.Event()
        recorded = []

        def record(token):
            recorded.append(token)
            done.set()

        buffer = ChordBuffer(record, window_sec=0.2)
        buffer.press('b')
        buffer.press('a')
        self.assertTrue(done.wait(2.0))
        self.assertEqual(recorded, ['[ab]'])


if __name__ == '__main__':
    unittest.main()
