import re

from recallbench.timer import Timer


def test_timer_is_monotonic_and_formats_stamp():
    timer = Timer()
    first = timer.elapsed()
    second = timer.elapsed()
    assert 0.0 <= first <= second
    assert re.fullmatch(r"\[\d+\.\d{3} s\]", timer.stamp())
