from __future__ import annotations

from unittest import TestCase

from .lyrics import current_line, next_line, parse_lrc
from .models import LyricLine


SAMPLE = """[ar:Someone]
[ti:Some Song]
[00:12.50]First line
[00:05.00]Earlier line

not a lyric
[00:20.123]Millisecond line
[00:30.00][01:10.5]Chorus
[00:40.00]
"""


class ParseLrcTests(TestCase):
    def test_parses_sorted_and_drops_untagged_lines(self):
        lines = parse_lrc(SAMPLE)

        self.assertEqual(
            [line.text for line in lines],
            ["Earlier line", "First line", "Millisecond line", "Chorus", "Chorus"],
        )
        times = [line.time for line in lines]
        self.assertEqual(times, sorted(times))

    def test_fraction_precision_is_normalised(self):
        lines = parse_lrc(SAMPLE)
        by_text = {line.text: line.time for line in lines}

        self.assertAlmostEqual(by_text["First line"], 12.5)
        self.assertAlmostEqual(by_text["Millisecond line"], 20.123)

    def test_line_with_two_tags_yields_two_entries(self):
        chorus = [line for line in parse_lrc(SAMPLE) if line.text == "Chorus"]

        self.assertEqual(len(chorus), 2)
        self.assertAlmostEqual(chorus[0].time, 30.0)
        self.assertAlmostEqual(chorus[1].time, 70.5)

    def test_malformed_input_yields_empty_list(self):
        self.assertEqual(parse_lrc(""), [])
        self.assertEqual(parse_lrc("just some words\nno tags here"), [])
        self.assertEqual(parse_lrc("[ar:Artist]\n[length: 03:20]"), [])


class LookupTests(TestCase):
    def setUp(self) -> None:
        self.lines = [
            LyricLine(time=5.0, text="a"),
            LyricLine(time=10.0, text="b"),
            LyricLine(time=15.0, text="c"),
        ]

    def test_current_line_before_first_cue_is_none(self):
        self.assertIsNone(current_line(self.lines, 4.99))
        self.assertIsNone(current_line([], 100))

    def test_current_line_between_and_after_cues(self):
        self.assertEqual(current_line(self.lines, 5.0).text, "a")
        self.assertEqual(current_line(self.lines, 12.3).text, "b")
        self.assertEqual(current_line(self.lines, 15.0).text, "c")
        self.assertEqual(current_line(self.lines, 500).text, "c")

    def test_current_line_is_monotonic(self):
        previous = -1
        for tenth in range(0, 200):
            line = current_line(self.lines, tenth / 10)
            index = self.lines.index(line) if line else -1
            self.assertGreaterEqual(index, previous)
            previous = index

    def test_next_line(self):
        self.assertEqual(next_line(self.lines, 0).text, "a")
        self.assertEqual(next_line(self.lines, 10.0).text, "c")
        self.assertIsNone(next_line(self.lines, 15.0))
