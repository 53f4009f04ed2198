import tempfile
import unittest
from pathlib import Path

from danmu_archive.parsers.ass_scanner import (
    extract_comment_field,
    extract_live_id,
    find_comment_field,
    iter_section,
    parse_comment_field,
    parse_section_header,
)


class ScannerTests(unittest.TestCase):
    def _write(self, text: str) -> Path:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "live.ass"
        path.write_text(text, encoding="utf-8")
        return path

    def test_section_header(self) -> None:
        self.assertEqual(parse_section_header("[Script Info]"), "Script Info")
        self.assertEqual(parse_section_header("  [Events]  "), "Events")
        self.assertIsNone(parse_section_header("; [Events]"))
        self.assertIsNone(parse_section_header("[]"))
        self.assertIsNone(parse_section_header("Title: [x"))

    def test_comment_field(self) -> None:
        self.assertEqual(parse_comment_field("; LiveID: abc123", "LiveID"), "abc123")
        self.assertEqual(parse_comment_field(";LiveID:abc123 trailing", "LiveID"), "abc123")
        self.assertIsNone(parse_comment_field("; LiveID:", "LiveID"))
        self.assertIsNone(parse_comment_field("LiveID: abc123", "LiveID"))
        self.assertIsNone(parse_comment_field("; LiveStartTime: 2025-01-01", "LiveID"))
        self.assertEqual(
            parse_comment_field("; LiveStartTime: 2025-01-01 08:00:00.123 ", "LiveStartTime", whole_value=True),
            "2025-01-01 08:00:00.123",
        )

    def test_iter_section_stops_at_next_header(self) -> None:
        lines = ["[Script Info]", "a", "[Events]", "b", "c", "[Fonts]", "d"]
        self.assertEqual(list(iter_section(lines, "Events")), [(4, "b"), (5, "c")])
        self.assertEqual(list(iter_section(lines, "Missing")), [])

    def test_metadata_outside_script_info_is_ignored(self) -> None:
        lines = ["[Script Info]", "Title: x", "[Events]", "; LiveID: wrong"]
        self.assertIsNone(find_comment_field(lines, "LiveID"))

    def test_first_match_wins(self) -> None:
        path = self._write("[Script Info]\n; LiveID: first\n; LiveID: second\n")
        self.assertEqual(extract_live_id(path), "first")

    def test_absent_field_is_none(self) -> None:
        path = self._write("[Script Info]\nTitle: x\n\n[Events]\n")
        self.assertIsNone(extract_live_id(path))
        self.assertIsNone(extract_comment_field(path, "LiveStartTime", whole_value=True))

    def test_missing_file_raises(self) -> None:
        with self.assertRaises(OSError):
            extract_live_id("/nonexistent/dir/live.ass")
