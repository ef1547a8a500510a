"""
Tests for streamed output classification.
"""

import pytest

from winget_core.output_phase import (
    ELLIPSIS,
    MAX_STATUS_LENGTH,
    OperationPhase,
    PhaseSignal,
    PhaseTracker,
    classify_line,
)


class TestClassifyLine:
    @pytest.mark.parametrize("line", ["", "   ", None, "\t"])
    def test_blank_lines_give_no_signal(self, line):
        assert classify_line(line) is None

    def test_percent_line(self):
        assert classify_line("Downloading 42%") == PhaseSignal(OperationPhase.DOWNLOADING, percent=42)

    def test_progress_bar_line(self):
        signal = classify_line("  ██████████▒▒▒▒▒▒▒▒▒▒  7%")
        assert signal == PhaseSignal(OperationPhase.DOWNLOADING, percent=7)

    def test_percent_is_clamped(self):
        assert classify_line("150%").percent == 100

    def test_only_the_digits_before_the_sign_count(self):
        assert classify_line("100%5").percent == 100

    def test_four_digit_number_is_not_a_percentage(self):
        signal = classify_line("Progress 1500%")
        assert signal.phase is OperationPhase.OTHER

    def test_download_without_percent(self):
        signal = classify_line("Downloading https://example.invalid/setup.exe")
        assert signal == PhaseSignal(OperationPhase.DOWNLOADING)
        assert classify_line("Download size: 10 MB").phase is OperationPhase.DOWNLOADING

    @pytest.mark.parametrize("line", ["Installing package...", "Starting package install..."])
    def test_installing(self, line):
        assert classify_line(line) == PhaseSignal(OperationPhase.INSTALLING)

    def test_uninstalling_lines_hit_the_installing_rule_first(self):
        # "uninstalling" contains "installing" and the installing rule is checked first.
        assert classify_line("Uninstalling Vendor.App") == PhaseSignal(OperationPhase.INSTALLING)

    @pytest.mark.parametrize("line", ["Successfully installed.", "Successfully uninstalled"])
    def test_done(self, line):
        assert classify_line(line) == PhaseSignal(OperationPhase.DONE)

    def test_percent_wins_over_keywords(self):
        assert classify_line("Installing 30%").phase is OperationPhase.DOWNLOADING

    def test_other_keeps_short_text(self):
        assert classify_line("  Found Git [Git.Git] Version 2.45.1 ") == PhaseSignal(
            OperationPhase.OTHER, text="Found Git [Git.Git] Version 2.45.1"
        )

    def test_other_truncates_long_text(self):
        signal = classify_line("x" * 200)

        assert signal.phase is OperationPhase.OTHER
        assert signal.text == "x" * MAX_STATUS_LENGTH + ELLIPSIS

    def test_other_at_limit_is_not_truncated(self):
        assert classify_line("y" * MAX_STATUS_LENGTH).text == "y" * MAX_STATUS_LENGTH


class TestPhaseTracker:
    def test_download_latch_survives_unrecognised_lines(self):
        tracker = PhaseTracker()

        tracker.feed("Downloading 10%")
        tracker.feed("Verified installer hash")

        assert tracker.phase is OperationPhase.DOWNLOADING
        assert tracker.detail == "Verified installer hash"
        assert tracker.percent == 10
        assert tracker.status == "Downloading"

    def test_other_before_download_is_shown(self):
        tracker = PhaseTracker()

        tracker.feed("Found Git [Git.Git]")

        assert tracker.phase is OperationPhase.OTHER
        assert tracker.status == "Found Git [Git.Git]"

    def test_full_install_sequence(self):
        tracker = PhaseTracker()
        for line in [
            "Found Git [Git.Git] Version 2.45.1",
            "Downloading https://example.invalid/Git.exe",
            "  ████  50%",
            "  ████████  100%",
            "Successfully verified installer hash",
            "Starting package install...",
            "",
            "Successfully installed",
        ]:
            tracker.feed(line)

        assert tracker.phase is OperationPhase.DONE
        assert tracker.percent == 100

    def test_blank_line_changes_nothing(self):
        tracker = PhaseTracker()

        assert tracker.feed("   ") is None
        assert tracker.phase is None
        assert tracker.status == ""
