import os

import pytest

from trimmer.printer import OutputPrinter
from trimmer.utils import (
    SUPPORTED_INPUT_FORMATS,
    format_time,
    get_output_path,
    round_half_up,
    validate_input_file,
    validate_output_path,
    validate_param_range,
)


class TestFormatTime:
    """Tests for MM:SS rendering."""

    @pytest.mark.parametrize("seconds,expected", [
        (0, "00:00"),
        (5, "00:05"),
        (65, "01:05"),
        (65.9, "01:05"),
        (599.99, "09:59"),
        (3600, "60:00"),
        (6001, "100:01"),
    ])
    def test_values(self, seconds: float, expected: str) -> None:
        assert format_time(seconds) == expected

    def test_negative_floors_toward_minus_infinity(self) -> None:
        # floor(-5 / 60) = -1, -5 mod 60 = 55
        assert format_time(-5) == "-1:55"


class TestRoundHalfUp:
    """Tests for the ms/frame rounding rule."""

    def test_halves_go_up(self) -> None:
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(-2.5) == -2

    def test_nearest(self) -> None:
        assert round_half_up(2.49) == 2
        assert round_half_up(2.51) == 3


class TestValidateInputFile:
    """Tests for input path validation."""

    def test_nonexistent_file_raises_file_not_found(self) -> None:
        with pytest.raises(FileNotFoundError):
            validate_input_file("/nonexistent/path/voice.mp3")

    def test_directory_instead_of_file_raises_value_error(self, tmp_path) -> None:
        with pytest.raises(ValueError, match="not a file"):
            validate_input_file(str(tmp_path))

    def test_unsupported_extension_raises_value_error(self, tmp_path) -> None:
        bad_file: str = os.path.join(str(tmp_path), "voice.txt")
        with open(bad_file, "w") as f:
            f.write("not audio")
        with pytest.raises(ValueError, match="Unsupported input format"):
            validate_input_file(bad_file)

    def test_all_supported_extensions_recognized(self, tmp_path) -> None:
        for ext in SUPPORTED_INPUT_FORMATS:
            path: str = os.path.join(str(tmp_path), f"voice{ext}")
            open(path, "wb").close()
            validate_input_file(path)


class TestValidateOutputPath:
    """Tests for output path validation."""

    def test_non_wav_output_raises(self, tmp_path) -> None:
        with pytest.raises(ValueError, match="Unsupported output format"):
            validate_output_path(os.path.join(str(tmp_path), "clip.mp3"))

    def test_missing_output_directory_raises(self) -> None:
        with pytest.raises(FileNotFoundError):
            validate_output_path("/nonexistent/dir/clip.wav")

    def test_valid_wav_output_passes(self, tmp_path) -> None:
        validate_output_path(os.path.join(str(tmp_path), "clip.WAV"))


class TestValidateParamRange:
    """Tests for float parameter bounds."""

    def test_at_bounds_passes(self) -> None:
        validate_param_range(0.0, "quiet_threshold", 0.0, 1.0)
        validate_param_range(1.0, "quiet_threshold", 0.0, 1.0)

    def test_out_of_range_names_param(self) -> None:
        with pytest.raises(ValueError, match="silence_threshold"):
            validate_param_range(1.5, "silence_threshold", 0.0, 1.0)


class TestGetOutputPath:
    """Tests for auto-generated output paths."""

    def test_mp3_becomes_trimmed_wav(self) -> None:
        assert get_output_path("voice.mp3") == "voice_trimmed.wav"

    def test_custom_suffix(self) -> None:
        assert get_output_path("take2.wav", suffix="_cut") == "take2_cut.wav"

    def test_nested_path_preserved(self) -> None:
        assert get_output_path("/a/b/voice.m4a") == "/a/b/voice_trimmed.wav"


class TestOutputPrinter:
    """Tests for CLI output formatting."""

    def test_success_prints_to_stdout(self, capsys) -> None:
        printer: OutputPrinter = OutputPrinter(no_color=True)
        printer.success("clip.wav", details={"Range": "00:01 → 00:10", "Size": "281.3 KB"})
        captured = capsys.readouterr()
        assert "clip.wav" in captured.out
        assert "00:01 → 00:10" in captured.out
        assert "281.3 KB" in captured.out

    def test_error_prints_to_stderr(self, capsys) -> None:
        printer: OutputPrinter = OutputPrinter(no_color=True)
        printer.error("Could not process audio.", hint="Adjust the trim range.")
        captured = capsys.readouterr()
        assert "Could not process audio." in captured.err
        assert "Adjust the trim range." in captured.err
        assert captured.out == ""

    def test_warning_prints_tips(self, capsys) -> None:
        printer: OutputPrinter = OutputPrinter(no_color=True)
        printer.warning("Your audio seems very quiet.", tips=["Speak closer", "Raise gain"])
        captured = capsys.readouterr()
        assert "Your audio seems very quiet." in captured.out
        assert "• Speak closer" in captured.out
        assert "• Raise gain" in captured.out

    def test_report_prints_details(self, capsys) -> None:
        printer: OutputPrinter = OutputPrinter(no_color=True)
        printer.report("Audio analysis", {"Duration": "00:12"})
        captured = capsys.readouterr()
        assert "Audio analysis" in captured.out
        assert "Duration  " in captured.out

    def test_quiet_suppresses_everything_but_errors(self, capsys) -> None:
        printer: OutputPrinter = OutputPrinter(quiet=True, no_color=True)
        printer.success("clip.wav")
        printer.warning("Silent edges.")
        printer.info("Loading.")
        printer.report("Audio analysis", {"Duration": "00:12"})
        printer.error("Critical failure.")
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "Critical failure." in captured.err

    def test_no_color_env_variable(self, monkeypatch) -> None:
        monkeypatch.setenv("NO_COLOR", "1")
        assert OutputPrinter().no_color is True

    def test_colorize(self) -> None:
        assert OutputPrinter(no_color=True)._colorize("hi", "32") == "hi"
        assert OutputPrinter(no_color=False)._colorize("hi", "32") == "\033[32mhi\033[0m"
