"""
Tests for precondition validation.

Tests cover:
- capture_text() - truncation at the prompt limit
- validate_text() - empty, whitespace, long input
- validate_audio_file() - content type allow-list, size cap
- validate_balance() - threshold boundary
- validate() - check order and request passthrough
- AudioFile.from_path() content type guessing
"""
import pytest

from audio_jobs.core.config import ValidationConfig
from audio_jobs.jobs.errors import (
    EmptyInputError,
    ErrorKind,
    InsufficientBalanceError,
    PayloadTooLargeError,
    UnsupportedMediaTypeError,
    ValidationError,
)
from audio_jobs.jobs.models import AudioFile, FileRequest, TextRequest
from audio_jobs.jobs.validators import (
    capture_text,
    validate,
    validate_audio_file,
    validate_balance,
    validate_text,
)


class TestCaptureText:
    """Tests for capture_text()."""

    def test_short_text_unchanged(self):
        assert capture_text("Ocean waves crashing") == "Ocean waves crashing"

    def test_long_text_truncated_to_500(self):
        """520 typed characters are captured as the first 500."""
        raw = "x" * 500 + "y" * 20
        captured = capture_text(raw)
        assert len(captured) == 500
        assert captured == "x" * 500

    def test_none_captures_empty(self):
        assert capture_text(None) == ""

    def test_custom_limit(self):
        assert capture_text("abcdef", max_chars=3) == "abc"


class TestValidateText:
    """Tests for validate_text()."""

    def test_valid_text(self):
        assert validate_text("Thunder rolling in") == "Thunder rolling in"

    @pytest.mark.parametrize("content", ["", "   ", "\n\t", None])
    def test_empty_or_blank_rejected(self, content):
        with pytest.raises(EmptyInputError) as exc_info:
            validate_text(content)
        assert exc_info.value.kind == ErrorKind.EMPTY_INPUT

    def test_long_text_bounded_not_rejected(self):
        assert len(validate_text("a" * 600)) == 500


class TestValidateAudioFile:
    """Tests for validate_audio_file()."""

    def test_wav_accepted(self, wav_file):
        assert validate_audio_file(wav_file) is wav_file

    def test_mp3_accepted(self):
        f = AudioFile(name="a.mp3", content_type="audio/mp3", data=b"ID3")
        assert validate_audio_file(f) is f

    def test_content_type_case_insensitive(self):
        f = AudioFile(name="a.wav", content_type="Audio/WAV", data=b"RIFF")
        validate_audio_file(f)

    @pytest.mark.parametrize("content_type", ["audio/ogg", "video/mp4", "application/octet-stream", ""])
    def test_other_types_rejected(self, content_type):
        f = AudioFile(name="a.bin", content_type=content_type, data=b"x")
        with pytest.raises(UnsupportedMediaTypeError) as exc_info:
            validate_audio_file(f)
        assert exc_info.value.kind == ErrorKind.UNSUPPORTED_MEDIA_TYPE

    def test_size_at_limit_accepted(self):
        config = ValidationConfig(max_upload_bytes=10)
        validate_audio_file(AudioFile(name="a.wav", content_type="audio/wav", data=b"x" * 10), config)

    def test_size_over_limit_rejected(self):
        config = ValidationConfig(max_upload_bytes=10)
        with pytest.raises(PayloadTooLargeError) as exc_info:
            validate_audio_file(AudioFile(name="a.wav", content_type="audio/wav", data=b"x" * 11), config)
        assert exc_info.value.details["size"] == 11


class TestValidateBalance:
    """Tests for validate_balance()."""

    def test_at_threshold_accepted(self):
        validate_balance(15)

    def test_below_threshold_rejected(self):
        with pytest.raises(InsufficientBalanceError) as exc_info:
            validate_balance(14.5)
        assert exc_info.value.kind == ErrorKind.INSUFFICIENT_BALANCE

    def test_custom_threshold(self):
        validate_balance(0, min_balance=0)
        with pytest.raises(InsufficientBalanceError):
            validate_balance(19, min_balance=20)

    @pytest.mark.parametrize("balance", [float("nan"), float("-inf"), float("inf")])
    def test_non_finite_rejected(self, balance):
        """NaN compares False against the threshold and must not slip through."""
        with pytest.raises(InsufficientBalanceError):
            validate_balance(balance)

    def test_nan_balance_blocks_text_request(self):
        with pytest.raises(InsufficientBalanceError):
            validate(TextRequest("Rain"), balance=float("nan"))


class TestValidate:
    """Tests for validate()."""

    def test_text_request_passes(self):
        request = TextRequest("Dog barking")
        assert validate(request, balance=100) == request

    def test_text_request_bounded(self):
        request = validate(TextRequest("z" * 700), balance=100)
        assert len(request.content) == 500
        assert request.kind == "text"

    def test_file_request_passes(self, wav_file):
        request = FileRequest(file=wav_file, voice_id="andreas")
        assert validate(request, balance=100) is request

    def test_file_request_low_balance(self, wav_file):
        """A file job with balance 10 is rejected before anything else happens."""
        with pytest.raises(InsufficientBalanceError):
            validate(FileRequest(file=wav_file, voice_id="v"), balance=10)

    def test_payload_checked_before_balance(self):
        """Empty input wins over a low balance."""
        with pytest.raises(EmptyInputError):
            validate(TextRequest(""), balance=0)

    def test_all_failures_are_validation_errors(self):
        with pytest.raises(ValidationError):
            validate(TextRequest("ok"), balance=1)

    def test_unknown_request_type(self):
        with pytest.raises(TypeError):
            validate("not a request", balance=100)


class TestAudioFileFromPath:
    """AudioFile.from_path() content type handling."""

    def test_mp3_extension_normalised(self, tmp_path):
        path = tmp_path / "clip.mp3"
        path.write_bytes(b"ID3data")
        f = AudioFile.from_path(path)
        assert f.content_type == "audio/mp3"
        assert f.name == "clip.mp3"
        assert f.size == 7

    def test_wav_extension(self, tmp_path):
        path = tmp_path / "clip.wav"
        path.write_bytes(b"RIFF")
        assert AudioFile.from_path(path).content_type == "audio/wav"

    def test_explicit_content_type(self, tmp_path):
        path = tmp_path / "clip.bin"
        path.write_bytes(b"x")
        assert AudioFile.from_path(path, content_type="audio/mpeg").content_type == "audio/mp3"
