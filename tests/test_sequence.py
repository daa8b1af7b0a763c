"""Tests for the animated sequence encoder."""

import subprocess
from pathlib import Path

import pytest

from snapbooth.editor import boomerang_frames, encode_boomerang, encode_gif
from snapbooth.editor import sequence
from snapbooth.errors import EncodingFailure, ValidationError

from conftest import make_jpeg


class FakeFfmpeg:
    """Stands in for subprocess.run and remembers what it saw."""

    def __init__(self, fail_with=None) -> None:
        self.fail_with = fail_with
        self.cmd = None
        self.workdir = None
        self.frame_files = []

    def __call__(self, cmd, **kwargs):
        self.cmd = cmd
        output = Path(cmd[-1])
        self.workdir = output.parent
        self.frame_files = sorted(p.name for p in self.workdir.glob("frame_*.jpg"))
        if self.fail_with is not None:
            raise self.fail_with
        output.write_bytes(b"GIF89a-fake")
        return subprocess.CompletedProcess(cmd, 0, b"", b"")


@pytest.fixture
def ffmpeg(monkeypatch):
    fake = FakeFfmpeg()
    monkeypatch.setattr(sequence.subprocess, "run", fake)
    return fake


class TestBoomerangFrames:
    def test_forward_then_reverse(self):
        assert boomerang_frames([1, 2, 3]) == [1, 2, 3, 3, 2, 1]

    @pytest.mark.parametrize("n", [1, 2, 5])
    def test_length_and_symmetry(self, n):
        frames = list(range(n))
        result = boomerang_frames(frames)
        assert len(result) == 2 * n
        assert result[n:] == list(reversed(frames))
        assert result == list(reversed(result))


class TestEncodeGif:
    def test_returns_encoder_output(self, ffmpeg):
        assert encode_gif([make_jpeg(), make_jpeg()]) == b"GIF89a-fake"

    def test_shared_palette_and_infinite_loop(self, ffmpeg):
        encode_gif([make_jpeg()])
        filters = ffmpeg.cmd[ffmpeg.cmd.index("-vf") + 1]
        assert "palettegen" in filters
        assert "paletteuse=dither=bayer" in filters
        assert ffmpeg.cmd[ffmpeg.cmd.index("-loop") + 1] == "0"
        assert ffmpeg.cmd[ffmpeg.cmd.index("-framerate") + 1] == "4"

    def test_frames_written_in_order(self, ffmpeg):
        encode_gif([make_jpeg() for _ in range(3)])
        assert ffmpeg.frame_files == ["frame_0000.jpg", "frame_0001.jpg", "frame_0002.jpg"]

    def test_workdir_removed_on_success(self, ffmpeg):
        encode_gif([make_jpeg()])
        assert ffmpeg.workdir is not None
        assert not ffmpeg.workdir.exists()

    def test_workdir_removed_on_encoder_failure(self, monkeypatch):
        fake = FakeFfmpeg(fail_with=subprocess.CalledProcessError(1, "ffmpeg", stderr=b"boom"))
        monkeypatch.setattr(sequence.subprocess, "run", fake)
        with pytest.raises(EncodingFailure, match="boom"):
            encode_gif([make_jpeg()])
        assert not fake.workdir.exists()

    def test_workdir_removed_on_timeout(self, monkeypatch):
        fake = FakeFfmpeg(fail_with=subprocess.TimeoutExpired("ffmpeg", 1))
        monkeypatch.setattr(sequence.subprocess, "run", fake)
        with pytest.raises(EncodingFailure, match="timed out"):
            encode_gif([make_jpeg()])
        assert not fake.workdir.exists()

    def test_missing_binary(self, monkeypatch):
        fake = FakeFfmpeg(fail_with=FileNotFoundError("ffmpeg"))
        monkeypatch.setattr(sequence.subprocess, "run", fake)
        with pytest.raises(EncodingFailure, match="not found"):
            encode_gif([make_jpeg()])
        assert not fake.workdir.exists()

    def test_no_output_file(self, monkeypatch):
        def silent(cmd, **kwargs):
            silent.workdir = Path(cmd[-1]).parent
            return subprocess.CompletedProcess(cmd, 0, b"", b"")

        monkeypatch.setattr(sequence.subprocess, "run", silent)
        with pytest.raises(EncodingFailure):
            encode_gif([make_jpeg()])
        assert not silent.workdir.exists()

    def test_unreadable_frame_leaves_nothing_behind(self, monkeypatch, tmp_path):
        monkeypatch.setattr(sequence.tempfile, "tempdir", str(tmp_path))
        with pytest.raises(ValidationError):
            encode_gif([make_jpeg(), b"garbage"])
        assert list(tmp_path.iterdir()) == []

    def test_no_frames(self, ffmpeg):
        with pytest.raises(ValidationError):
            encode_gif([])
        assert ffmpeg.cmd is None

    def test_each_call_gets_its_own_workdir(self, ffmpeg):
        encode_gif([make_jpeg()])
        first = ffmpeg.workdir
        encode_gif([make_jpeg()])
        assert ffmpeg.workdir != first


class TestEncodeBoomerang:
    def test_doubles_frames_at_higher_rate(self, ffmpeg):
        encode_boomerang([make_jpeg() for _ in range(3)])
        assert len(ffmpeg.frame_files) == 6
        assert ffmpeg.cmd[ffmpeg.cmd.index("-framerate") + 1] == "8"

    def test_no_frames(self, ffmpeg):
        with pytest.raises(ValidationError):
            encode_boomerang([])
