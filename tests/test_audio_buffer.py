"""Tests for the audio assembly buffer and wire frames."""

from __future__ import annotations

import pytest

from sakurakit.audio_buffer import AudioAssemblyBuffer
from sakurakit.frames import BinaryFrame, TextFrame, frame_from_wire


class TestAudioAssemblyBuffer:
    """Tests for AudioAssemblyBuffer."""

    def test_initial_state(self) -> None:
        buffer = AudioAssemblyBuffer()
        assert buffer.is_open
        assert buffer.is_empty
        assert buffer.chunk_count == 0
        assert buffer.byte_count == 0

    def test_finalize_concatenates_in_order(self) -> None:
        """Test that chunks are joined in arrival order."""
        buffer = AudioAssemblyBuffer()
        buffer.append(b"\x01" * 100)
        buffer.append(b"\x02" * 250)
        buffer.append(b"\x03" * 50)

        assert buffer.chunk_count == 3
        assert buffer.byte_count == 400

        data = buffer.finalize()

        assert data == b"\x01" * 100 + b"\x02" * 250 + b"\x03" * 50
        assert buffer.is_empty
        assert buffer.is_open

    def test_finalize_starts_fresh_stream(self) -> None:
        """Test that chunks after finalize belong to a new stream."""
        buffer = AudioAssemblyBuffer()
        buffer.append(b"first")
        buffer.finalize()
        buffer.append(b"second")

        assert buffer.finalize() == b"second"

    def test_finalize_empty(self) -> None:
        assert AudioAssemblyBuffer().finalize() == b""

    def test_duplicates_kept(self) -> None:
        """Test that identical chunks are not deduplicated."""
        buffer = AudioAssemblyBuffer()
        buffer.append(b"ab")
        buffer.append(b"ab")
        assert buffer.finalize() == b"abab"

    def test_empty_chunk_counted(self) -> None:
        buffer = AudioAssemblyBuffer()
        buffer.append(b"")
        assert buffer.chunk_count == 1
        assert buffer.byte_count == 0

    def test_append_copies_mutable_input(self) -> None:
        """Test that later changes to a bytearray do not leak into the clip."""
        buffer = AudioAssemblyBuffer()
        chunk = bytearray(b"abc")
        buffer.append(chunk)
        chunk[0] = ord("z")
        assert buffer.finalize() == b"abc"

    def test_clear(self) -> None:
        buffer = AudioAssemblyBuffer()
        buffer.append(b"abc")
        buffer.clear()
        assert buffer.is_empty
        assert buffer.byte_count == 0


class TestFrames:
    """Tests for wire frame wrappers."""

    def test_text_from_wire(self) -> None:
        assert frame_from_wire('{"a":1}') == TextFrame('{"a":1}')

    @pytest.mark.parametrize("raw", [b"\x00\x01", bytearray(b"\x00\x01"), memoryview(b"\x00\x01")])
    def test_binary_from_wire(self, raw) -> None:
        frame = frame_from_wire(raw)
        assert frame == BinaryFrame(b"\x00\x01")
        assert isinstance(frame.payload, bytes)

    def test_unsupported_type(self) -> None:
        with pytest.raises(TypeError):
            frame_from_wire(42)  # type: ignore[arg-type]

    def test_sizes(self) -> None:
        assert TextFrame("é").size == 2
        assert BinaryFrame(b"abc").size == 3
