"""
Transform Tests
===============

End-to-end runs of canvas extension and both frame compositing variants
against in-memory sources and sinks.
"""

import asyncio

import numpy as np
import pytest

from conftest import FRAME_BORDER_BGR, SUBJECT_BGR, close_to, decode, encode


FRAME_URL = "https://assets.test/frame.png"


class TestExtendCanvas:
    """Tests for extend_canvas."""

    def _run(self, data, request, pool, encode=None, chunk_size=1024):
        from picture_resizer.sources import bytes_source
        from picture_resizer.stream import BufferSink
        from picture_resizer.transforms import extend_canvas

        sink = BufferSink()
        metadata = asyncio.run(extend_canvas(
            bytes_source(data, chunk_size=chunk_size),
            sink,
            request,
            pool,
            encode=encode,
        ))
        return metadata, sink

    def test_portrait_aspect(self, subject_jpeg, codec_pool):
        """640x480 with aspect 3:4 becomes 640x853 JPEG."""
        from picture_resizer.models import ImageFormat, ResizeRequest

        request = ResizeRequest(min_width=300, min_height=300, aspect="3:4")
        metadata, sink = self._run(subject_jpeg, request, codec_pool)

        assert (metadata.width, metadata.height) == (640, 853)
        assert metadata.format is ImageFormat.JPEG
        assert sink.closed
        assert decode(sink.getvalue()).shape[:2] == (853, 640)

    def test_png_output_pads_white(self, subject_jpeg, codec_pool):
        """PNG output keeps padding exactly white around the original."""
        from picture_resizer.models import ImageFormat, OutputFormat, ResizeRequest
        from picture_resizer.transforms import EncodeOptions

        request = ResizeRequest(min_width=700, min_height=700, aspect="4:3")
        options = EncodeOptions(output_format=OutputFormat.PNG)
        metadata, sink = self._run(subject_jpeg, request, codec_pool, encode=options)

        assert metadata.size == "933x700"
        assert metadata.format is ImageFormat.PNG

        image = decode(sink.getvalue())
        assert image.shape[:2] == (700, 933)
        assert tuple(image[0, 0]) == (255, 255, 255)
        assert tuple(image[699, 932]) == (255, 255, 255)
        # Insets: left 146, top 110
        assert close_to(image[110 + 240, 146 + 320], SUBJECT_BGR)
        assert tuple(image[350, 145]) == (255, 255, 255)

    def test_no_constraint_keeps_size(self, subject_png, codec_pool):
        from picture_resizer.models import ResizeRequest

        metadata, _ = self._run(subject_png, ResizeRequest(), codec_pool)
        assert metadata.size == "400x566"

    def test_malformed_aspect_is_ignored(self, subject_jpeg, codec_pool):
        from picture_resizer.models import ResizeRequest

        request = ResizeRequest(min_width=700, min_height=700, aspect="wide")
        metadata, _ = self._run(subject_jpeg, request, codec_pool)
        assert metadata.size == "700x700"

    def test_unprobeable_source(self, codec_pool):
        """A source without a readable header leaves the sink open and empty."""
        from picture_resizer.errors import DimensionError
        from picture_resizer.models import ResizeRequest

        with pytest.raises(DimensionError, match="Cannot get size of the picture"):
            self._run(b"plain text, no image here", ResizeRequest(min_width=10), codec_pool)

    def test_sink_untouched_on_probe_failure(self, codec_pool):
        from picture_resizer.errors import DimensionError
        from picture_resizer.models import ResizeRequest
        from picture_resizer.sources import bytes_source
        from picture_resizer.stream import BufferSink
        from picture_resizer.transforms import extend_canvas

        sink = BufferSink()
        with pytest.raises(DimensionError):
            asyncio.run(extend_canvas(
                bytes_source(b"\x00" * 64),
                sink,
                ResizeRequest(min_width=10, min_height=10),
                codec_pool,
            ))
        assert not sink.closed
        assert sink.getvalue() == b""

    def test_corrupt_body_fails_decode(self, codec_pool):
        """A truncated body fails in the codec after probing, sink left open."""
        noise = np.random.default_rng(0).integers(0, 256, (100, 120, 3), dtype=np.uint8)
        data = encode(noise, ".png")

        from picture_resizer.errors import CodecError
        from picture_resizer.models import ResizeRequest
        from picture_resizer.sources import bytes_source
        from picture_resizer.stream import BufferSink
        from picture_resizer.transforms import extend_canvas

        sink = BufferSink()
        with pytest.raises(CodecError):
            asyncio.run(extend_canvas(
                bytes_source(data[: len(data) // 2], chunk_size=1024),
                sink,
                ResizeRequest(min_width=700, min_height=700),
                codec_pool,
            ))
        assert not sink.closed

    @pytest.mark.parametrize("source, minimum, aspect, size", [
        ("subject_jpeg", (0, 0), "1:1", (640, 640)),
        ("subject_jpeg", (641, 300), "1:1", (641, 641)),
        ("subject_jpeg", (300, 300), "3:4", (640, 853)),
        ("subject_jpeg", (700, 700), "4:3", (933, 700)),
        ("subject_jpeg", (800, 700), None, (800, 700)),
        ("subject_png", (800, 700), None, (800, 700)),
        ("subject_png", (300, 300), None, (400, 566)),
        ("subject_png", (300, 300), "1:1", (566, 566)),
    ])
    def test_output_reads_back_at_planned_size(self, request, codec_pool, source, minimum, aspect, size):
        """Re-reading the encoded output gives the returned size and format."""
        from picture_resizer.codec import probe_bytes
        from picture_resizer.models import ImageFormat, OutputFormat, ResizeRequest
        from picture_resizer.transforms import EncodeOptions

        png = source == "subject_png"
        options = EncodeOptions(output_format=OutputFormat.PNG if png else OutputFormat.JPEG)
        resize = ResizeRequest(min_width=minimum[0], min_height=minimum[1], aspect=aspect)
        metadata, sink = self._run(request.getfixturevalue(source), resize, codec_pool, encode=options)

        written = probe_bytes(sink.getvalue())
        assert (written.width, written.height) == size
        assert written == metadata
        assert written.format is (ImageFormat.PNG if png else ImageFormat.JPEG)


class TestFrameCompositing:
    """Tests for composite_fit_padding and composite_fit_position."""

    def _cache(self, frame_fetcher):
        from picture_resizer.cache import FrameCache

        return FrameCache(fetch=frame_fetcher, capacity=5)

    def test_fit_padding_output_is_frame_size(self, subject_jpeg, frame_fetcher, codec_pool):
        """The subject is centred in the padded window and framed."""
        from picture_resizer.models import FramePaddingRequest, ImageFormat
        from picture_resizer.sources import bytes_source
        from picture_resizer.stream import BufferSink
        from picture_resizer.transforms import composite_fit_padding

        sink = BufferSink()
        metadata = asyncio.run(composite_fit_padding(
            bytes_source(subject_jpeg),
            sink,
            FramePaddingRequest(frame_url=FRAME_URL, padding=20),
            self._cache(frame_fetcher),
            codec_pool,
        ))

        assert metadata.size == "480x640"
        assert metadata.format is ImageFormat.JPEG
        assert sink.closed

        image = decode(sink.getvalue())
        assert image.shape == (640, 480, 3)
        # Subject occupies rows 155..485 of the window
        assert close_to(image[320, 240], SUBJECT_BGR)
        assert close_to(image[100, 240], (255, 255, 255))
        assert close_to(image[5, 5], FRAME_BORDER_BGR, 30)

    def test_fit_padding_ignores_png_option(self, subject_png, frame_fetcher, codec_pool):
        """Frame compositing always writes JPEG."""
        from picture_resizer.models import FramePaddingRequest, ImageFormat, OutputFormat
        from picture_resizer.sources import bytes_source
        from picture_resizer.stream import BufferSink
        from picture_resizer.transforms import EncodeOptions, composite_fit_padding

        sink = BufferSink()
        metadata = asyncio.run(composite_fit_padding(
            bytes_source(subject_png),
            sink,
            FramePaddingRequest(frame_url=FRAME_URL),
            self._cache(frame_fetcher),
            codec_pool,
            encode=EncodeOptions(output_format=OutputFormat.PNG),
        ))

        assert metadata.format is ImageFormat.JPEG
        assert sink.getvalue()[:2] == b"\xff\xd8"

    def test_fit_padding_output_reads_back_at_frame_size(self, subject_png, frame_fetcher, codec_pool):
        from picture_resizer.codec import probe_bytes
        from picture_resizer.models import FramePaddingRequest, ImageFormat
        from picture_resizer.sources import bytes_source
        from picture_resizer.stream import BufferSink
        from picture_resizer.transforms import composite_fit_padding

        sink = BufferSink()
        metadata = asyncio.run(composite_fit_padding(
            bytes_source(subject_png),
            sink,
            FramePaddingRequest(frame_url=FRAME_URL, padding=40),
            self._cache(frame_fetcher),
            codec_pool,
        ))

        written = probe_bytes(sink.getvalue())
        assert (written.width, written.height) == (480, 640)
        assert written.format is ImageFormat.JPEG
        assert written == metadata

    def test_fit_position_grows_canvas(self, subject_jpeg, frame_fetcher, codec_pool):
        """A 640x480 subject at (200, 300) on a 480x640 frame gives 840x780."""
        from picture_resizer.models import FramePositionRequest
        from picture_resizer.sources import bytes_source
        from picture_resizer.stream import BufferSink
        from picture_resizer.transforms import composite_fit_position

        sink = BufferSink()
        metadata = asyncio.run(composite_fit_position(
            bytes_source(subject_jpeg),
            sink,
            FramePositionRequest(frame_url=FRAME_URL, photo_left=200, photo_top=300),
            self._cache(frame_fetcher),
            codec_pool,
        ))

        assert metadata.size == "840x780"
        image = decode(sink.getvalue())
        assert image.shape[:2] == (780, 840)
        # Past the frame the subject shows directly
        assert close_to(image[700, 800], SUBJECT_BGR)
        assert close_to(image[100, 700], (255, 255, 255))

    def test_frame_fetched_once_across_requests(self, subject_jpeg, frame_fetcher, codec_pool):
        from picture_resizer.models import FramePaddingRequest, FramePositionRequest
        from picture_resizer.sources import bytes_source
        from picture_resizer.stream import BufferSink
        from picture_resizer.transforms import composite_fit_padding, composite_fit_position

        cache = self._cache(frame_fetcher)

        async def run():
            await composite_fit_padding(
                bytes_source(subject_jpeg), BufferSink(),
                FramePaddingRequest(frame_url=FRAME_URL), cache, codec_pool,
            )
            await composite_fit_position(
                bytes_source(subject_jpeg), BufferSink(),
                FramePositionRequest(frame_url=FRAME_URL, photo_width=100), cache, codec_pool,
            )

        asyncio.run(run())
        assert frame_fetcher.calls == [FRAME_URL]

    def test_unprobeable_subject(self, frame_fetcher, codec_pool):
        from picture_resizer.errors import DimensionError
        from picture_resizer.models import FramePaddingRequest
        from picture_resizer.sources import bytes_source
        from picture_resizer.stream import BufferSink
        from picture_resizer.transforms import composite_fit_padding

        sink = BufferSink()
        with pytest.raises(DimensionError, match="Cannot get size of the base picture"):
            asyncio.run(composite_fit_padding(
                bytes_source(b"not an image"),
                sink,
                FramePaddingRequest(frame_url=FRAME_URL),
                self._cache(frame_fetcher),
                codec_pool,
            ))
        assert not sink.closed
        assert sink.getvalue() == b""

    def test_missing_frame(self, subject_jpeg, frame_fetcher, codec_pool):
        from picture_resizer.errors import SourceNotFoundError
        from picture_resizer.models import FramePaddingRequest
        from picture_resizer.sources import bytes_source
        from picture_resizer.stream import BufferSink
        from picture_resizer.transforms import composite_fit_padding

        sink = BufferSink()
        with pytest.raises(SourceNotFoundError):
            asyncio.run(composite_fit_padding(
                bytes_source(subject_jpeg),
                sink,
                FramePaddingRequest(frame_url="https://assets.test/none.png"),
                self._cache(frame_fetcher),
                codec_pool,
            ))
        assert sink.getvalue() == b""
