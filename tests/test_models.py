"""
Model Tests
===========

Request models, the aspect-ratio parser and metadata enums.
"""

from fractions import Fraction

import pytest
from pydantic import ValidationError


class TestAspectRatio:
    """Tests for parse_aspect_ratio."""

    def test_valid(self):
        """X:Y parses to the height/width ratio."""
        from picture_resizer.models import parse_aspect_ratio

        assert parse_aspect_ratio("4:3") == Fraction(3, 4)
        assert parse_aspect_ratio("3:4") == Fraction(4, 3)
        assert parse_aspect_ratio(" 16:9 ") == Fraction(9, 16)

    @pytest.mark.parametrize("text", [None, "", "4", "4:3:2", "a:b", "4-3", "0:3", "4:0", "-4:3"])
    def test_invalid_means_no_constraint(self, text):
        """Anything unparsable is treated as absent."""
        from picture_resizer.models import parse_aspect_ratio

        assert parse_aspect_ratio(text) is None

    def test_malformed_is_logged(self, caplog):
        """The silent fallback leaves a warning behind."""
        from picture_resizer.models import parse_aspect_ratio

        with caplog.at_level("WARNING"):
            parse_aspect_ratio("wide")
        assert "wide" in caplog.text


class TestRequests:
    """Tests for the transform request models."""

    def test_resize_request_defaults(self):
        from picture_resizer.models import ResizeRequest

        request = ResizeRequest()
        assert request.min_width == 0
        assert request.min_height == 0
        assert request.aspect_ratio is None

    def test_resize_request_aspect(self):
        from picture_resizer.models import ResizeRequest

        request = ResizeRequest(min_width=300, min_height=300, aspect="3:4")
        assert request.aspect_ratio == Fraction(4, 3)

    def test_resize_request_rejects_negative_minimum(self):
        from picture_resizer.models import ResizeRequest

        with pytest.raises(ValidationError):
            ResizeRequest(min_width=-1)

    def test_frame_requests(self):
        """Frame URL is required; padding and photo width are bounded."""
        from picture_resizer.models import FramePaddingRequest, FramePositionRequest

        assert FramePaddingRequest(frame_url="f.png").padding == 0
        assert FramePositionRequest(frame_url="f.png").photo_width is None

        with pytest.raises(ValidationError):
            FramePaddingRequest(frame_url="")
        with pytest.raises(ValidationError):
            FramePaddingRequest(frame_url="f.png", padding=-5)
        with pytest.raises(ValidationError):
            FramePositionRequest(frame_url="f.png", photo_width=0)


class TestMetadata:
    """Tests for format enums and ImageMetadata."""

    def test_from_pil(self):
        from picture_resizer.models import ImageFormat

        assert ImageFormat.from_pil("JPEG") is ImageFormat.JPEG
        assert ImageFormat.from_pil("MPO") is ImageFormat.JPEG
        assert ImageFormat.from_pil("PNG") is ImageFormat.PNG
        assert ImageFormat.from_pil("ICO") is ImageFormat.OTHER
        assert ImageFormat.from_pil(None) is ImageFormat.OTHER

    def test_output_format(self):
        from picture_resizer.models import OutputFormat

        assert OutputFormat.JPEG.media_type == "image/jpeg"
        assert OutputFormat.PNG.media_type == "image/png"
        assert OutputFormat.JPEG.extension == ".jpg"

    def test_metadata_is_frozen(self):
        from dataclasses import FrozenInstanceError

        from picture_resizer.models import ImageFormat, ImageMetadata

        metadata = ImageMetadata(width=640, height=480, format=ImageFormat.JPEG)
        assert metadata.size == "640x480"
        with pytest.raises(FrozenInstanceError):
            metadata.width = 1
