"""
Unit tests for image payload helpers.
"""

import os
import shutil
import tempfile
from unittest.mock import patch

import pytest

from genstudio.core.errors import ValidationError
from genstudio.core.images import (
    clean_base64,
    decode_data_uri,
    get_mime_type,
    load_image_file,
    to_data_uri,
)


class TestDataUris:
    """Test data URI parsing and building."""

    def test_clean_base64(self):
        assert clean_base64("data:image/webp;base64,UklGRg==") == "UklGRg=="
        assert clean_base64("UklGRg==") == "UklGRg=="

    def test_get_mime_type(self):
        assert get_mime_type("data:image/jpeg;base64,/9j/") == "image/jpeg"
        assert get_mime_type("/9j/") == "image/png"

    def test_to_data_uri(self):
        assert to_data_uri(b"abc", "image/jpeg") == "data:image/jpeg;base64,YWJj"
        assert to_data_uri("YWJj") == "data:image/png;base64,YWJj"

    def test_decode(self):
        assert decode_data_uri("data:image/png;base64,YWJj") == b"abc"

    def test_decode_invalid(self):
        with pytest.raises(ValidationError, match="not valid base64"):
            decode_data_uri("data:image/png;base64,@@@")


class TestLoadImageFile:
    """Test reading image files from disk."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write(self, name, data=b"img"):
        path = os.path.join(self.temp_dir, name)
        with open(path, "wb") as f:
            f.write(data)
        return path

    def test_loads_jpeg(self):
        path = self._write("photo.JPG")

        assert load_image_file(path) == "data:image/jpeg;base64,aW1n"

    def test_missing_file(self):
        with pytest.raises(ValidationError, match="not found"):
            load_image_file(os.path.join(self.temp_dir, "none.png"))

    def test_unsupported_extension(self):
        path = self._write("notes.txt")

        with pytest.raises(ValidationError, match="not a valid image"):
            load_image_file(path)

    def test_oversized_file(self):
        path = self._write("big.png")

        with patch("genstudio.core.images.MAX_FILE_SIZE_BYTES", 2):
            with pytest.raises(ValidationError, match="exceeds"):
                load_image_file(path)
