"""
Tests for security utilities.
"""
import hashlib

from signdesk.utils.security import compute_bytes_hash, generate_id


class TestBytesHash:
    """Tests for content hashing."""

    def test_matches_sha256(self):
        """Hash is the SHA-256 hex digest."""
        data = b"signed artifact"
        assert compute_bytes_hash(data) == hashlib.sha256(data).hexdigest()
        assert len(compute_bytes_hash(data)) == 64

    def test_different_content_different_hash(self):
        assert compute_bytes_hash(b"a") != compute_bytes_hash(b"b")


class TestGenerateId:
    """Tests for prefixed identifiers."""

    def test_prefix_and_length(self):
        """Id is prefix + underscore + 12 characters."""
        value = generate_id("sig")
        prefix, random_part = value.split("_")
        assert prefix == "sig"
        assert len(random_part) == 12

    def test_no_confusing_characters(self):
        """O, 0, I, 1 and L never appear."""
        for _ in range(50):
            random_part = generate_id("x").split("_")[1]
            assert not set(random_part) & set("O0I1L")

    def test_unique(self):
        ids = {generate_id("art") for _ in range(200)}
        assert len(ids) == 200
