"""Tests for playlist parsing and fetching."""

from __future__ import annotations

import pytest

from streamgrab.exceptions import ManifestFetchError
from streamgrab.hls.parser import fetch_manifest, parse_manifest
from streamgrab.models.manifest import EncryptionMethod

BASE = "https://cdn.example.com/live/stream/index.m3u8"

MASTER = """#EXTM3U
#EXT-X-STREAM-INF:AVERAGE-BANDWIDTH=400000,BANDWIDTH=640000,RESOLUTION=640x360
low/index.m3u8
#EXT-X-STREAM-INF:BANDWIDTH=2560000,RESOLUTION=1920x1080,CODECS="avc1.640028"
https://other.example.com/high/index.m3u8
#EXT-X-STREAM-INF:BANDWIDTH=96000
audio/index.m3u8
"""


class TestMediaPlaylist:
    def test_relative_segments_resolve_against_playlist_url(self):
        manifest = parse_manifest(
            "#EXTM3U\n#EXTINF:6,\nseg0.ts\n#EXTINF:6,\n../other/seg1.ts\n", BASE
        )

        assert manifest.is_master is False
        assert manifest.segments == [
            "https://cdn.example.com/live/stream/seg0.ts",
            "https://cdn.example.com/live/other/seg1.ts",
        ]

    def test_absolute_segments_are_kept(self):
        manifest = parse_manifest("#EXTM3U\nhttps://a.example.com/x.ts\n", BASE)
        assert manifest.segments == ["https://a.example.com/x.ts"]

    def test_comments_and_blank_lines_are_skipped(self):
        text = "#EXTM3U\n\n# a comment\n#EXTINF:6,\nseg0.ts\n\n#EXT-X-ENDLIST\n"
        assert len(parse_manifest(text, BASE).segments) == 1

    def test_crlf_line_endings(self):
        text = "#EXTM3U\r\n#EXTINF:6,\r\nseg0.ts\r\n#EXTINF:6,\r\nseg1.ts\r\n"
        manifest = parse_manifest(text, BASE)
        assert manifest.segments[1] == "https://cdn.example.com/live/stream/seg1.ts"

    def test_media_sequence(self):
        manifest = parse_manifest("#EXTM3U\n#EXT-X-MEDIA-SEQUENCE:42\nseg.ts\n", BASE)
        assert manifest.media_sequence == 42

    def test_media_sequence_defaults_to_zero(self):
        assert parse_manifest("#EXTM3U\nseg.ts\n", BASE).media_sequence == 0

    def test_non_numeric_media_sequence_counts_as_zero(self):
        text = "#EXTM3U\n#EXT-X-MEDIA-SEQUENCE:abc\n#EXTINF:6,\nseg.ts\n"
        assert parse_manifest(text, BASE).media_sequence == 0

    def test_tags_match_case_insensitively(self):
        text = "#extm3u\n#ext-x-media-sequence:7\n#extinf:6,\nseg0.ts\n"
        manifest = parse_manifest(text, BASE)
        assert manifest.media_sequence == 7
        assert manifest.segments == ["https://cdn.example.com/live/stream/seg0.ts"]

    def test_parsing_is_repeatable(self):
        text = (
            "#EXTM3U\n"
            "#EXT-X-MEDIA-SEQUENCE:3\n"
            '#EXT-X-KEY:METHOD=AES-128,URI="k.bin",IV=0x01\n'
            "#EXTINF:6,\nseg0.ts\n"
            "seg1.ts\n"
        )
        assert parse_manifest(text, BASE) == parse_manifest(text, BASE)
        assert parse_manifest(MASTER, BASE) == parse_manifest(MASTER, BASE)

    def test_empty_playlist(self):
        manifest = parse_manifest("#EXTM3U\n#EXT-X-ENDLIST\n", BASE)
        assert manifest.segments == []
        assert manifest.variants == []


class TestMasterPlaylist:
    def test_variants_are_parsed_in_order(self):
        manifest = parse_manifest(MASTER, BASE)

        assert manifest.is_master is True
        assert [v.bandwidth for v in manifest.variants] == [640000, 2560000, 96000]
        assert manifest.variants[0].url == (
            "https://cdn.example.com/live/stream/low/index.m3u8"
        )
        assert manifest.variants[1].url == "https://other.example.com/high/index.m3u8"

    def test_average_bandwidth_is_not_mistaken_for_bandwidth(self):
        manifest = parse_manifest(MASTER, BASE)
        assert manifest.variants[0].bandwidth == 640000

    def test_resolution_is_optional(self):
        manifest = parse_manifest(MASTER, BASE)
        assert manifest.variants[1].resolution == "1920x1080"
        assert manifest.variants[2].resolution is None

    def test_variant_url_lines_are_not_segments(self):
        assert parse_manifest(MASTER, BASE).segments == []

    def test_stream_inf_without_following_url_is_ignored(self):
        manifest = parse_manifest("#EXTM3U\n#EXT-X-STREAM-INF:BANDWIDTH=1000\n", BASE)
        assert manifest.is_master is True
        assert manifest.variants == []

    def test_missing_bandwidth_defaults_to_zero(self):
        manifest = parse_manifest(
            "#EXTM3U\n#EXT-X-STREAM-INF:RESOLUTION=320x240\nv.m3u8\n", BASE
        )
        assert manifest.variants[0].bandwidth == 0

    def test_malformed_bandwidth_raises(self):
        with pytest.raises(ManifestFetchError, match="Playlist could not be parsed"):
            parse_manifest("#EXTM3U\n#EXT-X-STREAM-INF:BANDWIDTH=lots\nv.m3u8\n", BASE)


class TestKeyTag:
    def test_aes128_with_iv(self):
        text = (
            "#EXTM3U\n"
            '#EXT-X-KEY:METHOD=AES-128,URI="keys/k1.bin",'
            "IV=0x000102030405060708090a0b0c0d0e0f\n"
            "seg0.ts\n"
        )
        encryption = parse_manifest(text, BASE).encryption

        assert encryption.method is EncryptionMethod.AES128
        assert encryption.key_url == "https://cdn.example.com/live/stream/keys/k1.bin"
        assert encryption.iv_hex == "0x000102030405060708090a0b0c0d0e0f"

    def test_aes128_without_iv(self):
        text = '#EXTM3U\n#EXT-X-KEY:METHOD=AES-128,URI="https://k.example.com/k"\nx.ts\n'
        manifest = parse_manifest(text, BASE)
        assert manifest.encryption.iv_hex is None
        assert manifest.is_encrypted is True

    def test_method_none_clears_encryption(self):
        text = (
            "#EXTM3U\n"
            '#EXT-X-KEY:METHOD=AES-128,URI="k.bin"\n'
            "seg0.ts\n"
            "#EXT-X-KEY:METHOD=NONE\n"
            "seg1.ts\n"
        )
        manifest = parse_manifest(text, BASE)
        assert manifest.encryption is None
        assert manifest.is_encrypted is False

    def test_later_key_tag_wins(self):
        text = (
            "#EXTM3U\n"
            '#EXT-X-KEY:METHOD=AES-128,URI="k1.bin"\n'
            "seg0.ts\n"
            '#EXT-X-KEY:METHOD=AES-128,URI="k2.bin"\n'
            "seg1.ts\n"
        )
        assert parse_manifest(text, BASE).encryption.key_url.endswith("/k2.bin")

    def test_unsupported_method_leaves_encryption_unchanged(self):
        text = '#EXTM3U\n#EXT-X-KEY:METHOD=SAMPLE-AES,URI="k.bin"\nseg0.ts\n'
        manifest = parse_manifest(text, BASE)
        assert manifest.encryption is None
        assert manifest.segments == ["https://cdn.example.com/live/stream/seg0.ts"]

    def test_aes128_without_uri_is_ignored(self):
        manifest = parse_manifest("#EXTM3U\n#EXT-X-KEY:METHOD=AES-128\nseg0.ts\n", BASE)
        assert manifest.encryption is None


class TestFetchManifest:
    @pytest.mark.asyncio
    async def test_fetches_and_resolves_against_requested_url(
        self, media_server, session
    ):
        url = media_server.add("/vod/index.m3u8", "#EXTM3U\nseg0.ts\n")

        manifest = await fetch_manifest(session, url)

        assert manifest.segments == [media_server.url("/vod/seg0.ts")]

    @pytest.mark.asyncio
    async def test_http_error_raises(self, media_server, session):
        url = media_server.add("/vod/index.m3u8", status=500)

        with pytest.raises(ManifestFetchError, match="Playlist fetch failed: 500"):
            await fetch_manifest(session, url)

    @pytest.mark.asyncio
    async def test_label_names_the_playlist(self, media_server, session):
        with pytest.raises(
            ManifestFetchError, match="Variant playlist fetch failed: 404"
        ):
            await fetch_manifest(
                session, media_server.url("/missing.m3u8"), label="Variant playlist"
            )

    @pytest.mark.asyncio
    async def test_connection_failure_raises(self, session):
        with pytest.raises(ManifestFetchError, match="Playlist fetch failed"):
            await fetch_manifest(session, "http://127.0.0.1:1/index.m3u8")
