from djrequests.services.identity import UNKNOWN_IDENTITY, resolve_client_identity
from djrequests.services.matching import (
    fuzzy_match,
    matches_block_pattern,
    normalize,
    song_key,
    songs_equal,
)


class TestNormalization:
    def test_normalize_lowercases_and_collapses_whitespace(self):
        assert normalize("  Blinding   Lights \t") == "blinding lights"

    def test_normalize_empty_values(self):
        assert normalize(None) == ""
        assert normalize("") == ""
        assert normalize("   ") == ""

    def test_fuzzy_match_ignores_case_and_spacing(self):
        assert fuzzy_match("Mr.  Brightside", "mr. brightside")
        assert not fuzzy_match("Mr. Brightside", "Mr Brightside")

    def test_songs_equal_compares_both_fields(self):
        assert songs_equal(
            ("Blinding Lights", " the weeknd "), ("blinding lights", "The Weeknd")
        )
        assert not songs_equal(
            ("Blinding Lights", "The Weeknd"), ("Blinding Lights", "Weeknd")
        )

    def test_song_key_groups_variants(self):
        assert song_key("Levitating ", "DUA LIPA") == song_key("levitating", "Dua Lipa")


class TestBlockPatterns:
    def test_pattern_blocks_substring_match(self):
        assert matches_block_pattern("Baby Shark (Remix)", "baby shark")

    def test_pattern_does_not_block_unrelated_song(self):
        assert not matches_block_pattern("Shark Tale Theme", "baby shark")

    def test_pattern_whitespace_is_normalized(self):
        assert matches_block_pattern("Baby   Shark", "  BABY SHARK ")


class TestClientIdentity:
    def test_first_forwarded_hop_wins(self):
        headers = {"X-Forwarded-For": "203.0.113.7, 10.0.0.1", "X-Real-IP": "10.0.0.9"}
        assert resolve_client_identity(headers, "10.0.0.2") == "203.0.113.7"

    def test_header_lookup_is_case_insensitive(self):
        assert resolve_client_identity({"x-forwarded-for": "198.51.100.4"}) == (
            "198.51.100.4"
        )

    def test_real_ip_used_without_forwarded_for(self):
        assert resolve_client_identity({"X-Real-IP": " 10.0.0.9 "}, "10.0.0.2") == (
            "10.0.0.9"
        )

    def test_peer_address_fallback(self):
        assert resolve_client_identity({}, "192.0.2.10") == "192.0.2.10"

    def test_blank_forwarded_for_falls_through(self):
        assert resolve_client_identity({"X-Forwarded-For": " , 10.0.0.1"}, "192.0.2.10") == (
            "192.0.2.10"
        )

    def test_unknown_when_nothing_available(self):
        assert resolve_client_identity({}) == UNKNOWN_IDENTITY
