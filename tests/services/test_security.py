import pytest

from authsession.services.security import (
    decode_state,
    generate_state,
    states_match,
    validate_redirect_uri,
)


class TestGenerateState:
    def test_random_state_is_url_safe_and_unique(self):
        # Act
        states = {generate_state() for _ in range(20)}

        # Assert
        assert len(states) == 20
        for state in states:
            assert len(state) == 22
            assert "=" not in state
            assert "+" not in state and "/" not in state

    def test_opaque_state_does_not_decode(self):
        assert decode_state(generate_state()) is None

    def test_embedded_state_round_trips_verifier_and_redirect(self):
        # Arrange
        verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"

        # Act
        state = generate_state(verifier, "https://myapp.com/reports")
        decoded = decode_state(state)

        # Assert
        assert decoded is not None
        assert decoded["code_verifier"] == verifier
        assert decoded["redirect_url"] == "https://myapp.com/reports"
        assert len(decoded["state"]) == 22

    @pytest.mark.parametrize("state", ["", "!!!", "bm90IGpzb24"])
    def test_garbage_state_does_not_decode(self, state):
        assert decode_state(state) is None


class TestStateMatching:
    def test_matching_states(self):
        assert states_match("abc123", "abc123")

    @pytest.mark.parametrize(
        "expected,actual",
        [("abc123", "abc124"), ("abc123", None), (None, "abc123"), ("", "")],
    )
    def test_non_matching_states(self, expected, actual):
        assert not states_match(expected, actual)


class TestRedirectUriValidation:
    @pytest.mark.parametrize(
        "uri",
        [
            "https://myapp.com/callback",
            "http://localhost:8080/callback",
            "http://127.0.0.1/callback",
        ],
    )
    def test_accepts_https_and_loopback(self, uri):
        assert validate_redirect_uri(uri)

    @pytest.mark.parametrize(
        "uri", ["http://myapp.com/callback", "myapp://callback", "not a url"]
    )
    def test_rejects_other_uris(self, uri):
        assert not validate_redirect_uri(uri)
