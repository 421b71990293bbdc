import time
import pytest
from jose import JWTError, jwt
from telehealth.exceptions import TelehealthNotConfigured
from telehealth.services import jitsi_token

SECRET = "room-secret"
APP_ID = "telehealth-app"


def _issue(is_moderator=True, now=None, **kwargs):
    return jitsi_token.issue(
        APP_ID, SECRET, "clinic-appt-APPT-1-abc", "Jane Smith", "jane@example.org", is_moderator,
        now=now if now is not None else int(time.time()), **kwargs
    )


def test_token_has_three_segments_and_hs256_header():
    token = _issue()
    assert token.count(".") == 2
    assert jwt.get_unverified_header(token) == {"alg": "HS256", "typ": "JWT"}


def test_payload_claims():
    now = int(time.time())
    claims = jitsi_token.verify(_issue(now=now), SECRET, app_id=APP_ID)

    assert claims["iss"] == APP_ID
    assert claims["sub"] == "*"
    assert claims["aud"] == "jitsi"
    assert claims["iat"] == claims["nbf"] == now
    assert claims["exp"] == now + 7200
    assert claims["room"] == "clinic-appt-APPT-1-abc"
    assert claims["context"]["user"] == {
        "name": "Jane Smith",
        "email": "jane@example.org",
        "moderator": "true",
        "affiliation": "owner",
    }


def test_moderator_grants_recording():
    features = jwt.get_unverified_claims(_issue(is_moderator=True))["context"]["features"]
    assert features == {"recording": "true", "livestreaming": "false", "screen-sharing": "true"}


def test_participant_gets_no_recording():
    context = jwt.get_unverified_claims(_issue(is_moderator=False))["context"]
    assert context["features"]["recording"] == "false"
    assert context["user"]["moderator"] == "false"
    assert context["user"]["affiliation"] == "member"


def test_custom_ttl():
    now = int(time.time())
    claims = jwt.get_unverified_claims(_issue(now=now, ttl_seconds=60))
    assert claims["exp"] == now + 60


def test_same_inputs_same_instant_same_token():
    now = 1_770_000_000
    assert _issue(now=now) == _issue(now=now)
    assert _issue(now=now) != _issue(now=now + 1)


def test_tampered_payload_fails_verification():
    header, payload, signature = _issue().split(".")
    middle = len(payload) // 2
    swapped = "B" if payload[middle] != "B" else "C"
    tampered = ".".join([header, payload[:middle] + swapped + payload[middle + 1:], signature])

    with pytest.raises(JWTError):
        jitsi_token.verify(tampered, SECRET)


def test_wrong_secret_fails_verification():
    with pytest.raises(JWTError):
        jitsi_token.verify(_issue(), "another-secret")


def test_empty_secret_is_refused():
    with pytest.raises(TelehealthNotConfigured):
        jitsi_token.issue(APP_ID, "", "room", "Jane")
