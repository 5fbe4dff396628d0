import base64

import bcrypt
import pytest

from statuskeeper.security import BasicConfig, OIDCConfig, SecurityConfig


def _encoded_hash(plain: str) -> str:
    hashed = bcrypt.hashpw(plain.encode(), bcrypt.gensalt(rounds=4))
    return base64.urlsafe_b64encode(hashed).decode()


def _oidc_config(**overrides) -> OIDCConfig:
    values = dict(
        issuer_url="https://sso.example.com/",
        redirect_url="http://localhost:80/authorization-code/callback",
        client_id="client-id",
        client_secret="secret",
        scopes=["openid"],
        allowed_subjects=["user1@example.com"],
    )
    values.update(overrides)
    return OIDCConfig(**values)


def test_oidc_config_is_valid():
    assert _oidc_config().is_valid() is True


def test_oidc_config_requires_callback_suffix():
    assert _oidc_config(redirect_url="http://localhost:80/elsewhere").is_valid() is False


@pytest.mark.parametrize(
    "field_name, value",
    [("issuer_url", ""), ("client_id", ""), ("client_secret", ""), ("scopes", [])],
)
def test_oidc_config_missing_field_is_invalid(field_name, value):
    assert _oidc_config(**{field_name: value}).is_valid() is False


def test_oidc_subject_check_is_case_insensitive():
    config = _oidc_config()
    assert config._is_subject_allowed("USER1@example.com") is True
    assert config._is_subject_allowed("user2@example.com") is False


def test_oidc_no_allowed_subjects_allows_everyone():
    assert _oidc_config(allowed_subjects=[])._is_subject_allowed("anyone@example.com") is True


def test_basic_config_validity():
    assert BasicConfig(username="admin", password_bcrypt_base64="placeholder").is_valid() is True
    assert BasicConfig(username="", password_bcrypt_base64="placeholder").is_valid() is False
    assert BasicConfig(username="admin", password_bcrypt_base64="").is_valid() is False


def test_security_config_validity():
    assert SecurityConfig().is_valid() is False
    assert SecurityConfig(basic=BasicConfig("admin", "placeholder")).is_valid() is True
    assert SecurityConfig(basic=BasicConfig("admin", "")).is_valid() is False
    assert SecurityConfig(oidc=_oidc_config()).is_valid() is True


def test_check_basic_auth_accepts_correct_credentials():
    password = "password"
    config = SecurityConfig(basic=BasicConfig("admin", _encoded_hash(password)))
    assert config.check_basic_auth("admin", password) is True


def test_check_basic_auth_rejects_wrong_password_and_username():
    password = "password"
    config = SecurityConfig(basic=BasicConfig("admin", _encoded_hash(password)))
    assert config.check_basic_auth("admin", "secret") is False
    assert config.check_basic_auth("other", password) is False
    assert config.check_basic_auth(None, None) is False


def test_check_basic_auth_without_hash_allows_access():
    config = SecurityConfig(basic=BasicConfig("admin", ""))
    assert config.check_basic_auth(None, None) is True


def test_check_basic_auth_rejects_bad_base64():
    config = SecurityConfig(basic=BasicConfig("admin", "not base64!"))
    with pytest.raises(ValueError):
        config.check_basic_auth("admin", "password")


def test_check_basic_auth_rejects_non_bcrypt_hash():
    encoded = base64.urlsafe_b64encode(b"plainly-not-a-hash").decode()
    config = SecurityConfig(basic=BasicConfig("admin", encoded))
    assert config.check_basic_auth("admin", "password") is False