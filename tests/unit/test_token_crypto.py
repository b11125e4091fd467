from lmsbox.utils.token_crypto import (
    TOKEN_PREFIX,
    build_token_string,
    decode_link_token,
    derive_display_parts,
    encode_link_token,
    generate_login_link_token,
    generate_token,
    hash_login_link_token,
    hash_secret,
    login_link_candidates,
    parse_token,
    verify_secret,
)


def test_parse_token_and_build_roundtrip():
    tid = "abc123def4567890"
    secret = "s3cr3t_part_with_underscores"
    token = build_token_string(tid, secret)
    assert token.startswith(TOKEN_PREFIX)
    parsed = parse_token(token)
    assert parsed and parsed.token_id == tid and parsed.secret == secret

    assert parse_token("") is None
    assert parse_token("notvalid") is None
    assert parse_token(TOKEN_PREFIX + "nounderscore") is None
    assert parse_token(TOKEN_PREFIX + "_leadingunderscore") is None


def test_hash_and_verify_secret():
    secret = "topsecret"
    h = hash_secret(secret)
    assert h != secret
    assert verify_secret(secret, h) is True
    assert verify_secret("wrong", h) is False
    assert verify_secret("", h) is False
    assert verify_secret(secret, "") is False
    assert verify_secret(secret, "unknown$scheme") is False


def test_display_parts_and_generate_token():
    tid, sec, token = generate_token()
    assert "_" not in tid
    prefix, last4 = derive_display_parts(token)
    assert len(prefix) == 8
    assert last4 == sec[-4:]
    assert derive_display_parts("bogus") == ("", "")


def test_login_link_token_shape():
    raw = generate_login_link_token()
    assert len(raw) == 64
    assert raw == raw.upper()
    int(raw, 16)  # hex
    assert generate_login_link_token() != raw


def test_login_link_hash_is_sha256_hex():
    digest = hash_login_link_token("ABC")
    assert len(digest) == 64
    assert digest == hash_login_link_token("ABC")
    assert digest != hash_login_link_token("abc")


def test_encoded_link_token_is_unpadded_base64url():
    raw = generate_login_link_token()
    encoded = encode_link_token(raw)
    assert "=" not in encoded
    assert decode_link_token(encoded) == raw


def test_login_link_candidates_prefer_decoded_value():
    raw = generate_login_link_token()
    assert login_link_candidates(encode_link_token(raw)) == [raw, encode_link_token(raw)]
    assert login_link_candidates("  ") == []
    assert login_link_candidates(None) == []
