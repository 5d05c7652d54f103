from ircchat.hashing import hash_password


def test_empty_string_digest():
    assert (
        hash_password("")
        == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
    )


def test_abc_digest():
    assert (
        hash_password("abc")
        == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    )


def test_password_digest():
    assert (
        hash_password("password")
        == "5e884898da28047151d0e56f8dc6292773603d0d6aabbdd62a11ef721d1542d8"
    )


def test_deterministic_and_distinct():
    assert hash_password("password") == hash_password("password")
    assert hash_password("password") != hash_password("secret")


def test_unicode_input():
    digest = hash_password("пароль")
    assert len(digest) == 64
    assert set(digest) <= set("0123456789abcdef")
    assert digest != hash_password("parol")