from urllib.parse import parse_qs, urlparse

import pytest

from smartlearn.storage.local import LinkExpired, LocalStorage


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(base_path=str(tmp_path), base_url="http://api.test/")


def test_put_and_head(storage):
    storage.put("certificates/c1.pdf", b"%PDF", "application/pdf")
    assert storage.head_exists("certificates/c1.pdf")
    assert not storage.head_exists("certificates/c2.pdf")


def test_key_cannot_escape_root(storage):
    with pytest.raises(ValueError):
        storage.path_for("../outside.pdf")


def test_signed_link(storage):
    url = storage.sign("certificates/c1.pdf", 60, "Certificate-X.pdf")
    parsed = urlparse(url)
    assert parsed.path == "/files/certificates/c1.pdf"
    token = parse_qs(parsed.query)["token"][0]
    assert storage.open_link(token) == ("certificates/c1.pdf", "Certificate-X.pdf")


def test_expired_link(storage):
    url = storage.sign("certificates/c1.pdf", -1)
    token = parse_qs(urlparse(url).query)["token"][0]
    with pytest.raises(LinkExpired):
        storage.open_link(token)


def test_tampered_link(storage):
    with pytest.raises(LinkExpired):
        storage.open_link("not-a-token")
