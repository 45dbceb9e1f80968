from src.utils.hashing import sha256_bytes
from src.utils.http_client import FetchedDocument


def test_sha256_bytes_known_vector():
    # SHA-256("abc")
    assert sha256_bytes(b"abc") == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"


def test_fetched_document_hash_covers_body():
    doc = FetchedDocument(url="https://example.test/a", content=b"abc", status=200)
    assert doc.sha256 == sha256_bytes(b"abc")
    assert doc.text == "abc"
