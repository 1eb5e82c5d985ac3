import hashlib

import pytest

from strata.runtime import crypto


@pytest.fixture
def key_paths(tmp_path):
    return tmp_path / "signing.pem", tmp_path / "signing.pub.pem"


def test_ensure_keypair_generates_once(key_paths, capsys):
    key_file, pub_file = key_paths

    crypto.ensure_keypair(key_file, pub_file)
    first = key_file.read_bytes()
    assert "Generating new Strata signing key" in capsys.readouterr().out

    crypto.ensure_keypair(key_file, pub_file)
    assert key_file.read_bytes() == first
    assert pub_file.exists()
    assert capsys.readouterr().out == ""


def test_sign_and_verify_round_trip(key_paths):
    key_file, pub_file = key_paths
    digest = hashlib.sha256(b"registry").hexdigest()

    signature = crypto.sign_hash(digest, key_file, pub_file)

    assert crypto.verify_signature(digest, signature, pub_file)
    other = hashlib.sha256(b"tampered").hexdigest()
    assert not crypto.verify_signature(other, signature, pub_file)
    assert not crypto.verify_signature(digest, "not-hex", pub_file)


def test_missing_cryptography_raises_runtime_error(monkeypatch, key_paths):
    monkeypatch.setattr(crypto, "ed25519", None)

    with pytest.raises(RuntimeError, match="cryptography"):
        crypto.ensure_keypair(*key_paths)
