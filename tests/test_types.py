"""Tests for configuration and the wire encoding of bundles and messages."""

import base64
import json

import pytest

from pqxdh import (
    AgreementConfig,
    ClassicalBundle,
    ConfigError,
    EncryptedMessage,
    HybridBundle,
    MalformedBundle,
    MalformedMessage,
    X3DH,
    bundle_from_dict,
    bundle_from_json,
)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"info": b""},
        {"info": "not-bytes"},
        {"pre_key_count": 0},
        {"kem": "ML-KEM-2048"},
        {"signature_scheme": "rsa"},
        {"safety_number_length": 0},
        {"safety_number_length": 89},
    ],
)
def test_config_validation(kwargs):
    with pytest.raises(ConfigError):
        AgreementConfig(**kwargs).validate()


def test_default_config_is_valid():
    config = AgreementConfig.default()
    config.validate()
    assert config.pre_key_count == 10
    assert config.kem == "ML-KEM-1024"


def test_party_rejects_invalid_config():
    with pytest.raises(ConfigError):
        X3DH.create(AgreementConfig(pre_key_count=0))


def test_bundle_dict_uses_base64_everywhere():
    bundle = X3DH.create().get_public_bundle()
    d = bundle.to_dict()

    assert d["variant"] == "x3dh"
    assert base64.b64decode(d["identityKey"]) == bundle.identity_key
    assert len(d["preKeys"]) == 10
    assert base64.b64decode(d["signedPreKey"]["signature"]) == bundle.signed_pre_key.signature
    assert "kyberPublicKey" not in d


def test_bundle_unknown_variant():
    d = X3DH.create().get_public_bundle().to_dict()
    d["variant"] = "x4dh"
    with pytest.raises(MalformedBundle):
        bundle_from_dict(d)


def test_bundle_variant_mismatch():
    d = X3DH.create().get_public_bundle().to_dict()
    with pytest.raises(MalformedBundle):
        HybridBundle.from_dict(d)


def test_bundle_bad_base64():
    d = X3DH.create().get_public_bundle().to_dict()
    d["identityKey"] = "not base64!!"
    with pytest.raises(MalformedBundle):
        ClassicalBundle.from_dict(d)


def test_bundle_missing_fields():
    d = X3DH.create().get_public_bundle().to_dict()
    del d["signedPreKey"]
    with pytest.raises(MalformedBundle):
        ClassicalBundle.from_dict(d)

    d = X3DH.create().get_public_bundle().to_dict()
    d["preKeys"] = "abc"
    with pytest.raises(MalformedBundle):
        ClassicalBundle.from_dict(d)


def test_bundle_invalid_json():
    with pytest.raises(MalformedBundle):
        bundle_from_json(b"{not json")
    with pytest.raises(MalformedBundle):
        bundle_from_json(b"[1, 2, 3]")


def test_message_round_trip_classical():
    msg = EncryptedMessage(ciphertext=b"ct", ephemeral_key=b"\x01" * 32, used_pre_key_index=4)
    d = json.loads(msg.to_json())

    assert d["usedPreKeyIndex"] == 4
    assert "kyberCiphertext" not in d
    assert EncryptedMessage.from_json(msg.to_json()) == msg


def test_message_round_trip_hybrid():
    msg = EncryptedMessage(
        ciphertext=b"ct",
        ephemeral_key=b"\x01" * 32,
        used_pre_key_index=0,
        kyber_ciphertext=b"\x02" * 1568,
    )
    assert EncryptedMessage.from_json(msg.to_json()) == msg


@pytest.mark.parametrize("index", ["0", 1.5, True, None])
def test_message_bad_index(index):
    d = {"ciphertext": "", "ephemeralKey": "", "usedPreKeyIndex": index}
    with pytest.raises(MalformedMessage):
        EncryptedMessage.from_dict(d)


def test_message_bad_base64():
    d = {"ciphertext": "@@@", "ephemeralKey": "", "usedPreKeyIndex": 0}
    with pytest.raises(MalformedMessage):
        EncryptedMessage.from_dict(d)


def test_message_invalid_json():
    with pytest.raises(MalformedMessage):
        EncryptedMessage.from_json(b"")


def test_associated_data_binds_header():
    base = EncryptedMessage(ciphertext=b"", ephemeral_key=b"\x01" * 32, used_pre_key_index=0)
    other_index = EncryptedMessage(ciphertext=b"", ephemeral_key=b"\x01" * 32, used_pre_key_index=1)
    with_kem = EncryptedMessage(
        ciphertext=b"", ephemeral_key=b"\x01" * 32, used_pre_key_index=0, kyber_ciphertext=b"\x02"
    )

    assert base.associated_data() != other_index.associated_data()
    assert base.associated_data() != with_kem.associated_data()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
