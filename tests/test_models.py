"""Tests for session data, algorithms and outcome messages."""

import pytest

from conftest import make_certificate
from idsign.algorithms import KEY_TYPE_EC, KEY_TYPE_RSA, digest_info, parse_algorithm
from idsign.coordinator.messages import outcome_message
from idsign.coordinator.states import Failed, FailureReason, Succeeded
from idsign.models import Certificate, HashToSign, MobileID, SigningRequest


class TestSigningRequest:
    """Request validation."""

    def test_empty_document_rejected(self):
        with pytest.raises(ValueError):
            SigningRequest("")

    def test_defaults_to_local_token(self):
        request = SigningRequest("tekst")

        assert request.uses_mobile_id is False

    def test_mobile_id_fields_validated(self):
        with pytest.raises(ValueError):
            MobileID(personal_code="6000101990", phone_number="+37200000766")
        with pytest.raises(ValueError):
            MobileID(personal_code="60001019906", phone_number="5555-1234")

    def test_mobile_id_request(self):
        request = SigningRequest("tekst", MobileID("60001019906", "+37200000766"))

        assert request.uses_mobile_id is True


class TestCertificate:
    """Certificate helpers."""

    def test_key_types(self, rsa_certificate, ec_certificate):
        assert rsa_certificate.key_type == KEY_TYPE_RSA
        assert ec_certificate.key_type == KEY_TYPE_EC

    def test_unparseable_certificate_has_unknown_key_type(self):
        certificate = Certificate.from_hex("deadbeef")

        assert certificate.der == b"\xde\xad\xbe\xef"
        assert certificate.key_type is None
        assert certificate.has_non_repudiation is False

    def test_pem_from_token_hex(self, rsa_certificate):
        pem = Certificate.from_hex(rsa_certificate.der.hex()).to_pem()

        assert pem.startswith("-----BEGIN CERTIFICATE-----\n")
        assert pem.rstrip().endswith("-----END CERTIFICATE-----")
        assert all(len(line) <= 64 for line in pem.splitlines())
        assert Certificate.from_pem(pem) == rsa_certificate

    def test_non_repudiation(self, rsa_key, rsa_certificate):
        assert rsa_certificate.has_non_repudiation is True
        assert make_certificate(rsa_key, signing=False).has_non_repudiation is False

    def test_equality_ignores_key_ref(self, rsa_certificate):
        assert Certificate(rsa_certificate.der, key_ref=b"\x01") == rsa_certificate


class TestHashToSign:
    """Phase-1 response validation."""

    def test_from_wire(self):
        result = HashToSign.from_wire("Zm9v", "rsa-sha256")

        assert result.digest == b"foo"
        assert result.algorithm.identifier == "RSA-SHA256"
        assert result.hash_name == "SHA-256"

    @pytest.mark.parametrize(
        "hash_b64,algo",
        [("", "SHA-256"), ("Zm9v!", "SHA-256"), ("Zm9v", ""), ("Zm9v", "SHA-1")],
    )
    def test_malformed(self, hash_b64, algo):
        with pytest.raises(ValueError):
            HashToSign.from_wire(hash_b64, algo)


class TestAlgorithms:
    """Algorithm table."""

    def test_hash_only_matches_any_key(self):
        algorithm = parse_algorithm("SHA-512")

        assert algorithm.key_type is None
        assert algorithm.matches_key_type(KEY_TYPE_RSA)
        assert algorithm.matches_key_type(KEY_TYPE_EC)

    def test_key_qualified(self):
        algorithm = parse_algorithm("ECDSA-SHA384")

        assert algorithm.hash_name == "SHA-384"
        assert algorithm.matches_key_type(KEY_TYPE_EC)
        assert not algorithm.matches_key_type(KEY_TYPE_RSA)
        assert algorithm.matches_key_type(None)

    def test_digest_info_for_sha256(self):
        wrapped = digest_info("SHA-256", b"\x00" * 32)

        assert len(wrapped) == 51
        assert wrapped.startswith(bytes.fromhex("3031300d0609608648016503040201"))

    def test_digest_info_unknown_hash(self):
        with pytest.raises(ValueError):
            digest_info("SHA-1", b"\x00" * 20)


class TestOutcomeMessages:
    """User-visible outcome text."""

    def test_request_failures_share_one_message(self):
        messages = {
            outcome_message(Failed(reason), "en")
            for reason in (
                FailureReason.PHASE1_TRANSPORT_ERROR,
                FailureReason.PHASE1_PROTOCOL_ERROR,
                FailureReason.PHASE2_TRANSPORT_ERROR,
            )
        }

        assert messages == {"Request failed"}

    def test_server_rejection_verbatim(self):
        state = Failed(FailureReason.SERVER_REJECTED, detail="invalid signature")

        assert outcome_message(state, "en") == "invalid signature"

    def test_estonian_default_and_fallback(self):
        assert outcome_message(Succeeded()) == "Allkiri edukalt antud"
        assert outcome_message(Succeeded(mobile_id=True), "fr") == "Allkirjastamine edukas"

    def test_every_failure_has_a_message(self):
        for lang in ("et", "en"):
            for reason in FailureReason:
                assert outcome_message(Failed(reason, detail="x"), lang)

    def test_non_terminal_state_rejected(self):
        with pytest.raises(ValueError):
            outcome_message(object(), "en")
