"""Certificate, CSR and key parsing service."""

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa

from keybook.models.artifact import SECRET_EXTENSIONS, ArtifactEncoding, ArtifactKind

logger = logging.getLogger("keybook")

# PEM armor label -> artifact kind
PEM_LABELS = {
    "CERTIFICATE": ArtifactKind.CERTIFICATE,
    "TRUSTED CERTIFICATE": ArtifactKind.CERTIFICATE,
    "CERTIFICATE REQUEST": ArtifactKind.CSR,
    "NEW CERTIFICATE REQUEST": ArtifactKind.CSR,
    "PRIVATE KEY": ArtifactKind.PRIVATE_KEY,
    "RSA PRIVATE KEY": ArtifactKind.PRIVATE_KEY,
    "EC PRIVATE KEY": ArtifactKind.PRIVATE_KEY,
    "ENCRYPTED PRIVATE KEY": ArtifactKind.ENCRYPTED_PRIVATE_KEY,
    "PUBLIC KEY": ArtifactKind.PUBLIC_KEY,
    "RSA PUBLIC KEY": ArtifactKind.PUBLIC_KEY,
}

PKCS12_EXTENSIONS = {".p12", ".pfx"}

_PEM_BEGIN = re.compile(rb"-----BEGIN ([A-Z0-9 ]+)-----")


class CertificateParser:
    """Service for parsing X.509 certificates, CSRs and keys."""

    @staticmethod
    def split_pem_bundle(pem_bundle: str) -> List[str]:
        """
        Split a string containing multiple PEM certificates into a list.
        Args:
            pem_bundle: A string containing one or more PEM-encoded certificates.
        Returns:
            A list of individual PEM certificate strings.
        """
        cert_pattern = r"-----BEGIN CERTIFICATE-----(?:.|\n)+?-----END CERTIFICATE-----"
        return re.findall(cert_pattern, pem_bundle)

    @staticmethod
    def is_pem(data: bytes) -> bool:
        """True if data contains PEM armor."""
        return _PEM_BEGIN.search(data) is not None

    @staticmethod
    def load_certificate(data: bytes) -> x509.Certificate:
        """
        Load a certificate from PEM or DER bytes.

        Raises:
            ValueError: If the data is not a certificate
        """
        if CertificateParser.is_pem(data):
            return x509.load_pem_x509_certificate(data)
        return x509.load_der_x509_certificate(data)

    @staticmethod
    def load_csr(data: bytes) -> x509.CertificateSigningRequest:
        """
        Load a CSR from PEM or DER bytes.

        Raises:
            ValueError: If the data is not a CSR
        """
        if CertificateParser.is_pem(data):
            return x509.load_pem_x509_csr(data)
        return x509.load_der_x509_csr(data)

    @staticmethod
    def load_private_key(data: bytes, passphrase: Optional[str] = None):
        """
        Load a private key from PEM or DER bytes.

        Raises:
            ValueError: If the data is not a key or the passphrase is wrong
            TypeError: If the key is encrypted and no passphrase was given
        """
        password = passphrase.encode("utf-8") if passphrase else None
        if CertificateParser.is_pem(data):
            return serialization.load_pem_private_key(data, password=password)
        return serialization.load_der_private_key(data, password=password)

    @staticmethod
    def load_public_key(data: bytes):
        """Load a public key from PEM or DER bytes."""
        if CertificateParser.is_pem(data):
            return serialization.load_pem_public_key(data)
        return serialization.load_der_public_key(data)

    @staticmethod
    def parse_certificate(cert_path: Path) -> Dict[str, Any]:
        """
        Parse X.509 Certificate from file and extract all relevant data.

        Args:
            cert_path: Path to certificate file (PEM or DER)

        Returns:
            Dictionary with parsed certificate data

        Raises:
            FileNotFoundError: If certificate file not found
            ValueError: If certificate cannot be parsed
        """
        if not cert_path.exists():
            raise FileNotFoundError(f"Certificate not found: {cert_path}")

        with open(cert_path, "rb") as f:
            data = f.read()

        try:
            return CertificateParser.certificate_to_dict(CertificateParser.load_certificate(data))
        except ValueError as e:
            logger.error(f"Error parsing certificate {cert_path}: {e}")
            raise ValueError(f"Failed to parse certificate: {e}")

    @staticmethod
    def parse_certificate_pem(cert_pem: str) -> Dict[str, Any]:
        """
        Parse X.509 Certificate from PEM content.

        Raises:
            ValueError: If certificate cannot be parsed
        """
        try:
            cert = x509.load_pem_x509_certificate(cert_pem.encode("utf-8"))
        except ValueError as e:
            logger.error(f"Error parsing certificate: {e}")
            raise ValueError(f"Failed to parse certificate: {e}")
        return CertificateParser.certificate_to_dict(cert)

    @staticmethod
    def certificate_to_dict(cert: x509.Certificate) -> Dict[str, Any]:
        """Extract the displayed fields of a certificate."""
        key_info = CertificateParser._extract_key_info(cert.public_key())
        not_before = cert.not_valid_before_utc
        not_after = cert.not_valid_after_utc
        status_class, status_text = CertificateParser.get_validity_status(not_before, not_after)

        return {
            "subject": CertificateParser._extract_subject(cert.subject),
            "issuer": CertificateParser._extract_subject(cert.issuer),
            "not_before": not_before,
            "not_after": not_after,
            "serial_number": format(cert.serial_number, "X"),
            "public_key_algorithm": key_info["algorithm"],
            "public_key_size": key_info["key_size"],
            "public_key_curve": key_info["curve"],
            "fingerprint_sha256": cert.fingerprint(hashes.SHA256()).hex(":").upper(),
            "sans": CertificateParser._extract_sans(cert.extensions),
            "is_ca": CertificateParser._is_ca(cert),
            "self_signed": cert.subject == cert.issuer,
            "key_usage": CertificateParser._extract_key_usage(cert),
            "extended_key_usage": CertificateParser._extract_extended_key_usage(cert),
            "validity_status": status_class,
            "validity_text": status_text,
        }

    @staticmethod
    def parse_csr(data: bytes) -> Dict[str, Any]:
        """
        Parse a CSR from PEM or DER bytes.

        Returns:
            Dictionary with subject, SANs, public key info and signature validity

        Raises:
            ValueError: If the CSR cannot be parsed
        """
        try:
            csr = CertificateParser.load_csr(data)
        except ValueError as e:
            logger.error(f"CSR parsing failed: {e}")
            raise ValueError(f"Failed to parse CSR: {e}")

        public_key = csr.public_key()
        key_info = CertificateParser._extract_key_info(public_key)
        return {
            "subject": CertificateParser._extract_subject(csr.subject),
            "sans": CertificateParser._extract_sans(csr.extensions),
            "public_key_algorithm": key_info["algorithm"],
            "public_key_size": key_info["key_size"],
            "public_key_curve": key_info["curve"],
            "public_key_fingerprint_sha256": CertificateParser.public_key_fingerprint(public_key),
            "signature_valid": csr.is_signature_valid,
        }

    @staticmethod
    def describe_key(private_key) -> Dict[str, Any]:
        """Algorithm, size, curve and public key fingerprint of a private key."""
        public_key = private_key.public_key()
        info = CertificateParser._extract_key_info(public_key)
        info["public_key_fingerprint_sha256"] = CertificateParser.public_key_fingerprint(public_key)
        return info

    @staticmethod
    def public_key_fingerprint(public_key) -> str:
        """SHA-256 over the DER SubjectPublicKeyInfo, colon-separated hex."""
        spki = public_key.public_bytes(
            encoding=serialization.Encoding.DER, format=serialization.PublicFormat.SubjectPublicKeyInfo
        )
        digest = hashes.Hash(hashes.SHA256())
        digest.update(spki)
        return digest.finalize().hex(":").upper()

    @staticmethod
    def _extract_subject(name: x509.Name) -> Dict[str, Optional[str]]:
        """
        Extract Subject/Issuer DN.

        Args:
            name: X.509 Name object

        Returns:
            Dictionary with OpenSSL-style short keys
        """

        def get_attribute(oid):
            attrs = name.get_attributes_for_oid(oid)
            return attrs[0].value if attrs else None

        return {
            "CN": get_attribute(x509.NameOID.COMMON_NAME),
            "O": get_attribute(x509.NameOID.ORGANIZATION_NAME),
            "OU": get_attribute(x509.NameOID.ORGANIZATIONAL_UNIT_NAME),
            "C": get_attribute(x509.NameOID.COUNTRY_NAME),
            "ST": get_attribute(x509.NameOID.STATE_OR_PROVINCE_NAME),
            "L": get_attribute(x509.NameOID.LOCALITY_NAME),
        }

    @staticmethod
    def _extract_key_info(public_key) -> Dict[str, Any]:
        """
        Extract public key information.

        Args:
            public_key: Public key object

        Returns:
            Dictionary with key information
        """
        if isinstance(public_key, rsa.RSAPublicKey):
            return {"algorithm": "RSA", "key_size": public_key.key_size, "curve": None}
        elif isinstance(public_key, ec.EllipticCurvePublicKey):
            curve_name = public_key.curve.name
            # Map OpenSSL names to our standard names
            curve_map = {
                "secp256r1": "P-256",
                "secp384r1": "P-384",
                "secp521r1": "P-521",
            }
            return {
                "algorithm": "ECDSA",
                "key_size": public_key.curve.key_size,
                "curve": curve_map.get(curve_name, curve_name),
            }
        elif isinstance(public_key, ed25519.Ed25519PublicKey):
            return {"algorithm": "Ed25519", "key_size": None, "curve": None}
        else:
            return {"algorithm": "Unknown", "key_size": None, "curve": None}

    @staticmethod
    def _extract_sans(extensions: x509.Extensions) -> list[str]:
        """
        Extract Subject Alternative Names (DNS names and IP addresses).

        Args:
            extensions: Extensions of a certificate or CSR

        Returns:
            List of SANs
        """
        try:
            san_ext = extensions.get_extension_for_oid(x509.ExtensionOID.SUBJECT_ALTERNATIVE_NAME)
        except x509.ExtensionNotFound:
            return []
        return [str(name.value) for name in san_ext.value]

    @staticmethod
    def _is_ca(cert: x509.Certificate) -> bool:
        """Check if certificate has CA:TRUE in Basic Constraints."""
        try:
            bc = cert.extensions.get_extension_for_oid(x509.ExtensionOID.BASIC_CONSTRAINTS)
            return bc.value.ca
        except x509.ExtensionNotFound:
            return False

    @staticmethod
    def _extract_key_usage(cert: x509.Certificate) -> list[str]:
        """
        Extract Key Usage extension values.

        Args:
            cert: Certificate object

        Returns:
            List of Key Usage strings (e.g., ["digitalSignature", "keyEncipherment"])
        """
        try:
            ku = cert.extensions.get_extension_for_oid(x509.ExtensionOID.KEY_USAGE).value
        except x509.ExtensionNotFound:
            return []

        flags = [
            ("digitalSignature", ku.digital_signature),
            ("nonRepudiation", ku.content_commitment),
            ("keyEncipherment", ku.key_encipherment),
            ("dataEncipherment", ku.data_encipherment),
            ("keyAgreement", ku.key_agreement),
            ("keyCertSign", ku.key_cert_sign),
            ("cRLSign", ku.crl_sign),
        ]
        usage_list = [name for name, enabled in flags if enabled]

        # encipher_only and decipher_only are only defined with key_agreement
        if ku.key_agreement:
            if ku.encipher_only:
                usage_list.append("encipherOnly")
            if ku.decipher_only:
                usage_list.append("decipherOnly")

        return usage_list

    @staticmethod
    def _extract_extended_key_usage(cert: x509.Certificate) -> list[str]:
        """
        Extract Extended Key Usage extension values.

        Args:
            cert: Certificate object

        Returns:
            List of Extended Key Usage strings (e.g., ["serverAuth", "clientAuth"])
        """
        eku_oid_map = {
            x509.ExtendedKeyUsageOID.SERVER_AUTH: "serverAuth",
            x509.ExtendedKeyUsageOID.CLIENT_AUTH: "clientAuth",
            x509.ExtendedKeyUsageOID.CODE_SIGNING: "codeSigning",
            x509.ExtendedKeyUsageOID.EMAIL_PROTECTION: "emailProtection",
            x509.ExtendedKeyUsageOID.TIME_STAMPING: "timeStamping",
            x509.ExtendedKeyUsageOID.OCSP_SIGNING: "OCSPSigning",
        }

        try:
            eku_ext = cert.extensions.get_extension_for_oid(x509.ExtensionOID.EXTENDED_KEY_USAGE)
        except x509.ExtensionNotFound:
            return []

        return [eku_oid_map.get(oid, oid.dotted_string) for oid in eku_ext.value]

    @staticmethod
    def get_validity_status(not_before: datetime, not_after: datetime) -> tuple[str, str]:
        """
        Get validity status of certificate.

        Args:
            not_before: Certificate start date
            not_after: Certificate end date

        Returns:
            Tuple of (status_class, status_text)
            status_class: success, warning or danger
            status_text: Human-readable status
        """
        now = datetime.now(not_after.tzinfo) if not_after.tzinfo else datetime.now()

        if now < not_before:
            return "warning", "Not yet valid"
        elif now > not_after:
            return "danger", "Expired"
        else:
            # Check if expiring soon (within 30 days)
            days_remaining = (not_after - now).days
            if days_remaining <= 30:
                return "warning", f"Expires in {days_remaining} days"
            else:
                return "success", "Valid"

    @staticmethod
    def keys_match(public_key, private_key) -> bool:
        """
        Compare a public key with the public half of a private key.

        Args:
            public_key: Public key (e.g. from a certificate)
            private_key: Private key object

        Returns:
            True if both encode to the same SubjectPublicKeyInfo
        """
        fmt = serialization.PublicFormat.SubjectPublicKeyInfo
        expected = public_key.public_bytes(encoding=serialization.Encoding.DER, format=fmt)
        actual = private_key.public_key().public_bytes(encoding=serialization.Encoding.DER, format=fmt)
        return expected == actual

    @staticmethod
    def detect_kind(path: Path) -> Tuple[ArtifactKind, Optional[ArtifactEncoding]]:
        """
        Work out what kind of artifact a file holds.

        PEM armor is trusted first, then the PKCS#12 and secret file
        extensions, then each DER structure is tried in turn.

        Args:
            path: File to inspect

        Returns:
            Tuple of (kind, encoding); encoding is None for unknown files
        """
        data = path.read_bytes()

        match = _PEM_BEGIN.search(data)
        if match:
            label = match.group(1).decode("ascii")
            return PEM_LABELS.get(label, ArtifactKind.UNKNOWN), ArtifactEncoding.PEM

        if path.suffix.lower() in PKCS12_EXTENSIONS:
            return ArtifactKind.PKCS12, ArtifactEncoding.DER

        if path.suffix.lower() in SECRET_EXTENSIONS:
            return ArtifactKind.SECRET, None

        if not data:
            return ArtifactKind.UNKNOWN, None

        probes = [
            (ArtifactKind.CERTIFICATE, x509.load_der_x509_certificate),
            (ArtifactKind.CSR, x509.load_der_x509_csr),
            (ArtifactKind.PUBLIC_KEY, serialization.load_der_public_key),
        ]
        for kind, loader in probes:
            try:
                loader(data)
                return kind, ArtifactEncoding.DER
            except (ValueError, UnsupportedAlgorithm):
                continue

        try:
            serialization.load_der_private_key(data, password=None)
            return ArtifactKind.PRIVATE_KEY, ArtifactEncoding.DER
        except TypeError:
            # Loader asks for a password: an encrypted PKCS#8 structure
            return ArtifactKind.ENCRYPTED_PRIVATE_KEY, ArtifactEncoding.DER
        except (ValueError, UnsupportedAlgorithm):
            pass

        return ArtifactKind.UNKNOWN, ArtifactEncoding.BINARY
