"""OpenSSL command generation and execution service."""

import logging
import os
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import Dict, Iterable, NamedTuple, Optional, Tuple

from keybook.models.artifact import ArtifactEncoding, ArtifactKind
from keybook.models.certificate import Subject
from keybook.models.key import OPENSSL_CURVE_NAMES, KeyAlgorithm, KeyConfig
from keybook.models.secret import SecretEncoding
from keybook.utils.logger import mask_secrets
from keybook.utils.validators import is_ip_address

logger = logging.getLogger("keybook")

# Passphrases never appear on the command line: openssl reads them from
# these variables in the child environment (-passin env:..., -passout env:...).
PASSIN_ENV = "KEYBOOK_PASSIN"
PASSOUT_ENV = "KEYBOOK_PASSOUT"

# Characters that would start a new line, assignment, section or reference in an extfile
EXTFILE_UNSAFE_CHARS = ("\n", "\r", "=", "[", "@")


class CommandResult(NamedTuple):
    """Outcome of a single openssl invocation."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class OpenSSLService:
    """Service for OpenSSL command building and execution."""

    @staticmethod
    def _path_to_posix(path: Path) -> str:
        """Convert Path to absolute POSIX-style string (forward slashes)."""
        return str(path.resolve()).replace("\\", "/")

    def __init__(self, openssl_path: Optional[str] = None, timeout: int = 30):
        """
        Initialize OpenSSL service.

        Args:
            openssl_path: Path to openssl binary. If None, uses 'openssl' from PATH.
            timeout: Seconds before a single invocation is killed

        Raises:
            RuntimeError: If the binary cannot be found
        """
        if openssl_path is None:
            if shutil.which("openssl") is None:
                raise RuntimeError(
                    "OpenSSL not found in PATH. Please install OpenSSL and ensure it's accessible via PATH.\n"
                    "Verify with: openssl version"
                )
            self.openssl_path = "openssl"
        else:
            if shutil.which(openssl_path) is None:
                raise RuntimeError(f"OpenSSL binary not found: {openssl_path}")
            self.openssl_path = openssl_path

        self.timeout = timeout
        logger.debug(f"Using OpenSSL command: {self.openssl_path}")

    def _cmd(self, *args: str) -> str:
        """Join an invocation into a single shell-quoted line."""
        return " ".join([shlex.quote(self.openssl_path), *(shlex.quote(str(a)) for a in args)])

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    def build_key_gen_command(self, key_config: KeyConfig, output_file: str, encrypt: bool = False) -> str:
        """
        Generate key generation command based on algorithm.

        Args:
            key_config: Key configuration
            output_file: Output filename
            encrypt: Encrypt the key with AES-256 (passphrase from PASSOUT_ENV)

        Returns:
            Key generation command
        """
        if key_config.algorithm == KeyAlgorithm.RSA:
            passout = ["-aes256", "-passout", f"env:{PASSOUT_ENV}"] if encrypt else []
            return self._cmd("genrsa", *passout, "-out", output_file, str(key_config.key_size))

        if key_config.algorithm == KeyAlgorithm.ECDSA:
            curve = OPENSSL_CURVE_NAMES[key_config.curve]
            pass_args = ["-aes256", "-pass", f"env:{PASSOUT_ENV}"] if encrypt else []
            return self._cmd(
                "genpkey", "-algorithm", "EC", "-pkeyopt", f"ec_paramgen_curve:{curve}", *pass_args, "-out", output_file
            )

        pass_args = ["-aes256", "-pass", f"env:{PASSOUT_ENV}"] if encrypt else []
        return self._cmd("genpkey", "-algorithm", "Ed25519", *pass_args, "-out", output_file)

    def build_public_key_command(self, key_file: str, output_file: str, encrypted: bool = False) -> str:
        """Extract the SubjectPublicKeyInfo of a private key as PEM."""
        passin = ["-passin", f"env:{PASSIN_ENV}"] if encrypted else []
        return self._cmd("pkey", "-in", key_file, *passin, "-pubout", "-out", output_file)

    def build_pkcs8_command(
        self, key_file: str, output_file: str, encrypted: bool = False, encrypt_output: bool = False
    ) -> str:
        """Convert a private key to PKCS#8, optionally encrypting it with AES-256."""
        passin = ["-passin", f"env:{PASSIN_ENV}"] if encrypted else []
        if encrypt_output:
            protection = ["-v2", "aes256", "-passout", f"env:{PASSOUT_ENV}"]
        else:
            protection = ["-nocrypt"]
        return self._cmd("pkcs8", "-topk8", "-in", key_file, *passin, *protection, "-out", output_file)

    def build_decrypt_key_command(self, key_file: str, output_file: str) -> str:
        """Write an unencrypted copy of an encrypted private key."""
        return self._cmd("pkey", "-in", key_file, "-passin", f"env:{PASSIN_ENV}", "-out", output_file)

    # ------------------------------------------------------------------
    # Certificates and CSRs
    # ------------------------------------------------------------------

    def build_self_signed_command(
        self,
        key_file: str,
        cert_file: str,
        subject: Subject,
        sans: list[str],
        validity_days: int,
        encrypted: bool = False,
    ) -> str:
        """
        Generate OpenSSL command for a self-signed certificate.

        Args:
            key_file: Existing private key
            cert_file: Output certificate
            subject: Subject information
            sans: Subject Alternative Names
            validity_days: Validity period in days
            encrypted: The key needs a passphrase (from PASSIN_ENV)

        Returns:
            OpenSSL command string
        """
        passin = ["-passin", f"env:{PASSIN_ENV}"] if encrypted else []
        return self._cmd(
            "req",
            "-x509",
            "-new",
            "-key",
            key_file,
            *passin,
            "-out",
            cert_file,
            "-days",
            str(validity_days),
            "-subj",
            self._build_subject_string(subject),
            *self._san_addext(sans),
        )

    def build_csr_command(
        self, key_file: str, csr_file: str, subject: Subject, sans: list[str], encrypted: bool = False
    ) -> str:
        """
        Generate OpenSSL command for a Certificate Signing Request.

        Args:
            key_file: Existing private key
            csr_file: Output CSR
            subject: Subject information
            sans: Subject Alternative Names
            encrypted: The key needs a passphrase (from PASSIN_ENV)

        Returns:
            OpenSSL command string
        """
        passin = ["-passin", f"env:{PASSIN_ENV}"] if encrypted else []
        return self._cmd(
            "req",
            "-new",
            "-key",
            key_file,
            *passin,
            "-out",
            csr_file,
            "-subj",
            self._build_subject_string(subject),
            *self._san_addext(sans),
        )

    def build_sign_csr_command(
        self,
        csr_file: str,
        ca_cert: str,
        ca_key: str,
        cert_file: str,
        serial_number: str,
        validity_days: int,
        extfile: Path,
        encrypted: bool = False,
    ) -> str:
        """
        Generate OpenSSL command for signing a CSR with a CA.

        Args:
            csr_file: CSR to sign
            ca_cert: CA certificate
            ca_key: CA private key
            cert_file: Output certificate
            serial_number: Serial number (hex)
            validity_days: Validity period in days
            extfile: Extension file written by generate_extfile()
            encrypted: The CA key needs a passphrase (from PASSIN_ENV)

        Returns:
            OpenSSL command string
        """
        passin = ["-passin", f"env:{PASSIN_ENV}"] if encrypted else []
        return self._cmd(
            "x509",
            "-req",
            "-in",
            csr_file,
            "-CA",
            ca_cert,
            "-CAkey",
            ca_key,
            *passin,
            "-set_serial",
            f"0x{serial_number}",
            "-out",
            cert_file,
            "-days",
            str(validity_days),
            "-extfile",
            self._path_to_posix(extfile),
            "-extensions",
            "v3_req",
        )

    def _build_subject_string(self, subject: Subject) -> str:
        """
        Build OpenSSL subject string.

        Args:
            subject: Subject information

        Returns:
            Subject string in OpenSSL format
        """

        def escape(value: str) -> str:
            return value.replace("\\", "\\\\").replace("/", "\\/")

        parts = []

        if subject.country:
            parts.append(f"C={escape(subject.country)}")
        if subject.state:
            parts.append(f"ST={escape(subject.state)}")
        if subject.locality:
            parts.append(f"L={escape(subject.locality)}")
        if subject.organization:
            parts.append(f"O={escape(subject.organization)}")
        if subject.organizational_unit:
            parts.append(f"OU={escape(subject.organizational_unit)}")
        parts.append(f"CN={escape(subject.common_name)}")

        return "/" + "/".join(parts)

    @staticmethod
    def format_san_entries(sans: list[str]) -> list[str]:
        """Prefix each SAN with IP: or DNS: as appropriate."""
        return [f"IP:{san}" if is_ip_address(san) else f"DNS:{san}" for san in sans]

    def _san_addext(self, sans: list[str]) -> list[str]:
        if not sans:
            return []
        return ["-addext", "subjectAltName=" + ",".join(self.format_san_entries(sans))]

    def generate_extfile(
        self, output_file: Path, sans: list[str], key_usage: list[str], extended_key_usage: list[str]
    ) -> None:
        """
        Write the [v3_req] extension section used when signing a CSR.

        Args:
            output_file: Output file path
            sans: Subject Alternative Names
            key_usage: Key Usage values
            extended_key_usage: Extended Key Usage values

        Raises:
            ValueError: If a value could break out of its line or section
        """
        for value in [*sans, *key_usage, *extended_key_usage]:
            if any(char in value for char in EXTFILE_UNSAFE_CHARS):
                raise ValueError(f"Invalid extension value {value!r}")

        lines = ["[ v3_req ]", "basicConstraints = critical, CA:FALSE", "subjectKeyIdentifier = hash"]
        if key_usage:
            lines.append(f"keyUsage = critical, {', '.join(key_usage)}")
        if extended_key_usage:
            lines.append(f"extendedKeyUsage = {', '.join(extended_key_usage)}")

        if sans:
            lines.append("subjectAltName = @alt_names")
            lines.append("")
            lines.append("[ alt_names ]")
            dns_count = ip_count = 0
            for san in sans:
                if is_ip_address(san):
                    ip_count += 1
                    lines.append(f"IP.{ip_count} = {san}")
                else:
                    dns_count += 1
                    lines.append(f"DNS.{dns_count} = {san}")

        output_file.parent.mkdir(parents=True, exist_ok=True)
        with open(output_file, "w", encoding="utf-8") as f:
            f.write("\n".join(lines) + "\n")

        logger.debug(f"Generated extension file: {output_file}")

    @staticmethod
    def generate_serial_number() -> str:
        """
        Generate a 128-bit random serial number.

        Returns:
            Hex serial number string (positive, no leading zero nibble)
        """
        serial = int.from_bytes(os.urandom(16), "big") >> 1
        serial |= 1 << 126
        return format(serial, "X")

    # ------------------------------------------------------------------
    # Random secrets
    # ------------------------------------------------------------------

    def build_rand_command(self, num_bytes: int, encoding: SecretEncoding, output_file: Optional[str] = None) -> str:
        """Generate `openssl rand` for hex or base64 output."""
        out = ["-out", output_file] if output_file else []
        return self._cmd("rand", f"-{encoding.value}", *out, str(num_bytes))

    # ------------------------------------------------------------------
    # Format conversion
    # ------------------------------------------------------------------

    def build_convert_command(
        self,
        kind: ArtifactKind,
        input_file: str,
        output_file: str,
        inform: ArtifactEncoding,
        outform: ArtifactEncoding,
        encrypted: bool = False,
    ) -> str:
        """
        Re-encode a certificate, CSR or key between PEM and DER.

        Raises:
            ValueError: If the artifact kind cannot be converted
        """
        if kind == ArtifactKind.CERTIFICATE:
            args = ["x509"]
        elif kind == ArtifactKind.CSR:
            args = ["req"]
        elif kind in (ArtifactKind.PRIVATE_KEY, ArtifactKind.ENCRYPTED_PRIVATE_KEY):
            args = ["pkey"]
        elif kind == ArtifactKind.PUBLIC_KEY:
            args = ["pkey", "-pubin"]
        else:
            raise ValueError(f"Cannot convert {kind.value} files between PEM and DER")

        args += ["-inform", inform.value, "-in", input_file]
        if kind == ArtifactKind.PUBLIC_KEY:
            args.append("-pubout")
        elif encrypted:
            args += ["-passin", f"env:{PASSIN_ENV}"]
        args += ["-outform", outform.value, "-out", output_file]
        return self._cmd(*args)

    def build_pkcs12_export_command(
        self,
        cert_file: str,
        key_file: str,
        output_file: str,
        chain_file: Optional[str] = None,
        friendly_name: Optional[str] = None,
        key_encrypted: bool = False,
    ) -> str:
        """Bundle certificate, key and optional chain into PKCS#12 (export passphrase from PASSOUT_ENV)."""
        args = ["pkcs12", "-export", "-in", cert_file, "-inkey", key_file]
        if key_encrypted:
            args += ["-passin", f"env:{PASSIN_ENV}"]
        if chain_file:
            args += ["-certfile", chain_file]
        if friendly_name:
            args += ["-name", friendly_name]
        args += ["-passout", f"env:{PASSOUT_ENV}", "-out", output_file]
        return self._cmd(*args)

    def build_pkcs12_extract_commands(
        self,
        p12_file: str,
        cert_output: Optional[str] = None,
        key_output: Optional[str] = None,
        encrypt_key: bool = False,
    ) -> str:
        """Unpack certificates and/or the private key of a PKCS#12 bundle (one line per output)."""
        source = ["pkcs12", "-in", p12_file, "-passin", f"env:{PASSIN_ENV}"]
        lines = []
        if cert_output:
            lines.append(self._cmd(*source, "-nokeys", "-out", cert_output))
        if key_output:
            protection = ["-passout", f"env:{PASSOUT_ENV}"] if encrypt_key else ["-nodes"]
            lines.append(self._cmd(*source, "-nocerts", *protection, "-out", key_output))
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Inspection and verification
    # ------------------------------------------------------------------

    def build_text_command(self, cert_file: str, inform: ArtifactEncoding = ArtifactEncoding.PEM) -> str:
        """Human-readable dump of a certificate."""
        return self._cmd("x509", "-inform", inform.value, "-in", cert_file, "-noout", "-text")

    def build_checkend_command(
        self, cert_file: str, seconds: int, inform: ArtifactEncoding = ArtifactEncoding.PEM
    ) -> str:
        """Exit status 1 when the certificate expires within `seconds`."""
        return self._cmd("x509", "-inform", inform.value, "-in", cert_file, "-noout", "-checkend", str(seconds))

    def build_verify_command(self, cert_file: str, ca_file: str, untrusted_file: Optional[str] = None) -> str:
        """Verify a certificate against a trusted CA bundle."""
        untrusted = ["-untrusted", untrusted_file] if untrusted_file else []
        return self._cmd("verify", "-CAfile", ca_file, *untrusted, cert_file)

    def build_csr_verify_command(self, csr_file: str, inform: ArtifactEncoding = ArtifactEncoding.PEM) -> str:
        """Check the self-signature of a CSR."""
        return self._cmd("req", "-inform", inform.value, "-in", csr_file, "-noout", "-verify")

    def build_s_client_command(
        self, host: str, port: int, servername: str, ca_file: Optional[Path] = None
    ) -> str:
        """TLS handshake test printing the full peer chain."""
        connect = f"[{host}]:{port}" if ":" in host else f"{host}:{port}"
        args = ["s_client", "-connect", connect, "-showcerts"]
        if not is_ip_address(servername):
            args += ["-servername", servername]
        if ca_file is not None:
            args += ["-CAfile", self._path_to_posix(ca_file)]
        return self._cmd(*args)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    @staticmethod
    def mask_secrets(command: str) -> str:
        """Replace literal `pass:<secret>` arguments with `pass:***`."""
        return mask_secrets(command)

    def _environment(self, secrets: Optional[Dict[str, str]]) -> Dict[str, str]:
        # Without OPENSSL_CONF openssl falls back to its compiled-in default config
        env = os.environ.copy()
        env.pop("OPENSSL_CONF", None)
        env.pop(PASSIN_ENV, None)
        env.pop(PASSOUT_ENV, None)
        if secrets:
            env.update({key: value for key, value in secrets.items() if value is not None})
        return env

    def run(
        self,
        command: str,
        cwd: Optional[Path] = None,
        secrets: Optional[Dict[str, str]] = None,
        timeout: Optional[int] = None,
    ) -> CommandResult:
        """
        Execute a single openssl invocation and return its raw outcome.

        Args:
            command: One command line as produced by a build_* method
            cwd: Working directory
            secrets: Passphrases keyed by PASSIN_ENV / PASSOUT_ENV
            timeout: Override for the configured timeout

        Returns:
            CommandResult

        Raises:
            RuntimeError: If the command cannot be parsed, times out or cannot be started
        """
        timeout = timeout or self.timeout
        logger.info(f"Executing: {self.mask_secrets(command)}")

        try:
            args = shlex.split(command)
        except ValueError as e:
            logger.error(f"Malformed command line: {e}")
            raise RuntimeError(f"Malformed command line: {e}")

        try:
            result = subprocess.run(
                args,
                shell=False,
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=timeout,
                env=self._environment(secrets),
            )
        except subprocess.TimeoutExpired:
            logger.error(f"Command timeout after {timeout} seconds")
            raise RuntimeError(f"Command timeout after {timeout} seconds")
        except OSError as e:
            logger.error(f"Command execution error: {e}")
            raise RuntimeError(f"Failed to run openssl: {e}")

        return CommandResult(result.returncode, result.stdout, result.stderr)

    def execute_command(
        self, command: str, cwd: Path, secrets: Optional[Dict[str, str]] = None
    ) -> Tuple[bool, str, str]:
        """
        Execute OpenSSL command.

        Args:
            command: Command to execute (can be multi-line)
            cwd: Working directory
            secrets: Passphrases keyed by PASSIN_ENV / PASSOUT_ENV

        Returns:
            Tuple of (success, stdout, stderr)
        """
        commands = [cmd.strip() for cmd in command.split("\n") if cmd.strip()]

        all_stdout = []
        all_stderr = []

        for cmd in commands:
            try:
                result = self.run(cmd, cwd=cwd, secrets=secrets)
            except RuntimeError as e:
                all_stderr.append(str(e))
                return False, "\n".join(all_stdout), "\n".join(all_stderr)

            all_stdout.append(result.stdout)
            all_stderr.append(result.stderr)

            if not result.ok:
                logger.error(f"Command failed: {result.stderr.strip()}")
                return False, "\n".join(all_stdout), "\n".join(all_stderr)

        logger.info("Commands executed successfully")
        return True, "\n".join(all_stdout), "\n".join(all_stderr)

    def execute_or_raise(
        self,
        command: str,
        cwd: Path,
        outputs: Iterable[Path] = (),
        secrets: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Execute a command, removing partial outputs if it fails.

        Returns:
            Combined stdout

        Raises:
            ValueError: If any line of the command fails
        """
        outputs = list(outputs)
        success = False
        try:
            success, stdout, stderr = self.execute_command(command, cwd, secrets)
        finally:
            if not success:
                for path in outputs:
                    path.unlink(missing_ok=True)
        if not success:
            raise ValueError(f"OpenSSL command failed: {stderr.strip()}")
        return stdout

    def version(self) -> str:
        """Return the output of `openssl version`."""
        result = self.run(self._cmd("version"))
        if not result.ok:
            raise RuntimeError(f"openssl version failed: {result.stderr.strip()}")
        return result.stdout.strip()
