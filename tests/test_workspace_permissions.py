"""Tests for the workspace service, permission audit and validators."""

import pytest

from keybook.models.artifact import ArtifactKind
from keybook.services.catalog_service import CatalogService
from keybook.utils import permissions
from keybook.utils.file_utils import FileUtils
from keybook.utils.validators import (
    validate_artifact_name,
    validate_country_code,
    validate_hostname,
    validate_san,
)


@pytest.mark.unit
class TestWorkspaceService:
    """Test workspace file handling."""

    def test_directory_is_private(self, workspace):
        """Test the workspace directory is created with mode 700."""
        assert FileUtils.file_mode(workspace.workspace_dir) == 0o700

    @pytest.mark.parametrize("name", ["../escape.key", "sub/dir.key", "", ".hidden", "a b.key"])
    def test_invalid_names_rejected(self, workspace, name):
        """Test names that are not plain file names."""
        with pytest.raises(ValueError, match="Invalid file name"):
            workspace.resolve(name)

    def test_require_missing_file(self, workspace):
        """Test missing files are reported."""
        with pytest.raises(ValueError, match="File not found: missing.crt"):
            workspace.require("missing.crt")

    def test_ensure_absent(self, workspace):
        """Test existing outputs are protected unless overwrite is set."""
        workspace.write_text("notes.txt", "hello")

        with pytest.raises(ValueError, match="File already exists: notes.txt"):
            workspace.ensure_absent("notes.txt")
        assert workspace.ensure_absent("notes.txt", overwrite=True).name == "notes.txt"

    def test_write_text_mode(self, workspace):
        """Test files are written with the requested mode."""
        path = workspace.write_text("token.secret", "abc", mode=permissions.PRIVATE_MODE)
        assert FileUtils.file_mode(path) == 0o600
        assert workspace.read_text("token.secret") == "abc"

    def test_list_files_audits_permissions(self, workspace, write_artifact, ec_private_key, make_certificate):
        """Test listing reports kinds and flags loose permissions."""
        write_artifact("server.crt", make_certificate(ec_private_key), mode=0o644)
        write_artifact("server.key", ec_private_key, mode=0o644)
        write_artifact("notes.txt", b"plain text")

        files = {f.name: f for f in workspace.list_files()}

        assert files["server.crt"].kind == ArtifactKind.CERTIFICATE
        assert files["server.crt"].permissions_ok is True
        assert files["server.key"].kind == ArtifactKind.PRIVATE_KEY
        assert files["server.key"].mode == "644"
        assert files["server.key"].recommended_mode == "600"
        assert files["server.key"].permissions_ok is False
        assert files["notes.txt"].recommended_mode is None
        assert files["notes.txt"].permissions_ok is True

    def test_list_files_by_kind(self, workspace, write_artifact, ec_private_key, make_certificate):
        """Test filtering the listing by kind."""
        write_artifact("server.crt", make_certificate(ec_private_key))
        write_artifact("server.key", ec_private_key, mode=0o600)

        files = workspace.list_files(ArtifactKind.CERTIFICATE)

        assert [f.name for f in files] == ["server.crt"]

    def test_delete_moves_to_trash(self, workspace):
        """Test deleted files go to _trash and leave the listing."""
        workspace.write_text("notes.txt", "hello")

        trashed = workspace.delete("notes.txt")

        assert trashed.parent.name == "_trash"
        assert trashed.exists()
        assert workspace.list_files() == []

    def test_apply_permissions(self, workspace, write_artifact, ec_private_key):
        """Test recommended permissions are applied."""
        write_artifact("server.key", ec_private_key, mode=0o644)

        result = workspace.apply_permissions("server.key")

        assert result.previous_mode == "644"
        assert result.mode == "600"
        assert FileUtils.file_mode(workspace.resolve("server.key")) == 0o600

    def test_apply_permissions_unknown_file(self, workspace):
        """Test unknown files have no recommendation."""
        workspace.write_text("notes.txt", "hello")
        with pytest.raises(ValueError, match="No recommended permissions for unknown files"):
            workspace.apply_permissions("notes.txt")

    def test_secure_treats_unknown_as_private(self, workspace):
        """Test freshly written unknown files are locked down."""
        path = workspace.write_text("blob.bin", "???", mode=0o644)
        assert workspace.secure(path) == 0o600
        assert FileUtils.file_mode(path) == 0o600


@pytest.mark.unit
class TestPermissions:
    """Test the recommended permission table."""

    def test_stricter_modes_pass_audit(self, tmp_path):
        """Test a mode granting less than recommended passes."""
        path = tmp_path / "a.key"
        path.write_text("x")
        path.chmod(0o400)
        assert permissions.audit(path, ArtifactKind.PRIVATE_KEY) == (0o400, 0o600, True)

        path.chmod(0o640)
        assert permissions.audit(path, ArtifactKind.PRIVATE_KEY) == (0o640, 0o600, False)

    def test_format_mode(self):
        """Test chmod-style formatting."""
        assert permissions.format_mode(0o600) == "600"
        assert permissions.format_mode(0o44) == "044"
        assert permissions.format_mode(None) is None

    def test_catalog_table_matches_recommendations(self):
        """Test the catalog's permission table agrees with the audit table."""
        for info in CatalogService().permissions():
            if info.kind is None:
                assert info.mode == permissions.format_mode(permissions.DIRECTORY_MODE)
            else:
                assert info.mode == permissions.format_mode(permissions.recommended_mode(info.kind)), info.artifact

    def test_every_known_kind_has_a_recommendation(self):
        """Test only unknown files lack a recommended mode."""
        for kind in ArtifactKind:
            if kind == ArtifactKind.UNKNOWN:
                assert permissions.recommended_mode(kind) is None
            else:
                assert permissions.recommended_mode(kind) is not None


@pytest.mark.unit
class TestValidators:
    """Test input validators."""

    def test_artifact_names(self):
        """Test plain file names pass."""
        assert validate_artifact_name("server.key") == "server.key"
        assert validate_artifact_name("a_b-c.1.pem") == "a_b-c.1.pem"
        with pytest.raises(ValueError):
            validate_artifact_name("..")

    @pytest.mark.parametrize("host", ["example.com", "a.b-c.example.org", "10.0.0.1", "::1", "example.com."])
    def test_valid_hosts(self, host):
        """Test host names and IP literals."""
        assert validate_hostname(host) == host

    @pytest.mark.parametrize("host", ["", "bad host", "-lead.example.com", "under_score.com", "a" * 64 + ".com"])
    def test_invalid_hosts(self, host):
        """Test malformed hosts are rejected."""
        with pytest.raises(ValueError, match="Invalid host"):
            validate_hostname(host)

    def test_san_entries(self):
        """Test DNS names, wildcards and IPs are valid SANs."""
        validate_san("www.example.com")
        validate_san("*.example.com")
        validate_san("2001:db8::1")
        with pytest.raises(ValueError, match="Invalid SAN entry"):
            validate_san("under_score.example.com")

    def test_country_code(self):
        """Test country codes must be two upper-case letters."""
        validate_country_code("DE")
        with pytest.raises(ValueError, match="Country code"):
            validate_country_code("de")
