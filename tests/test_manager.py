"""
Tests for EnvironmentCryptoManager.

Tests cover:
- Master key provisioning and non-overwrite
- In-place encryption and the "already encrypted" guard
- Batch encryption/decryption ordering and skipping
- Error propagation for plaintext, tampered and missing values
"""
import asyncio
import base64
import threading

import pytest

from envcrypt import Environment, EnvironmentCryptoManager, VaultContext, VaultSettings
from envcrypt.exceptions import (
    CryptoError,
    EnvFileError,
    InvalidArgumentError,
    PropertyNotFoundError,
    TagMismatchError,
)
from envcrypt.vault.encoding import decode_secret_key, encode_secret_key

UAT = Environment.UAT


def _args(*variables):
    return (UAT.display_name, UAT.filename, UAT.secret_key_name, *variables)


def _value(path, name):
    for line in path.read_text().splitlines():
        if line.startswith(f"{name}="):
            return line[len(name) + 1:]
    return None


class TestMasterKey:
    """Tests for master key persistence."""

    def test_save_creates_file(self, manager, env_dir):
        """Test the base file and directory are created when absent."""
        base = env_dir / "nested" / ".env"
        assert manager.save_master_key_once(base, "UAT_SECRET_KEY", "first") is True
        assert base.read_text() == "UAT_SECRET_KEY=first\n"

    def test_second_save_is_noop(self, manager, env_dir):
        """Test the first key persists and the second call changes nothing."""
        base = env_dir / ".env"
        manager.save_master_key_once(base, "UAT_SECRET_KEY", "first")
        before = base.read_bytes()
        assert manager.save_master_key_once(base, "UAT_SECRET_KEY", "second") is False
        assert base.read_bytes() == before
        assert _value(base, "UAT_SECRET_KEY") == "first"

    def test_empty_line_is_filled(self, manager, env_dir):
        """Test an empty assignment is replaced rather than duplicated."""
        base = env_dir / ".env"
        base.write_text("OTHER=1\nUAT_SECRET_KEY=\n")
        assert manager.save_master_key_once(base, "UAT_SECRET_KEY", "key") is True
        assert base.read_text() == "OTHER=1\nUAT_SECRET_KEY=key\n"

    def test_blank_line_is_filled(self, manager, env_dir):
        """Test a whitespace-only key is treated as unset and replaced."""
        base = env_dir / ".env"
        base.write_text("UAT_SECRET_KEY=  \n")
        with pytest.raises(PropertyNotFoundError):
            manager.get_secret_key("UAT_SECRET_KEY")
        assert manager.provision_master_key("UAT_SECRET_KEY") is True
        assert len(manager.get_secret_key("UAT_SECRET_KEY")) == 32

    def test_bare_filename_resolves_to_env_dir(self, manager, env_dir):
        """Test ".env" is written inside the environment directory."""
        manager.save_master_key_once(".env", "DEV_SECRET_KEY", "key")
        assert _value(env_dir / ".env", "DEV_SECRET_KEY") == "key"

    @pytest.mark.parametrize("args", [
        ("", "UAT_SECRET_KEY", "key"),
        (None, "UAT_SECRET_KEY", "key"),
        ("envs/.env", " ", "key"),
        ("envs/.env", "UAT_SECRET_KEY", ""),
    ])
    def test_invalid_arguments(self, manager, args):
        """Test blank arguments are rejected."""
        with pytest.raises(InvalidArgumentError):
            manager.save_master_key_once(*args)

    def test_provision_master_key(self, manager, env_dir):
        """Test provisioning writes a decodable 32-byte key exactly once."""
        assert manager.provision_master_key("PROD_SECRET_KEY") is True
        stored = _value(env_dir / ".env", "PROD_SECRET_KEY")
        assert len(decode_secret_key(stored)) == 32
        assert manager.provision_master_key("PROD_SECRET_KEY") is False
        assert _value(env_dir / ".env", "PROD_SECRET_KEY") == stored
        assert manager.get_secret_key("PROD_SECRET_KEY") == decode_secret_key(stored)

    def test_get_secret_key_missing(self, manager, uat_env):
        """Test an unknown key variable raises PropertyNotFoundError."""
        with pytest.raises(PropertyNotFoundError):
            manager.get_secret_key("DEV_SECRET_KEY")

    def test_get_secret_key_without_base_file(self, manager):
        """Test a missing base file raises EnvFileError."""
        with pytest.raises(EnvFileError):
            manager.get_secret_key("UAT_SECRET_KEY")


class TestEncryptVariable:
    """Tests for in-place encryption."""

    def test_encrypts_in_place(self, manager, uat_env, master_key):
        """Test the line is replaced with a blob and other lines are kept."""
        assert manager.encrypt_variable(*_args("AUTHENTICATION_PASSWORD")) is True
        lines = uat_env.read_text().splitlines()
        assert lines[0] == "BASE_URL=https://restful-booker.example.com"
        assert lines[1] == "AUTHENTICATION_USERNAME=admin"
        blob = _value(uat_env, "AUTHENTICATION_PASSWORD")
        assert blob != "hunter2"
        assert len(blob) > manager.threshold
        base64.b64decode(blob, validate=True)

    def test_round_trip_through_file(self, manager, uat_env):
        """Test decrypt_variable returns the original plaintext."""
        manager.encrypt_variable(*_args("AUTHENTICATION_PASSWORD"))
        assert manager.decrypt_variable(*_args("AUTHENTICATION_PASSWORD")) == "hunter2"

    @pytest.mark.parametrize("plaintext", ["p@ss #42", "'abc'", '"quoted value"'])
    def test_value_encrypted_verbatim(self, manager, uat_env, plaintext):
        """Test hashes and quotes are part of the encrypted value."""
        with uat_env.open("a") as handle:
            handle.write(f"DB_PASSWORD={plaintext}\n")
        assert manager.encrypt_variable(*_args("DB_PASSWORD")) is True
        assert plaintext not in uat_env.read_text()
        assert manager.decrypt_variable(*_args("DB_PASSWORD")) == plaintext

    def test_second_encrypt_is_idempotent(self, manager, uat_env):
        """Test an encrypted value is not encrypted again."""
        manager.encrypt_variable(*_args("AUTHENTICATION_PASSWORD"))
        before = uat_env.read_bytes()
        assert manager.encrypt_variable(*_args("AUTHENTICATION_PASSWORD")) is False
        assert uat_env.read_bytes() == before

    def test_long_value_left_untouched(self, manager, uat_env):
        """Test a 120-character value counts as encrypted; file unchanged."""
        uat_env.write_text(f"LONG_TOKEN={'x' * 120}\n")
        before = uat_env.read_bytes()
        assert manager.encrypt_variable(*_args("LONG_TOKEN")) is False
        assert uat_env.read_bytes() == before

    def test_threshold_boundary(self, manager, uat_env):
        """Test a value of exactly the threshold length is still encrypted."""
        uat_env.write_text(f"EDGE={'y' * 90}\n")
        assert manager.encrypt_variable(*_args("EDGE")) is True
        assert manager.decrypt_variable(*_args("EDGE")) == "y" * 90

    def test_custom_threshold(self, settings, uat_env):
        """Test the threshold setting drives classification."""
        settings = settings.model_copy(update={"encrypted_length_threshold": 5})
        manager = EnvironmentCryptoManager(VaultContext(settings))
        assert manager.encrypt_variable(*_args("AUTHENTICATION_PASSWORD")) is False

    def test_missing_variable(self, manager, uat_env):
        """Test an absent variable is an InvalidArgumentError."""
        with pytest.raises(InvalidArgumentError, match="MISSING_VAR"):
            manager.encrypt_variable(*_args("MISSING_VAR"))

    def test_missing_master_key(self, manager, uat_env, env_dir):
        """Test a missing tier key leaves the file unchanged."""
        (env_dir / ".env").write_text("")
        before = uat_env.read_bytes()
        with pytest.raises(InvalidArgumentError):
            manager.encrypt_variable(*_args("AUTHENTICATION_PASSWORD"))
        assert uat_env.read_bytes() == before

    @pytest.mark.parametrize("args", [
        ("", ".env.uat", "UAT_SECRET_KEY", "A"),
        ("UAT", None, "UAT_SECRET_KEY", "A"),
        ("UAT", ".env.uat", " ", "A"),
        ("UAT", ".env.uat", "UAT_SECRET_KEY", ""),
        ("UAT", ".env.uat", "UAT_SECRET_KEY", None),
    ])
    def test_invalid_arguments(self, manager, args):
        """Test blank parameters are rejected before any work."""
        with pytest.raises(InvalidArgumentError):
            manager.encrypt_variable(*args)

    def test_unexpected_error_wrapped(self, manager, uat_env, monkeypatch):
        """Test non-taxonomy errors surface as CryptoError."""
        def broken(*args, **kwargs):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(manager.context.writer, "update_variable", broken)
        with pytest.raises(CryptoError, match="unexpected"):
            manager.encrypt_variable(*_args("AUTHENTICATION_PASSWORD"))

    def test_cache_invalidated_after_rewrite(self, manager, uat_env):
        """Test readers see the encrypted value right after encryption."""
        config = manager.context.get_configuration(UAT.display_name, UAT.filename)
        assert config.get_property("AUTHENTICATION_USERNAME") == "admin"
        manager.encrypt_variable(*_args("AUTHENTICATION_USERNAME"))
        fresh = manager.context.get_configuration(UAT.display_name, UAT.filename)
        assert fresh is not config
        assert fresh.get_property("AUTHENTICATION_USERNAME") != "admin"


class TestEncryptVariables:
    """Tests for batch encryption."""

    def test_batch(self, manager, uat_env):
        """Test several variables are encrypted; blank names skipped."""
        encrypted = manager.encrypt_variables(
            *_args("AUTHENTICATION_USERNAME", None, "  ", "AUTHENTICATION_PASSWORD")
        )
        assert encrypted == ["AUTHENTICATION_USERNAME", "AUTHENTICATION_PASSWORD"]
        assert manager.decrypt_variables(
            *_args("AUTHENTICATION_USERNAME", "AUTHENTICATION_PASSWORD")
        ) == ["admin", "hunter2"]

    def test_batch_reports_only_changed(self, manager, uat_env):
        """Test already encrypted variables are not reported."""
        manager.encrypt_variable(*_args("AUTHENTICATION_USERNAME"))
        assert manager.encrypt_variables(
            *_args("AUTHENTICATION_USERNAME", "AUTHENTICATION_PASSWORD")
        ) == ["AUTHENTICATION_PASSWORD"]

    def test_empty_batch_rejected(self, manager, uat_env):
        """Test a call without names is an argument error."""
        with pytest.raises(InvalidArgumentError):
            manager.encrypt_variables(*_args())

    def test_failure_aborts_batch(self, manager, uat_env):
        """Test a failing variable aborts the batch with a CryptoError."""
        with pytest.raises(CryptoError, match="MISSING_VAR") as excinfo:
            manager.encrypt_variables(
                *_args("AUTHENTICATION_USERNAME", "MISSING_VAR", "AUTHENTICATION_PASSWORD")
            )
        assert isinstance(excinfo.value.__cause__, InvalidArgumentError)
        assert _value(uat_env, "AUTHENTICATION_USERNAME") != "admin"
        assert _value(uat_env, "AUTHENTICATION_PASSWORD") == "hunter2"

    def test_concurrent_encryption_keeps_every_variable(self, manager, env_dir, master_key):
        """Test parallel encryptions of one file lose no updates."""
        (env_dir / ".env").write_text(f"UAT_SECRET_KEY={encode_secret_key(master_key)}\n")
        names = [f"SECRET_{i}" for i in range(4)]
        (env_dir / ".env.uat").write_text("".join(f"{n}=value-{n}\n" for n in names))
        errors = []

        def worker(name):
            try:
                manager.encrypt_variable(*_args(name))
            except Exception as err:  # pragma: no cover
                errors.append(err)

        threads = [threading.Thread(target=worker, args=(n,)) for n in names]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert errors == []
        assert manager.decrypt_variables(*_args(*names)) == [f"value-{n}" for n in names]


class TestDecryptVariables:
    """Tests for decryption."""

    def test_plaintext_value_fails(self, manager, uat_env):
        """Test decrypting a never-encrypted value raises CryptoError."""
        with pytest.raises(CryptoError):
            manager.decrypt_variable(*_args("AUTHENTICATION_PASSWORD"))

    def test_tampered_value(self, manager, uat_env):
        """Test a modified blob raises TagMismatchError."""
        manager.encrypt_variable(*_args("AUTHENTICATION_PASSWORD"))
        blob = _value(uat_env, "AUTHENTICATION_PASSWORD")
        raw = bytearray(base64.b64decode(blob))
        raw[-1] ^= 0xFF
        manager.context.writer.update_variable(
            uat_env, "AUTHENTICATION_PASSWORD", base64.b64encode(bytes(raw)).decode()
        )
        manager.context.invalidate(uat_env)
        with pytest.raises(TagMismatchError):
            manager.decrypt_variable(*_args("AUTHENTICATION_PASSWORD"))

    def test_wrong_master_key(self, manager, uat_env, env_dir):
        """Test a replaced master key cannot decrypt old values."""
        manager.encrypt_variable(*_args("AUTHENTICATION_PASSWORD"))
        (env_dir / ".env").write_text(f"UAT_SECRET_KEY={encode_secret_key(bytes([7]) * 32)}\n")
        manager.context.invalidate()
        with pytest.raises(TagMismatchError):
            manager.decrypt_variable(*_args("AUTHENTICATION_PASSWORD"))

    def test_order_preserved_and_blanks_skipped(self, manager, uat_env):
        """Test output follows input order without blank names."""
        manager.encrypt_variables(*_args("AUTHENTICATION_USERNAME", "AUTHENTICATION_PASSWORD"))
        assert manager.decrypt_variables(
            *_args("AUTHENTICATION_PASSWORD", "", None, "AUTHENTICATION_USERNAME")
        ) == ["hunter2", "admin"]

    def test_no_names_returns_empty(self, manager, uat_env):
        """Test an empty request returns an empty list."""
        assert manager.decrypt_variables(*_args()) == []
        assert manager.decrypt_variables(*_args(None, " ")) == []

    def test_master_key_fetched_once(self, manager, uat_env, monkeypatch):
        """Test batches read the master key a single time."""
        manager.encrypt_variables(*_args("AUTHENTICATION_USERNAME", "AUTHENTICATION_PASSWORD"))
        calls = []
        original = manager.get_secret_key

        def counting(key_type):
            calls.append(key_type)
            return original(key_type)

        monkeypatch.setattr(manager, "get_secret_key", counting)
        manager.decrypt_variables(*_args("AUTHENTICATION_USERNAME", "AUTHENTICATION_PASSWORD"))
        assert calls == ["UAT_SECRET_KEY"]

    def test_missing_variable(self, manager, uat_env):
        """Test an absent variable is an InvalidArgumentError."""
        with pytest.raises(InvalidArgumentError):
            manager.decrypt_variable(*_args("MISSING_VAR"))

    def test_decrypt_variable_async(self, manager, uat_env):
        """Test the awaitable variant."""
        manager.encrypt_variable(*_args("AUTHENTICATION_PASSWORD"))
        result = asyncio.run(manager.decrypt_variable_async(*_args("AUTHENTICATION_PASSWORD")))
        assert result == "hunter2"

    def test_decrypt_variable_async_errors(self, manager, uat_env):
        """Test the awaitable variant raises the same errors."""
        with pytest.raises(CryptoError):
            asyncio.run(manager.decrypt_variable_async(*_args("AUTHENTICATION_PASSWORD")))

    def test_decrypt_variable_future(self, manager, uat_env):
        """Test the future variant runs on the context worker pool."""
        manager.encrypt_variable(*_args("AUTHENTICATION_PASSWORD"))
        future = manager.decrypt_variable_future(*_args("AUTHENTICATION_PASSWORD"))
        assert future.result(timeout=60) == "hunter2"
        assert manager.context._executor is not None

    def test_decrypt_variable_future_errors(self, manager, uat_env):
        """Test lookup errors raise eagerly and crypto errors from the future."""
        with pytest.raises(InvalidArgumentError):
            manager.decrypt_variable_future(*_args("MISSING_VAR"))
        future = manager.decrypt_variable_future(*_args("AUTHENTICATION_PASSWORD"))
        with pytest.raises(CryptoError):
            future.result(timeout=60)


class TestEndToEnd:
    """Provision, encrypt and decrypt as a harness would."""

    def test_full_flow(self, tmp_path, monkeypatch):
        """Test the three-step onboarding flow with settings from the environment."""
        env_dir = tmp_path / "envs"
        monkeypatch.setenv("ENVCRYPT_ENV_DIRECTORY", str(env_dir))
        monkeypatch.setenv("ENVCRYPT_PREFER_OS_ENVIRON", "false")
        monkeypatch.delenv("ENCRYPTED_LENGTH_THRESHOLD", raising=False)
        with VaultContext(VaultSettings.from_env()) as context:
            manager = EnvironmentCryptoManager(context)
            assert manager.provision_master_key(UAT.secret_key_name) is True
            (env_dir / UAT.filename).write_text(
                "AUTHENTICATION_USERNAME=admin\nAUTHENTICATION_PASSWORD=password123\n"
            )
            manager.encrypt_variables(
                *_args("AUTHENTICATION_USERNAME", "AUTHENTICATION_PASSWORD")
            )
            username, password = manager.decrypt_variables(
                *_args("AUTHENTICATION_USERNAME", "AUTHENTICATION_PASSWORD")
            )
        assert (username, password) == ("admin", "password123")
        assert "password123" not in (env_dir / UAT.filename).read_text()
