import pytest

from envcrypt import EnvironmentCryptoManager, VaultContext, VaultSettings
from envcrypt.vault.encoding import encode_secret_key


# Deterministic master key for tests only.
ZERO_KEY = bytes(32)

UAT_KEY = "UAT_SECRET_KEY"


@pytest.fixture
def env_dir(tmp_path):
    """Empty environment directory."""
    directory = tmp_path / "envs"
    directory.mkdir()
    return directory


@pytest.fixture
def settings(env_dir):
    """Settings pointing at the temporary directory, ignoring os.environ."""
    return VaultSettings(env_directory=env_dir, prefer_os_environ=False)


@pytest.fixture
def context(settings):
    ctx = VaultContext(settings)
    yield ctx
    ctx.close()


@pytest.fixture
def manager(context):
    return EnvironmentCryptoManager(context)


@pytest.fixture
def master_key():
    return ZERO_KEY


@pytest.fixture
def uat_env(env_dir, master_key):
    """BASE file holding the UAT key plus a UAT file with plaintext credentials."""
    (env_dir / ".env").write_text(f"{UAT_KEY}={encode_secret_key(master_key)}\n")
    uat_file = env_dir / ".env.uat"
    uat_file.write_text(
        "BASE_URL=https://restful-booker.example.com\n"
        "AUTHENTICATION_USERNAME=admin\n"
        "AUTHENTICATION_PASSWORD=hunter2\n"
    )
    return uat_file
