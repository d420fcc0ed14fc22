import pytest

from fortanode.accounts import LIGHT_SCRYPT_N, LIGHT_SCRYPT_P, KeyStore
from fortanode.cli import main


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("FORTA_PASSPHRASE", raising=False)
    monkeypatch.delenv("FORTA_DIR", raising=False)
    monkeypatch.setenv("NO_COLOR", "1")


def _light_store(tmp_path):
    return KeyStore(tmp_path / ".keys", LIGHT_SCRYPT_N, LIGHT_SCRYPT_P)


def test_no_command_prints_help(capsys):
    assert main([]) == 0
    assert "usage" in capsys.readouterr().out


def test_account_address(tmp_path, capsys):
    passphrase = "password"
    address = _light_store(tmp_path).new_account(passphrase)
    assert main(["--dir", str(tmp_path), "account", "address"]) == 0
    assert capsys.readouterr().out.strip() == address


def test_account_address_no_accounts(tmp_path):
    _light_store(tmp_path).key_dir.mkdir()
    assert main(["--dir", str(tmp_path), "account", "address"]) == 1


def test_account_address_multiple_accounts(tmp_path, capsys):
    store = _light_store(tmp_path)
    first = store.new_account("password")
    second = store.new_account("secret")
    assert main(["--dir", str(tmp_path), "account", "address"]) == 1
    out = capsys.readouterr().out
    assert first in out and second in out


def test_import_missing_file(tmp_path, capsys):
    code = main(
        ["--dir", str(tmp_path), "--passphrase", "password", "account", "import",
         "--file", str(tmp_path / "missing")]
    )
    assert code == 1
    assert "failed to read the private key" in capsys.readouterr().err


def test_import_empty_passphrase(tmp_path, capsys):
    key_file = tmp_path / "key.txt"
    key_file.write_text("11" * 32)
    assert main(["--dir", str(tmp_path), "account", "import", "--file", str(key_file)]) == 1
    assert "passphrase is not set" in capsys.readouterr().err


def test_import_invalid_hex(tmp_path, capsys):
    key_file = tmp_path / "key.txt"
    key_file.write_text("zz")
    code = main(
        ["--dir", str(tmp_path), "--passphrase", "password", "account", "import",
         "--file", str(key_file)]
    )
    assert code == 1
    assert "could not parse the private key hex" in capsys.readouterr().err


def test_init_creates_everything(tmp_path, capsys):
    node_dir = tmp_path / "node"
    passphrase = "password" * 2
    assert main(["--dir", str(node_dir), "--passphrase", passphrase, "--light-kdf", "init"]) == 0
    assert (node_dir / "config.yml").is_file()
    assert len(list((node_dir / ".keys").iterdir())) == 1
    assert "Successfully initialized" in capsys.readouterr().out

    assert main(["--dir", str(node_dir), "--passphrase", passphrase, "--light-kdf", "init"]) == 0
    assert "Already initialized" in capsys.readouterr().out


def test_init_short_passphrase(tmp_path):
    node_dir = tmp_path / "node"
    assert main(["--dir", str(node_dir), "--passphrase", "password", "--light-kdf", "init"]) == 1
    assert list((node_dir / ".keys").iterdir()) == []


def test_init_without_passphrase_prints_help(tmp_path, capsys):
    node_dir = tmp_path / "node"
    assert main(["--dir", str(node_dir), "init"]) == 0
    assert (node_dir / "config.yml").is_file()
    assert "usage" in capsys.readouterr().out