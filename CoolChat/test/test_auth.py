"""
Unit tests for the credential store and the password authenticator.
"""

import pytest

from CoolChat.core.server.auth import (
    CredentialStore,
    PasswordAuthenticator,
    hash_password,
    is_hashed,
    verify_password,
)
from CoolChat.core.server.exceptions import ChatServerError, StorageFault


class TestPasswordHashing:
    """Tests for the bcrypt helpers."""

    def test_hash_and_verify(self):
        hashed = hash_password("wonderland", rounds=4)

        assert is_hashed(hashed)
        assert verify_password("wonderland", hashed)
        assert not verify_password("wrong", hashed)

    def test_malformed_hash_does_not_verify(self):
        assert not verify_password("anything", "$2b$not-a-real-hash")


class TestCredentialStore:
    """Tests for CredentialStore."""

    def test_plaintext_records_upgraded(self, users_file):
        store = CredentialStore(str(users_file), rounds=4)

        assert store.load() == 3
        assert store.dirty
        assert store.authenticate("alice", "wonderland")

        store.flush()
        stored = dict(line.split(",") for line in users_file.read_text(encoding="utf-8").splitlines())
        assert set(stored) == {"alice", "bob", "carol"}
        assert all(is_hashed(secret) for secret in stored.values())
        assert not store.dirty

    def test_hashed_records_kept(self, tmp_path):
        path = tmp_path / "users.txt"
        hashed = hash_password("builder", rounds=4)
        path.write_text(f"bob,{hashed}\n", encoding="utf-8")
        store = CredentialStore(str(path), rounds=4)

        store.load()

        assert not store.dirty
        assert store.authenticate("bob", "builder")

    def test_malformed_lines_skipped(self, tmp_path):
        path = tmp_path / "users.txt"
        path.write_text("alice,wonderland\nbroken\nx,y,z\n,nopass\n\n", encoding="utf-8")
        store = CredentialStore(str(path), rounds=4)

        assert store.load() == 1
        assert "alice" in store
        assert "broken" not in store

    def test_missing_file(self, tmp_path):
        store = CredentialStore(str(tmp_path / "missing.txt"), rounds=4)

        assert store.load() == 0
        assert store.dirty
        assert not store.authenticate("alice", "wonderland")

    def test_wrong_password_and_unknown_user(self, credentials):
        assert not credentials.authenticate("alice", "builder")
        assert not credentials.authenticate("dave", "wonderland")
        assert not credentials.authenticate("alice", "")

    def test_add_user(self, credentials, users_file):
        credentials.add_user("dave", "diver")
        credentials.flush()

        reloaded = CredentialStore(str(users_file), rounds=4)
        reloaded.load()
        assert reloaded.authenticate("dave", "diver")

    @pytest.mark.parametrize("username,password", [
        ("alice", "again"),
        ("", "pw"),
        ("da,ve", "pw"),
        (" dave", "pw"),
        ("dave", ""),
        ("dave", "p,w"),
        ("dave", "x" * 73),
    ])
    def test_add_user_rejected(self, credentials, username, password):
        with pytest.raises(ChatServerError):
            credentials.add_user(username, password)

    def test_flush_failure(self, tmp_path):
        directory = tmp_path / "users_dir"
        directory.mkdir()
        store = CredentialStore(str(directory), rounds=4)

        with pytest.raises(StorageFault):
            store.flush()


class TestPasswordAuthenticator:
    """Tests for PasswordAuthenticator."""

    @pytest.mark.asyncio
    async def test_success(self, credentials):
        authenticator = PasswordAuthenticator(credentials)

        result = await authenticator.authenticate("alice", "wonderland")

        assert result.success
        assert result.username == "alice"

    @pytest.mark.asyncio
    async def test_invalid_credentials(self, credentials):
        authenticator = PasswordAuthenticator(credentials)

        result = await authenticator.authenticate("alice", "nope")

        assert not result.success
        assert result.error_code == "INVALID_CREDENTIALS"

    @pytest.mark.asyncio
    async def test_missing_credentials(self, credentials):
        authenticator = PasswordAuthenticator(credentials)

        result = await authenticator.authenticate("", "")

        assert not result.success
        assert result.error_code == "MISSING_CREDENTIALS"
