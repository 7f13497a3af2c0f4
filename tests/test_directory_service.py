from __future__ import annotations

import unittest
from unittest.mock import MagicMock, patch

from sqlalchemy.exc import IntegrityError

from app.errors import Conflict, Forbidden, Unauthorized
from app.models import Role, User
from app.schemas import LoginRequest, UserCreate, UserUpdate
from app.services.directory import create_user, login, login_email_for, update_user


class _FakeDirectoryDB:
    def __init__(self, *scalar_results: object | None, fail_commit: bool = False):
        self.scalar_results = list(scalar_results)
        self.fail_commit = fail_commit
        self.added: list[object] = []
        self.commits = 0
        self.rollbacks = 0

    def scalar(self, _statement):  # type: ignore[no-untyped-def]
        if not self.scalar_results:
            return None
        return self.scalar_results.pop(0)

    def add(self, obj) -> None:  # type: ignore[no-untyped-def]
        self.added.append(obj)

    def commit(self) -> None:
        if self.fail_commit:
            raise IntegrityError("INSERT", {}, Exception("duplicate key"))
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1

    def refresh(self, _obj) -> None:  # type: ignore[no-untyped-def]
        return None


def _user(user_id: str, role: Role, *, is_active: bool = True) -> User:
    return User(id=user_id, org_id="org-1", name=user_id.title(), role=role, is_active=is_active)


def _session(user_id: str) -> dict:
    return {
        "access_token": "access",
        "refresh_token": "refresh",
        "token_type": "bearer",
        "expires_in": 3600,
        "user": {"id": user_id},
    }


class LoginTests(unittest.TestCase):
    def test_login_returns_tokens_and_stores_device(self) -> None:
        profile = _user("exec-1", Role.EXECUTIVE)
        identity = MagicMock()
        identity.sign_in_with_password.return_value = _session("exec-1")
        fake_db = _FakeDirectoryDB()

        with patch("app.services.directory.load_profile", return_value=profile):
            result = login(
                fake_db,  # type: ignore[arg-type]
                identity,
                LoginRequest(email=" Asha@Example.com ", password="secret-pass", fcm_token="fcm-1"),
            )

        identity.sign_in_with_password.assert_called_once_with("asha@example.com", "secret-pass")
        self.assertEqual(result.access_token, "access")
        self.assertIsNotNone(result.user)
        self.assertEqual(profile.fcm_token, "fcm-1")
        self.assertEqual(fake_db.commits, 1)

    def test_bad_credentials_are_unauthorized(self) -> None:
        identity = MagicMock()
        identity.sign_in_with_password.side_effect = Unauthorized("Invalid login credentials")
        with self.assertRaises(Unauthorized) as ctx:
            login(_FakeDirectoryDB(), identity, LoginRequest(email="a@b.co", password="secret-pass"))  # type: ignore[arg-type]
        self.assertEqual(ctx.exception.code, "INVALID_CREDENTIALS")

    def test_deactivated_profile_cannot_log_in(self) -> None:
        identity = MagicMock()
        identity.sign_in_with_password.return_value = _session("exec-1")
        with patch("app.services.directory.load_profile", return_value=_user("exec-1", Role.EXECUTIVE, is_active=False)):
            with self.assertRaises(Unauthorized) as ctx:
                login(_FakeDirectoryDB(), identity, LoginRequest(email="a@b.co", password="secret-pass"))  # type: ignore[arg-type]
        self.assertEqual(ctx.exception.code, "ACCOUNT_DEACTIVATED")


class UserManagementTests(unittest.TestCase):
    def test_mobile_only_user_gets_synthetic_login_email(self) -> None:
        payload = UserCreate(name="Asha", mobile="9876543210", password="secret-pass")
        self.assertEqual(login_email_for(payload), "9876543210@kinematic.app")

    def test_create_user_uses_principal_id(self) -> None:
        identity = MagicMock()
        identity.admin_create_user.return_value = "principal-1"
        fake_db = _FakeDirectoryDB()

        user = create_user(
            fake_db,  # type: ignore[arg-type]
            identity,
            _user("cm-1", Role.CITY_MANAGER),
            UserCreate(name="Asha", email="asha@example.com", password="secret-pass"),
        )

        self.assertEqual(user.id, "principal-1")
        self.assertEqual(user.org_id, "org-1")
        self.assertEqual(user.role, Role.EXECUTIVE)
        identity.admin_delete_user.assert_not_called()

    def test_failed_profile_insert_removes_principal(self) -> None:
        identity = MagicMock()
        identity.admin_create_user.return_value = "principal-1"
        fake_db = _FakeDirectoryDB(fail_commit=True)

        with self.assertRaises(Conflict) as ctx:
            create_user(
                fake_db,  # type: ignore[arg-type]
                identity,
                _user("cm-1", Role.CITY_MANAGER),
                UserCreate(name="Asha", email="asha@example.com", password="secret-pass"),
            )

        self.assertEqual(ctx.exception.code, "USER_EXISTS")
        identity.admin_delete_user.assert_called_once_with("principal-1")
        self.assertEqual(fake_db.rollbacks, 1)

    def test_cannot_create_higher_role(self) -> None:
        identity = MagicMock()
        with self.assertRaises(Forbidden):
            create_user(
                _FakeDirectoryDB(),  # type: ignore[arg-type]
                identity,
                _user("cm-1", Role.CITY_MANAGER),
                UserCreate(name="Meera", email="meera@example.com", password="secret-pass", role=Role.ADMIN),
            )
        identity.admin_create_user.assert_not_called()

    def test_update_applies_only_sent_fields(self) -> None:
        target = _user("exec-1", Role.EXECUTIVE)
        target.city = "Pune"
        fake_db = _FakeDirectoryDB(target)

        updated = update_user(
            fake_db,  # type: ignore[arg-type]
            _user("cm-1", Role.CITY_MANAGER),
            "exec-1",
            UserUpdate(is_active=False),
        )

        self.assertFalse(updated.is_active)
        self.assertEqual(updated.city, "Pune")


if __name__ == "__main__":
    unittest.main()
