"""
Unit tests for role-based access control and the security helpers.
"""

from datetime import timedelta

import pytest

from src.core.billing.errors import InvalidArgumentError, PermissionDeniedError
from src.core.billing.models import AdminRole
from src.core.billing.permissions import PERMISSIONS, check_permission, is_allowed
from src.infrastructure.security import BcryptPasswordHasher, TokenService


# ---------------------------------------------------------------------------
# Permission Table
# ---------------------------------------------------------------------------

class TestPermissions:

    def test_admin_is_allowed_everything(self):
        assert all(is_allowed(AdminRole.ADMIN, operation) for operation in PERMISSIONS)

    @pytest.mark.parametrize("role", [AdminRole.ADMIN, AdminRole.FINANCE, AdminRole.SALES])
    def test_every_role_reads_plans_and_dashboard(self, role):
        assert is_allowed(role, "plans.read")
        assert is_allowed(role, "dashboard.read")

    def test_finance_reads_payments_but_not_coaches(self):
        assert is_allowed(AdminRole.FINANCE, "payments.read")
        assert not is_allowed(AdminRole.FINANCE, "coaches.read")

    def test_sales_reads_coaches_but_not_payments(self):
        assert is_allowed(AdminRole.SALES, "coaches.read")
        assert not is_allowed(AdminRole.SALES, "payments.read")

    @pytest.mark.parametrize("role", [AdminRole.FINANCE, AdminRole.SALES])
    def test_mutations_are_admin_only(self, role):
        writes = [op for op in PERMISSIONS if not op.endswith(".read")]
        assert not any(is_allowed(role, op) for op in writes)

    def test_unknown_operation_is_admin_only(self):
        assert is_allowed(AdminRole.ADMIN, "reports.export")
        assert not is_allowed(AdminRole.FINANCE, "reports.export")

    def test_check_permission_names_the_role(self):
        with pytest.raises(PermissionDeniedError, match="Role 'sales' is not authorized"):
            check_permission(AdminRole.SALES, "subscriptions.write")


# ---------------------------------------------------------------------------
# Passwords and Tokens
# ---------------------------------------------------------------------------

class TestPasswordHasher:

    def test_hash_and_verify(self):
        hasher = BcryptPasswordHasher(rounds=4)
        hashed = hasher.hash("correct horse")

        assert hasher.verify("correct horse", hashed)
        assert not hasher.verify("wrong horse", hashed)

    def test_malformed_hash_does_not_verify(self):
        assert not BcryptPasswordHasher(rounds=4).verify("anything", "not-a-bcrypt-hash")

    def test_rejects_passwords_bcrypt_would_truncate(self):
        with pytest.raises(InvalidArgumentError, match="72 bytes"):
            BcryptPasswordHasher(rounds=4).hash("x" * 73)


class TestTokenService:

    def test_round_trip_subject(self):
        tokens = TokenService(secret="a-test-secret")
        token = tokens.create_access_token(42, "finance")

        assert tokens.admin_id_from_token(token) == 42
        assert tokens.decode_access_token(token)["role"] == "finance"

    def test_expired_token_is_rejected(self):
        tokens = TokenService(secret="a-test-secret")
        token = tokens.create_access_token(42, "admin", expires_delta=timedelta(seconds=-1))

        assert tokens.admin_id_from_token(token) is None

    def test_token_signed_with_another_secret_is_rejected(self):
        token = TokenService(secret="someone-else").create_access_token(42, "admin")

        assert TokenService(secret="a-test-secret").admin_id_from_token(token) is None
