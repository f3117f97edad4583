"""Unit tests for JWT handling and capability checks."""

from datetime import UTC, datetime, timedelta

import pytest
from jose import jwt

from config.settings import settings
from src.fd_common.enums import ActorRole
from src.fd_common.errors import ForbiddenError, InvalidCredentialsError
from src.fd_gateway.auth.capabilities import Actor, Capability, require
from src.fd_gateway.auth.jwt_handler import create_access_token, decode_token


def _encode(**claims: object) -> str:
    now = datetime.now(UTC)
    payload = {"iat": now, "exp": now + timedelta(minutes=5), **claims}
    return str(jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM))


class TestTokens:
    def test_access_token_claims(self) -> None:
        token = create_access_token("user-123", ActorRole.RESTAURANT, restaurant_id="r1")
        payload = jwt.get_unverified_claims(token)
        assert payload["sub"] == "user-123"
        assert payload["role"] == "restaurant"
        assert payload["restaurant_id"] == "r1"
        assert payload["type"] == "access"

    def test_round_trip_to_actor(self) -> None:
        token = create_access_token("courier-7", ActorRole.COURIER)
        assert decode_token(token) == Actor(id="courier-7", role=ActorRole.COURIER)

    def test_team_flag(self) -> None:
        token = create_access_token("u1", ActorRole.CUSTOMER, is_team_member=True)
        assert decode_token(token).is_team_member

    def test_bad_signature(self) -> None:
        token = jwt.encode({"sub": "x", "role": "admin", "type": "access"}, "other-secret", algorithm="HS256")
        with pytest.raises(InvalidCredentialsError):
            decode_token(token)

    def test_expired(self) -> None:
        past = datetime.now(UTC) - timedelta(hours=1)
        token = _encode(sub="x", role="admin", type="access", exp=past)
        with pytest.raises(InvalidCredentialsError):
            decode_token(token)

    def test_wrong_type(self) -> None:
        with pytest.raises(InvalidCredentialsError):
            decode_token(_encode(sub="x", role="admin", type="refresh"))

    def test_unknown_role(self) -> None:
        with pytest.raises(InvalidCredentialsError):
            decode_token(_encode(sub="x", role="superuser", type="access"))

    def test_garbage(self) -> None:
        with pytest.raises(InvalidCredentialsError):
            decode_token("not-a-jwt")


class TestCapabilities:
    def test_require_returns_actor(self) -> None:
        actor = Actor(id="c", role=ActorRole.COURIER)
        assert require(actor, Capability.CLAIM_DELIVERY) is actor

    def test_anonymous(self) -> None:
        with pytest.raises(InvalidCredentialsError):
            require(None, Capability.CREATE_ORDER)

    def test_missing_capability(self) -> None:
        with pytest.raises(ForbiddenError, match="PROCESS_REFUND"):
            require(Actor(id="c", role=ActorRole.CUSTOMER), Capability.PROCESS_REFUND)

    def test_team_member_views_own_commissions(self) -> None:
        assert Actor(id="u", role=ActorRole.COURIER, is_team_member=True).can(
            Capability.VIEW_OWN_COMMISSIONS
        )
        assert not Actor(id="u", role=ActorRole.COURIER).can(Capability.VIEW_OWN_COMMISSIONS)

    def test_only_admin_overrides(self) -> None:
        for role in ActorRole:
            assert Actor(id="x", role=role).can(Capability.OVERRIDE_ORDER_STATUS) is (role is ActorRole.ADMIN)
