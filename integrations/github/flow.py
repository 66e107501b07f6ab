"""OAuth connect flow: authorize, callback, finalize.

The access token is obtained as soon as GitHub redirects back, but it is only
persisted on a later, client-initiated finalize call. In between it sits in a
short-lived handoff record keyed by an opaque flow id, so the browser only
ever carries the flow id.

    INITIATED -> CALLBACK_RECEIVED -> EXCHANGED -> FINALIZED
    failures:    STATE_EXPIRED | EXCHANGE_FAILED | FLOW_EXPIRED
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from integrations.errors import (
    ExchangeFailedError,
    ExternalApiError,
    InvalidOrExpiredFlowError,
    StateExpiredError,
)
from integrations.github.config import FLOW_TTL_SECONDS, STATE_TTL_SECONDS
from integrations.github.oauth import GitHubOAuthClient
from integrations.github.types import GitHubAccount, Repository
from integrations.state_store import TTLStore

logger = logging.getLogger(__name__)


class FlowState(str, Enum):
    """Connect flow states."""
    INITIATED = "initiated"
    CALLBACK_RECEIVED = "callback_received"
    EXCHANGED = "exchanged"
    FINALIZED = "finalized"
    STATE_EXPIRED = "state_expired"
    EXCHANGE_FAILED = "exchange_failed"
    FLOW_EXPIRED = "flow_expired"


@dataclass
class OAuthState:
    state: str
    owner_id: int
    created_at: datetime


@dataclass
class HandoffRecord:
    """Bridges the provider callback and the client's finalize call."""
    owner_id: int
    account: GitHubAccount
    access_token: str
    expires_at: datetime

    def __repr__(self) -> str:
        # Keep the token out of logs and tracebacks.
        return (
            f"<HandoffRecord owner_id={self.owner_id} "
            f"username={self.account.username} expires_at={self.expires_at.isoformat()}>"
        )


@dataclass
class AuthorizationRequest:
    authorization_url: str
    state: str


@dataclass
class CallbackResult:
    flow_id: str
    username: str
    status: FlowState = FlowState.EXCHANGED


def generate_state() -> str:
    return secrets.token_hex(32)


def generate_flow_id() -> str:
    return secrets.token_hex(16)


class OAuthFlowService:
    """Drives one user's GitHub connect flow through its states.

    Args:
        oauth: OAuth client used for the code exchange and account lookup
        states: TTL store for pending ``state`` values
        flows: TTL store for handoff records
        upsert_integration: Persists the account link; called as
            ``upsert_integration(db, owner_id, account, access_token)``
    """

    def __init__(
        self,
        oauth: GitHubOAuthClient,
        states: TTLStore,
        flows: TTLStore,
        upsert_integration: Callable,
        state_ttl: int = STATE_TTL_SECONDS,
        flow_ttl: int = FLOW_TTL_SECONDS,
        now: Callable[[], datetime] = datetime.utcnow,
    ):
        self.oauth = oauth
        self.states = states
        self.flows = flows
        self.upsert_integration = upsert_integration
        self.state_ttl = state_ttl
        self.flow_ttl = flow_ttl
        self._now = now

    def generate_auth_url(self, owner_id: int, redirect_uri: str) -> AuthorizationRequest:
        state = generate_state()
        self.states.put(
            state,
            OAuthState(state=state, owner_id=owner_id, created_at=self._now()),
            ttl=self.state_ttl,
        )
        logger.info(f"OAuth flow {FlowState.INITIATED.value} for user {owner_id}")
        return AuthorizationRequest(
            authorization_url=self.oauth.authorization_url(redirect_uri, state),
            state=state,
        )

    def handle_callback(self, code: Optional[str], state: Optional[str]) -> CallbackResult:
        """Consume the state, exchange the code and stash a handoff record.

        Raises:
            StateExpiredError: State unknown, reused or past its lifetime
            ExchangeFailedError: Token exchange or account lookup failed
        """
        stored = self.states.take(state) if state else None
        if stored is None:
            logger.warning(f"OAuth callback rejected: {FlowState.STATE_EXPIRED.value}")
            raise StateExpiredError("OAuth state expired or invalid")
        logger.info(f"OAuth flow {FlowState.CALLBACK_RECEIVED.value} for user {stored.owner_id}")

        if not code:
            raise ExchangeFailedError("Authorization code missing from callback")

        try:
            token_data = self.oauth.exchange_code(code, state)
            account = self.oauth.get_user(token_data["access_token"])
        except ExternalApiError as e:
            logger.error(
                f"OAuth flow {FlowState.EXCHANGE_FAILED.value} for user {stored.owner_id}: {e.message}"
            )
            raise ExchangeFailedError("GitHub authorization could not be completed") from e

        flow_id = generate_flow_id()
        self.flows.put(
            flow_id,
            HandoffRecord(
                owner_id=stored.owner_id,
                account=account,
                access_token=token_data["access_token"],
                expires_at=self._now() + timedelta(seconds=self.flow_ttl),
            ),
            ttl=self.flow_ttl,
        )
        logger.info(
            f"OAuth flow {FlowState.EXCHANGED.value} for user {stored.owner_id} "
            f"as GitHub user {account.username}"
        )
        return CallbackResult(flow_id=flow_id, username=account.username)

    def finalize_connect(self, db, flow_id: Optional[str], owner_id: int):
        """Redeem a handoff record exactly once and persist the integration.

        Only the user who started the flow can redeem it; another caller's
        attempt fails without consuming the record.

        Raises:
            InvalidOrExpiredFlowError: Flow id absent, expired, used, or foreign
        """
        if not flow_id:
            raise InvalidOrExpiredFlowError()

        now = self._now()
        record = self.flows.take(
            flow_id,
            predicate=lambda r: r.owner_id == owner_id and r.expires_at > now,
        )
        if record is None:
            logger.warning(f"OAuth finalize rejected for user {owner_id}: {FlowState.FLOW_EXPIRED.value}")
            raise InvalidOrExpiredFlowError()

        try:
            integration = self.upsert_integration(db, owner_id, record.account, record.access_token)
        except Exception:
            remaining = (record.expires_at - self._now()).total_seconds()
            if remaining > 0:
                self.flows.put(flow_id, record, ttl=remaining)
            raise

        logger.info(f"OAuth flow {FlowState.FINALIZED.value} for user {owner_id}")
        return integration

    def list_repositories(self, access_token: str, options: Optional[dict] = None) -> list[Repository]:
        return self.oauth.list_repositories(access_token, options)
