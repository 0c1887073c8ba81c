"""Account service orchestrating registration, sign-in and token issuance."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from .account import Account
from .contracts import AccountDraft, AccountStore, SignInInput, SignUpInput
from .errors import (
    AccountAlreadyExists,
    DuplicateKey,
    IdentityError,
    InfrastructureError,
    InvalidCredentials,
    RegistrationIncomplete,
    ValidationFailed,
)
from ..metrics import SIGN_INS, SIGN_UPS
from ..security.passwords import PasswordHasher
from ..security.tokens import TokenIssuer

logger = logging.getLogger(__name__)

_DECOY_PASSWORD = "subtracker-decoy-password"


class RegistrationState(str, Enum):
    started = "started"
    checked = "checked"
    hashed = "hashed"
    inserted = "inserted"
    committed = "committed"
    aborted = "aborted"


@dataclass(slots=True)
class AuthResult:
    """Account plus the bearer token returned to API consumers."""

    account: Account
    token: str
    expires_in: int


def normalize_email(email: str | None) -> str:
    """Trim and lower-case an email address for storage and lookup."""
    normalized = (email or "").strip().lower()
    if not normalized:
        raise ValidationFailed("Email is required")
    return normalized


class AccountService:
    """Account workflows over an injected store, hasher and token issuer."""

    def __init__(
        self,
        repository: AccountStore,
        hasher: PasswordHasher,
        tokens: TokenIssuer,
        *,
        transaction_timeout: float = 5.0,
    ) -> None:
        """Store dependencies used to orchestrate persistence and token issuance."""
        self._repository = repository
        self._hasher = hasher
        self._tokens = tokens
        self._transaction_timeout = transaction_timeout
        self._decoy_hash = hasher.hash(_DECOY_PASSWORD)

    def register(self, payload: SignUpInput) -> AuthResult:
        """Create an account exactly once per email and issue a token for it.

        The duplicate check and the insert run inside one transaction; a
        concurrent registration that wins the race surfaces here as
        ``DuplicateKey`` and is reported the same way as a duplicate found
        by the check. The token is issued only after commit.

        Raises
        ------
        AccountAlreadyExists
            When the email is already registered.
        RegistrationIncomplete
            When the account was committed but token issuance failed.
        """
        email = normalize_email(payload.email)
        state = RegistrationState.started
        try:
            with self._repository.transaction(self._transaction_timeout) as tx:
                if self._repository.find_by_email(email, tx=tx) is not None:
                    raise AccountAlreadyExists()
                state = RegistrationState.checked

                password_hash = self._hasher.hash(payload.password)
                state = RegistrationState.hashed

                account = self._repository.insert(
                    AccountDraft(email=email, password_hash=password_hash, name=payload.name),
                    tx=tx,
                )
                state = RegistrationState.inserted
            state = RegistrationState.committed
        except DuplicateKey as exc:
            self._log_abort(state, "concurrent duplicate")
            SIGN_UPS.labels(outcome="conflict").inc()
            raise AccountAlreadyExists() from exc
        except AccountAlreadyExists:
            self._log_abort(state, "duplicate")
            SIGN_UPS.labels(outcome="conflict").inc()
            raise
        except IdentityError as exc:
            self._log_abort(state, type(exc).__name__)
            SIGN_UPS.labels(outcome="error").inc()
            raise
        except Exception:
            logger.exception("registration aborted in state %s", state.value)
            SIGN_UPS.labels(outcome="error").inc()
            raise

        logger.debug("registration %s for account %s", state.value, account.account_id)
        try:
            token, expires_in = self._tokens.issue(account.account_id)
        except InfrastructureError as exc:
            logger.error(
                "account %s created but token issuance failed: %s",
                account.account_id,
                exc.message,
            )
            SIGN_UPS.labels(outcome="token_failed").inc()
            raise RegistrationIncomplete(account) from exc

        logger.info("account %s registered", account.account_id)
        SIGN_UPS.labels(outcome="created").inc()
        return AuthResult(account=account, token=token, expires_in=expires_in)

    def sign_in(self, payload: SignInInput) -> AuthResult:
        """Verify credentials and issue a token.

        Unknown emails and wrong passwords both raise ``InvalidCredentials``
        with the same message, and both cost one bcrypt comparison.
        """
        email = normalize_email(payload.email)
        account = self._repository.find_by_email(email)
        if account is None:
            self._hasher.verify(payload.password, self._decoy_hash)
            self._reject_sign_in()
        if not self._hasher.verify(payload.password, account.password_hash):
            self._reject_sign_in()

        try:
            token, expires_in = self._tokens.issue(account.account_id)
        except InfrastructureError:
            SIGN_INS.labels(outcome="error").inc()
            raise
        SIGN_INS.labels(outcome="success").inc()
        return AuthResult(account=account, token=token, expires_in=expires_in)

    def account_id_for_token(self, token: str) -> str:
        """Return the account id a bearer token was issued for."""
        return self._tokens.verify(token)

    def _reject_sign_in(self) -> None:
        SIGN_INS.labels(outcome="rejected").inc()
        logger.info("sign-in rejected")
        raise InvalidCredentials()

    def _log_abort(self, state: RegistrationState, reason: str) -> None:
        logger.info(
            "registration %s after %s: %s",
            RegistrationState.aborted.value,
            state.value,
            reason,
        )
