from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional, Tuple
from sqlalchemy import or_, update
from sqlalchemy.orm import Session
from models.employee import Employee
from models.hr_user import HrUser
import hashlib
import logging
import secrets

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32  # 256 bits of entropy

class TokenStatus(str, Enum):
    VALID = "valid"
    UNKNOWN = "invalid_link"
    EXPIRED = "expired_link"
    CONSUMED = "link_already_used"

@dataclass(frozen=True)
class TokenSlot:
    """
    Where a one-time token lives on a principal model.

    pending: extra column values required for the token to be usable
    on_consume: extra column values written when the token is exchanged
    """
    name: str
    model: Any
    hash_column: str
    expires_column: str
    used_column: str
    pending: dict = field(default_factory=dict)
    on_consume: dict = field(default_factory=dict)

    def column(self, name: str):
        return getattr(self.model, name)

EMPLOYEE_SETUP = TokenSlot(
    name="employee_setup",
    model=Employee,
    hash_column="setup_token_hash",
    expires_column="setup_token_expires",
    used_column="setup_token_used_hash",
    pending={"is_password_set": False},
    on_consume={"is_password_set": True},
)

HR_RESET = TokenSlot(
    name="hr_reset",
    model=HrUser,
    hash_column="reset_token_hash",
    expires_column="reset_token_expires",
    used_column="reset_token_used_hash",
)

@dataclass
class TokenCheck:
    status: TokenStatus
    principal: Optional[Any] = None

    @property
    def ok(self) -> bool:
        return self.status is TokenStatus.VALID

def digest(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()

def generate_token() -> Tuple[str, str]:
    """Return (raw token for the email link, digest to store)."""
    raw = secrets.token_urlsafe(TOKEN_BYTES)
    return raw, digest(raw)

def issue(db: Session, slot: TokenSlot, principal: Any, ttl: timedelta, now: Optional[datetime] = None) -> str:
    """
    Attach a fresh token to the principal and commit.
    Any previous token in the slot, pending or expired, is replaced.

    Returns:
        The raw token to embed in the emailed link
    """
    now = now or datetime.utcnow()
    raw, token_hash = generate_token()
    setattr(principal, slot.hash_column, token_hash)
    setattr(principal, slot.expires_column, now + ttl)
    db.add(principal)
    db.commit()
    db.refresh(principal)
    logger.info(f"Issued {slot.name} token for {principal.id}, expires {now + ttl:%Y-%m-%d %H:%M}")
    return raw

def inspect(db: Session, slot: TokenSlot, raw_token: str, now: Optional[datetime] = None) -> TokenCheck:
    """
    Classify a presented token without changing anything.

    An expired token is left in place so support can still see it.
    """
    if not raw_token:
        return TokenCheck(TokenStatus.UNKNOWN)

    now = now or datetime.utcnow()
    token_hash = digest(raw_token)
    model = slot.model

    principal = db.query(model).filter(slot.column(slot.hash_column) == token_hash).first()
    if principal is not None:
        for column, expected in slot.pending.items():
            if getattr(principal, column) != expected:
                return TokenCheck(TokenStatus.CONSUMED)
        expires = getattr(principal, slot.expires_column)
        if expires is None or expires <= now:
            return TokenCheck(TokenStatus.EXPIRED, principal)
        return TokenCheck(TokenStatus.VALID, principal)

    used = db.query(model.id).filter(slot.column(slot.used_column) == token_hash).first()
    if used is not None:
        return TokenCheck(TokenStatus.CONSUMED)

    return TokenCheck(TokenStatus.UNKNOWN)

def consume(db: Session, slot: TokenSlot, raw_token: str, password_hash: str, now: Optional[datetime] = None) -> TokenCheck:
    """
    Exchange a valid token for a new password in a single UPDATE.

    The statement only matches a live token, so two concurrent submissions
    of the same link cannot both succeed.
    """
    now = now or datetime.utcnow()
    token_hash = digest(raw_token or "")
    model = slot.model

    conditions = [
        slot.column(slot.hash_column) == token_hash,
        slot.column(slot.expires_column) > now,
    ]
    conditions.extend(slot.column(column) == value for column, value in slot.pending.items())

    values = {
        "hashed_password": password_hash,
        slot.hash_column: None,
        slot.expires_column: None,
        slot.used_column: token_hash,
        "updated_at": now,
    }
    values.update(slot.on_consume)

    result = db.execute(
        update(model).where(*conditions).values(**values).execution_options(synchronize_session=False)
    )
    db.commit()

    if result.rowcount != 1:
        check = inspect(db, slot, raw_token, now=now)
        # A live token that failed to update lost a race to another submission
        status = TokenStatus.CONSUMED if check.ok else check.status
        logger.warning(f"Rejected {slot.name} token: {status.value}")
        return TokenCheck(status)

    principal = db.query(model).populate_existing().filter(slot.column(slot.used_column) == token_hash).first()
    logger.info(f"Consumed {slot.name} token for {principal.id if principal else 'unknown'}")
    return TokenCheck(TokenStatus.VALID, principal)

def purge_expired(db: Session, now: Optional[datetime] = None) -> int:
    """Clear expired tokens from every slot. Returns the number of rows cleared."""
    now = now or datetime.utcnow()
    cleared = 0
    for slot in (EMPLOYEE_SETUP, HR_RESET):
        result = db.execute(
            update(slot.model)
            .where(
                slot.column(slot.hash_column).isnot(None),
                or_(slot.column(slot.expires_column).is_(None), slot.column(slot.expires_column) <= now),
            )
            .values(**{slot.hash_column: None, slot.expires_column: None})
            .execution_options(synchronize_session=False)
        )
        cleared += result.rowcount or 0
    db.commit()
    if cleared:
        logger.info(f"Purged {cleared} expired one-time tokens")
    return cleared
