import hashlib
import logging
import secrets
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from app.config import settings
from app.models.handoff_code import HandoffCode
from app.services.errors import HandoffCodeError

logger = logging.getLogger(__name__)

MAX_UID_LENGTH = 128


def _hash_code(code: str) -> str:
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


def is_well_formed_uid(uid) -> bool:
    return isinstance(uid, str) and bool(uid.strip()) and len(uid) <= MAX_UID_LENGTH


def issue_handoff_code(db: Session, uid: str, ttl_seconds: int | None = None) -> str:
    """
    Issues a single-use exchange code bound to ``uid``. Only its hash is
    stored; the caller is responsible for committing the session.
    """
    ttl = settings.HANDOFF_CODE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
    code = secrets.token_urlsafe(24)
    now = datetime.utcnow()
    db.add(
        HandoffCode(
            code_hash=_hash_code(code),
            uid=uid,
            created_at=now,
            expires_at=now + timedelta(seconds=ttl),
        )
    )
    db.flush()
    return code


def redeem_handoff_code(db: Session, uid: str, code) -> None:
    """
    Claims the code for ``uid`` or raises HandoffCodeError.

    The claim is a single conditional UPDATE, so two concurrent redeems
    cannot both succeed. It is not committed here: the caller commits once
    the token has been minted and rolls back otherwise, leaving the code
    usable for a retry.
    """
    if not isinstance(code, str) or not code:
        raise HandoffCodeError("Missing handoff code", code="handoff/missing-code")

    code_hash = _hash_code(code)
    now = datetime.utcnow()
    claimed = (
        db.query(HandoffCode)
        .filter(
            HandoffCode.code_hash == code_hash,
            HandoffCode.uid == uid,
            HandoffCode.used_at.is_(None),
            HandoffCode.expires_at > now,
        )
        .update({HandoffCode.used_at: now}, synchronize_session=False)
    )
    if claimed:
        logger.info("Handoff code claimed for uid=%s", uid)
        return

    record = (
        db.query(HandoffCode)
        .populate_existing()
        .filter(HandoffCode.code_hash == code_hash)
        .first()
    )
    if not record or record.uid != uid:
        logger.warning("Rejected unknown handoff code for uid=%s", uid)
        raise HandoffCodeError()
    if record.used_at is not None:
        logger.warning("Rejected reused handoff code for uid=%s", uid)
        raise HandoffCodeError("Handoff code already used", code="handoff/code-used")
    logger.warning("Rejected expired handoff code for uid=%s", uid)
    raise HandoffCodeError("Handoff code expired", code="handoff/code-expired")
