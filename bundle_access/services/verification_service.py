"""Stripe Checkout session verification and purchase recording."""

import logging
import time
from dataclasses import dataclass
from typing import Optional

from firebase_admin import firestore

from bundle_access.errors import STORE_ERRORS, StoreUnavailableError
from bundle_access.models import LegacyPurchase
from bundle_access.repositories import bundles_repo, legacy_purchases_repo

logger = logging.getLogger('bundle_access.verification')

PAID_PAYMENT_STATUSES = {'paid', 'no_payment_required'}

REASON_UNPAID = 'unpaid'
REASON_SESSION_NOT_FOUND = 'session_not_found'
REASON_NETWORK_ERROR = 'network_error'
REASON_INVALID_SESSION = 'invalid_session'
REASON_FORBIDDEN = 'forbidden'

REASON_MESSAGES = {
    REASON_UNPAID: 'Payment not completed',
    REASON_SESSION_NOT_FOUND: 'Payment session not found',
    REASON_NETWORK_ERROR: 'Could not reach the payment processor. Please try again.',
    REASON_INVALID_SESSION: 'Payment session is missing purchase details',
    REASON_FORBIDDEN: 'This payment session belongs to another account',
}


@dataclass(frozen=True)
class VerificationResult:
    ok: bool
    reason: str = ''
    purchase: Optional[LegacyPurchase] = None
    already_processed: bool = False
    payment_status: str = ''

    @property
    def message(self):
        return REASON_MESSAGES.get(self.reason, '')


def session_bundle_id(session):
    metadata = session.get('metadata', {}) or {}
    return str(metadata.get('bundleId') or metadata.get('productBoxId') or '').strip()


def session_buyer_uid(session):
    metadata = session.get('metadata', {}) or {}
    return str(metadata.get('buyerUid') or metadata.get('uid') or '').strip()


def is_session_paid(session):
    payment_status = str(session.get('payment_status') or '').lower()
    return payment_status in PAID_PAYMENT_STATUSES


def record_checkout_purchase(db, session, buyer_uid):
    """Upsert the purchase keyed by session id; returns (purchase, already_processed)."""
    session_id = str(session.get('id') or '')
    bundle_id = session_bundle_id(session)
    metadata = session.get('metadata', {}) or {}
    try:
        existing = legacy_purchases_repo.find_by_session_id(db, buyer_uid, session_id)
        if existing is not None:
            return LegacyPurchase.from_doc(existing.id, existing.to_dict(), buyer_uid), True

        amount_total = session.get('amount_total') or 0
        record = {
            'buyerUid': buyer_uid,
            'productBoxId': bundle_id,
            'bundleId': bundle_id,
            'sessionId': session_id,
            'paymentIntentId': session.get('payment_intent') or '',
            'amount': amount_total / 100,
            'currency': str(session.get('currency') or 'usd').lower(),
            'status': 'completed',
            'type': 'product_box',
            'creatorId': str(metadata.get('creatorUid') or metadata.get('creatorId') or ''),
            'itemTitle': str(metadata.get('bundleTitle') or ''),
            'createdAt': time.time(),
        }
        legacy_purchases_repo.upsert(db, buyer_uid, session_id, record)
    except STORE_ERRORS as e:
        raise StoreUnavailableError(f"Could not record purchase for session {session_id}: {e}") from e

    logger.info(f"📝 Saved purchase record {session_id} for user {buyer_uid}: bundle {bundle_id}")
    try:
        bundles_repo.update_doc(db, bundle_id, {
            'totalSales': firestore.Increment(1),
            'totalRevenue': firestore.Increment(amount_total / 100),
        })
    except STORE_ERRORS as e:
        logger.warning(f"⚠️ Could not update sales counters for bundle {bundle_id}: {e}")
    return LegacyPurchase.from_doc(session_id, record, buyer_uid), False


def verify_session(db, stripe_module, session_id, uid) -> VerificationResult:
    """Confirm a Checkout session was paid and make sure its purchase is recorded.

    Failures are returned as typed reasons; nothing is written unless the
    session is paid and names both a bundle and this buyer.
    """
    try:
        session = stripe_module.checkout.Session.retrieve(session_id)
    except stripe_module.InvalidRequestError as e:
        logger.warning(f"⚠️ Checkout session {session_id} not found: {e}")
        return VerificationResult(ok=False, reason=REASON_SESSION_NOT_FOUND)
    except stripe_module.StripeError as e:
        logger.error(f"❌ Stripe session retrieval failed for {session_id}: {e}")
        return VerificationResult(ok=False, reason=REASON_NETWORK_ERROR)

    if not session:
        return VerificationResult(ok=False, reason=REASON_SESSION_NOT_FOUND)

    payment_status = str(session.get('payment_status') or '').lower()
    if not is_session_paid(session):
        logger.info(f"ℹ️ Checkout session {session_id} not paid yet: {payment_status or 'unknown'}")
        return VerificationResult(ok=False, reason=REASON_UNPAID, payment_status=payment_status)

    bundle_id = session_bundle_id(session)
    buyer_uid = session_buyer_uid(session) or uid
    if not bundle_id or not buyer_uid:
        logger.warning(f"⚠️ Checkout session {session_id} missing metadata: {session.get('metadata')}")
        return VerificationResult(ok=False, reason=REASON_INVALID_SESSION, payment_status=payment_status)
    if uid and buyer_uid != uid:
        return VerificationResult(ok=False, reason=REASON_FORBIDDEN, payment_status=payment_status)

    purchase, already_processed = record_checkout_purchase(db, session, buyer_uid)
    return VerificationResult(
        ok=True,
        purchase=purchase,
        already_processed=already_processed,
        payment_status=payment_status,
    )
