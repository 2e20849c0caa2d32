"""Business logic handlers for checkout, session verification and webhooks."""

import logging

from bundle_access.errors import BundleAccessError, StoreUnavailableError
from bundle_access.logging_config import log_event
from bundle_access.services import access_service, migration_service, verification_service

VERIFY_STATUS_CODES = {
    verification_service.REASON_UNPAID: 400,
    verification_service.REASON_INVALID_SESSION: 400,
    verification_service.REASON_SESSION_NOT_FOUND: 404,
    verification_service.REASON_FORBIDDEN: 403,
    verification_service.REASON_NETWORK_ERROR: 503,
}


def _migrate_after_payment(app_ctx, uid, bundle_id):
    """Best-effort promotion of a fresh purchase to the unified store."""
    try:
        outcome = migration_service.migrate_one(app_ctx.db, uid, bundle_id)
    except BundleAccessError as e:
        app_ctx.logger.warning(f"⚠️ Post-payment migration of bundle {bundle_id} for {uid} failed: {e}")
        return None
    return outcome


def create_checkout_session(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Please sign in to continue'}), 401

    uid = decoded_token['uid']
    email = decoded_token.get('email', '')
    allowed_checkout, retry_after = app_ctx.check_rate_limit(
        key=f"checkout:{uid}",
        limit=app_ctx.config.checkout_rate_limit_max_requests,
        window_seconds=app_ctx.config.checkout_rate_limit_window_seconds,
    )
    if not allowed_checkout:
        return app_ctx.build_rate_limited_response(
            'Too many checkout attempts. Please wait before starting another checkout.',
            retry_after,
        )

    data = request.get_json(silent=True) or {}
    bundle_id = str(data.get('bundleId') or data.get('productBoxId') or '').strip() if isinstance(data, dict) else ''
    if not bundle_id:
        return app_ctx.jsonify({'error': 'Bundle ID is required'}), 400

    try:
        bundle = access_service.load_bundle(app_ctx.db, bundle_id)
        existing = access_service.find_unified_purchase(app_ctx.db, uid, bundle_id)
        if existing is None:
            existing = access_service.find_legacy_purchase(app_ctx.db, uid, bundle_id)
    except StoreUnavailableError as e:
        return app_ctx.store_unavailable_response(e)

    if bundle is None:
        return app_ctx.jsonify({'error': 'Bundle not found'}), 404
    if not bundle.active:
        return app_ctx.jsonify({'error': 'This bundle is not available for purchase'}), 400
    if bundle.price <= 0:
        return app_ctx.jsonify({'error': 'This bundle has no price set'}), 400
    if existing is not None:
        return app_ctx.jsonify({'error': 'You already own this bundle', 'bundleId': bundle_id}), 409

    base_url = (app_ctx.config.public_base_url or request.host_url).rstrip('/')
    try:
        checkout_session = app_ctx.stripe.checkout.Session.create(
            payment_method_types=['card'],
            line_items=[{
                'price_data': {
                    'currency': bundle.currency,
                    'product_data': {
                        'name': bundle.title or 'Bundle',
                        'description': bundle.description or None,
                    },
                    'unit_amount': int(round(bundle.price * 100)),
                },
                'quantity': 1,
            }],
            mode='payment',
            success_url=f"{base_url}/product-box/{bundle_id}/content?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{base_url}/product-box/{bundle_id}?payment=cancelled",
            customer_email=email or None,
            metadata={
                'bundleId': bundle_id,
                'productBoxId': bundle_id,
                'buyerUid': uid,
                'creatorUid': bundle.creator_id,
                'bundleTitle': bundle.title,
            },
        )
    except app_ctx.stripe.StripeError as e:
        app_ctx.logger.error(f"Stripe checkout error: {e}")
        return app_ctx.jsonify({'error': 'Could not create checkout session. Please try again.'}), 500

    log_event(app_ctx.logger, logging.INFO, 'checkout_session_created', uid=uid, bundle_id=bundle_id, session_id=checkout_session.id)
    return app_ctx.jsonify({'sessionId': checkout_session.id, 'url': checkout_session.url})


def verify_session(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request, allow_body_token=True)
    if not decoded_token:
        return app_ctx.jsonify({'success': False, 'error': 'Authentication required'}), 401

    uid = decoded_token['uid']
    data = request.get_json(silent=True) or {}
    session_id = str(data.get('sessionId') or '').strip() if isinstance(data, dict) else ''
    if not session_id:
        return app_ctx.jsonify({'success': False, 'error': 'Session ID is required'}), 400

    try:
        result = verification_service.verify_session(app_ctx.db, app_ctx.stripe, session_id, uid)
    except StoreUnavailableError as e:
        return app_ctx.store_unavailable_response(e)

    if not result.ok:
        log_event(app_ctx.logger, logging.WARNING, 'purchase_verification_failed', uid=uid, session_id=session_id, reason=result.reason)
        extra = {'reason': result.reason}
        if result.payment_status:
            extra['paymentStatus'] = result.payment_status
        if result.reason == verification_service.REASON_NETWORK_ERROR:
            extra['retryable'] = True
        return app_ctx.error_response(result.message, VERIFY_STATUS_CODES.get(result.reason, 400), **extra)

    purchase = result.purchase
    outcome = _migrate_after_payment(app_ctx, uid, purchase.bundle_id)
    log_event(
        app_ctx.logger,
        logging.INFO,
        'purchase_verified',
        uid=uid,
        session_id=session_id,
        bundle_id=purchase.bundle_id,
        already_processed=result.already_processed,
        migrated=bool(outcome and outcome.created),
    )
    return app_ctx.jsonify({
        'success': True,
        'purchase': purchase.to_dict(),
        'alreadyProcessed': result.already_processed,
    })


def stripe_webhook(app_ctx, request):
    payload = request.data
    sig_header = request.headers.get('Stripe-Signature', '')
    webhook_secret = app_ctx.config.stripe_webhook_secret

    if not webhook_secret:
        app_ctx.logger.warning("⚠️ Stripe webhook rejected: STRIPE_WEBHOOK_SECRET is not configured")
        return app_ctx.jsonify({'error': 'Webhook not configured'}), 500
    try:
        event = app_ctx.stripe.Webhook.construct_event(payload, sig_header, webhook_secret)
    except ValueError:
        app_ctx.logger.warning("Stripe webhook: Invalid payload")
        return 'Invalid payload', 400
    except app_ctx.stripe.SignatureVerificationError as e:
        app_ctx.logger.warning(f"Stripe webhook signature verification failed: {e}")
        return 'Invalid signature', 400

    if event.get('type') != 'checkout.session.completed':
        return '', 200

    session = event['data']['object']
    session_id = session.get('id', '')
    if not verification_service.is_session_paid(session):
        app_ctx.logger.info(f"ℹ️ Webhook checkout session {session_id} not paid yet; ignoring.")
        return '', 200

    bundle_id = verification_service.session_bundle_id(session)
    buyer_uid = verification_service.session_buyer_uid(session)
    if not bundle_id or not buyer_uid:
        app_ctx.logger.warning(f"⚠️ Webhook checkout session {session_id} missing metadata")
        return '', 200

    try:
        purchase, already_processed = verification_service.record_checkout_purchase(app_ctx.db, session, buyer_uid)
    except StoreUnavailableError as e:
        # Non-2xx makes Stripe redeliver the event.
        app_ctx.logger.error(f"❌ Webhook could not record session {session_id}: {e}")
        return app_ctx.jsonify({'error': 'Temporarily unavailable'}), 503

    if already_processed:
        app_ctx.logger.info(f"ℹ️ Checkout session {session_id} already processed.")
    else:
        app_ctx.logger.info(f"✅ Payment successful! Bundle '{bundle_id}' purchased by '{buyer_uid}'")
    _migrate_after_payment(app_ctx, buyer_uid, purchase.bundle_id)
    return '', 200
