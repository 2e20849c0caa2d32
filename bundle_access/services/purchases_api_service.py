"""Business logic handlers for buyer purchase, content and migration APIs."""

from bundle_access.errors import STORE_ERRORS, BundleAccessError, StoreUnavailableError
from bundle_access.models import ACCESS_DENIED, LegacyPurchase, UnifiedPurchase
from bundle_access.repositories import legacy_purchases_repo, unified_purchases_repo
from bundle_access.services import access_service, content_service, migration_service

TRUTHY_ARGS = {'1', 'true', 'yes', 'on'}


def serialize_purchase(purchase):
    payload = purchase.to_dict()
    payload['items'] = [content_service.describe_item(item) for item in purchase.items]
    return payload


def get_unified_purchases(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Authentication required'}), 401

    uid = decoded_token['uid']
    try:
        docs = unified_purchases_repo.list_for_user(app_ctx.db, uid)
    except STORE_ERRORS as e:
        return app_ctx.store_unavailable_response(e)
    purchases = [serialize_purchase(UnifiedPurchase.from_doc(doc.id, doc.to_dict(), uid)) for doc in docs]
    return app_ctx.jsonify({'success': True, 'purchases': purchases, 'total': len(purchases)})


def get_legacy_purchases(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Authentication required'}), 401

    uid = decoded_token['uid']
    try:
        docs = legacy_purchases_repo.list_for_user(app_ctx.db, uid)
    except STORE_ERRORS as e:
        return app_ctx.store_unavailable_response(e)
    purchases = []
    for doc in docs:
        purchase = LegacyPurchase.from_doc(doc.id, doc.to_dict(), uid)
        payload = purchase.to_dict()
        if purchase.bundle_id:
            payload['accessUrl'] = f"/product-box/{purchase.bundle_id}/content"
        purchases.append(payload)
    return app_ctx.jsonify({'success': True, 'purchases': purchases, 'total': len(purchases)})


def get_bundle_content(app_ctx, request, bundle_id):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Authentication required'}), 401

    uid = decoded_token['uid']
    try:
        result = access_service.resolve_access(app_ctx.db, uid, bundle_id)
    except StoreUnavailableError as e:
        return app_ctx.store_unavailable_response(e)

    if result.status == ACCESS_DENIED:
        return app_ctx.error_response(
            app_ctx.ACCESS_DENIED_MESSAGE,
            403,
            hasAccess=False,
            status=result.status,
            reason=result.reason,
            actions=['retry', 'debug', 'migrate'],
        )

    payload = {
        'success': True,
        'hasAccess': True,
        'status': result.status,
        'source': result.source,
        'purchase': serialize_purchase(result.purchase),
        'items': [content_service.describe_item(item) for item in result.items],
        'totalItems': len(result.items),
        'dropped': len(result.dropped),
    }
    if result.reason:
        payload['message'] = result.reason

    wants_migration = str(request.args.get('migrate', '') or '').strip().lower() in TRUTHY_ARGS
    if wants_migration and result.source == 'legacy_fallback':
        try:
            outcome = migration_service.migrate_one(app_ctx.db, uid, bundle_id)
            payload['migrated'] = outcome.created
        except BundleAccessError as e:
            app_ctx.logger.warning(f"⚠️ On-demand migration of bundle {bundle_id} for {uid} failed: {e}")
            payload['migrated'] = False
    return app_ctx.jsonify(payload)


def migrate_all_purchases(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Authentication required'}), 401

    uid = decoded_token['uid']
    try:
        report = migration_service.migrate_all(app_ctx.db, uid)
    except StoreUnavailableError as e:
        return app_ctx.store_unavailable_response(e)
    return app_ctx.jsonify({
        'success': True,
        'message': 'Migration completed',
        'results': report.to_dict(),
    })


def migrate_bundle_purchase(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Authentication required'}), 401

    uid = decoded_token['uid']
    data = request.get_json(silent=True) or {}
    bundle_id = str(data.get('productBoxId') or data.get('bundleId') or '').strip() if isinstance(data, dict) else ''
    if not bundle_id:
        return app_ctx.jsonify({'error': 'Product box ID is required'}), 400

    try:
        outcome = migration_service.migrate_one(app_ctx.db, uid, bundle_id)
    except StoreUnavailableError as e:
        return app_ctx.store_unavailable_response(e)
    except BundleAccessError as e:
        app_ctx.logger.warning(f"⚠️ Migration of bundle {bundle_id} for {uid} failed: {e}")
        return app_ctx.error_response(str(e), e.status_code, details='Migration failed')

    return app_ctx.jsonify({
        'success': True,
        'message': 'Purchase migrated successfully' if outcome.created else 'Purchase already migrated',
        'purchaseId': outcome.purchase_id,
        'contentItems': outcome.items_migrated,
        'created': outcome.created,
    })
