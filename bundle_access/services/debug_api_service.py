"""Diagnostic snapshot of a buyer's purchase state for one bundle.

Only served when debug endpoints are enabled; raw error strings are
returned on purpose so operators can see which store read failed.
"""

from bundle_access.models import Bundle, LegacyPurchase, UnifiedPurchase
from bundle_access.repositories import bundles_repo, legacy_purchases_repo, unified_purchases_repo
from bundle_access.services import content_service


def check_bundle_purchase(app_ctx, request):
    if not app_ctx.config.debug_endpoints_enabled:
        return app_ctx.jsonify({'error': 'Not found'}), 404

    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Authentication required'}), 401

    uid = decoded_token['uid']
    bundle_id = str(request.args.get('productBoxId', '') or request.args.get('bundleId', '') or '').strip()
    if not bundle_id:
        return app_ctx.jsonify({'error': 'productBoxId is required'}), 400

    db = app_ctx.db
    errors = []
    snapshot = {
        'userId': uid,
        'productBoxId': bundle_id,
        'legacyPurchases': [],
        'unifiedPurchase': None,
        'bundle': None,
        'contentItems': {'resolved': [], 'failed': [], 'deliverable': 0},
    }

    try:
        for doc in legacy_purchases_repo.list_by_bundle(db, uid, bundle_id):
            purchase = LegacyPurchase.from_doc(doc.id, doc.to_dict(), uid)
            entry = purchase.to_dict()
            entry['isCompleted'] = purchase.is_completed
            snapshot['legacyPurchases'].append(entry)
    except Exception as e:
        errors.append({'section': 'legacyPurchases', 'error': f"{e.__class__.__name__}: {e}"})

    try:
        doc = unified_purchases_repo.find_by_bundle(db, uid, bundle_id)
        if doc is not None:
            snapshot['unifiedPurchase'] = UnifiedPurchase.from_doc(doc.id, doc.to_dict(), uid).to_dict()
    except Exception as e:
        errors.append({'section': 'unifiedPurchase', 'error': f"{e.__class__.__name__}: {e}"})

    bundle = None
    try:
        doc, collection_name = bundles_repo.get_doc(db, bundle_id)
        if doc is not None:
            bundle = Bundle.from_doc(doc.id, doc.to_dict(), collection=collection_name)
            snapshot['bundle'] = dict(bundle.to_dict(), collection=collection_name)
    except Exception as e:
        errors.append({'section': 'bundle', 'error': f"{e.__class__.__name__}: {e}"})

    if bundle is not None:
        try:
            batch = content_service.resolve_bundle_items(db, bundle)
            dropped = []
            deliverable = content_service.deliverable_items(batch.succeeded, dropped=dropped)
            snapshot['contentItems'] = {
                'resolved': [
                    {
                        'id': item.id,
                        'title': item.title,
                        'url': item.url,
                        'mimeType': item.mime_type,
                        'source': item.source,
                        'hasValidUrl': content_service.has_delivery_url(item.url),
                    }
                    for item in batch.succeeded
                ],
                'failed': [{'id': item_id, 'reason': reason} for item_id, reason in batch.failed + dropped],
                'deliverable': len(deliverable),
            }
        except Exception as e:
            errors.append({'section': 'contentItems', 'error': f"{e.__class__.__name__}: {e}"})

    snapshot['hasLegacyPurchase'] = any(entry['isCompleted'] for entry in snapshot['legacyPurchases'])
    snapshot['hasUnifiedPurchase'] = snapshot['unifiedPurchase'] is not None
    snapshot['errors'] = errors
    return app_ctx.jsonify(snapshot)
