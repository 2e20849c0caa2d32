"""Business logic handlers for creator-side bundle management."""

import time

from bundle_access.errors import STORE_ERRORS
from bundle_access.models import Bundle
from bundle_access.repositories import bundles_repo, content_repo
from bundle_access.services import content_service

EDITABLE_FIELDS = ('title', 'description', 'price', 'coverImage', 'active')
PROTECTED_FIELDS = {
    'id',
    'creatorId',
    'userId',
    'createdAt',
    'updatedAt',
    'contentItems',
    'totalSales',
    'totalRevenue',
}
MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 5000
TRUTHY_ARGS = {'1', 'true', 'yes', 'on'}


def _load_owned_bundle(app_ctx, request, bundle_id):
    """Return (uid, bundle, None) or (None, None, error_response)."""
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return None, None, (app_ctx.jsonify({'error': 'Authentication required'}), 401)

    uid = decoded_token['uid']
    try:
        doc, collection_name = bundles_repo.get_doc(app_ctx.db, bundle_id)
    except STORE_ERRORS as e:
        return None, None, app_ctx.store_unavailable_response(e)
    if doc is None:
        return None, None, (app_ctx.jsonify({'error': 'Bundle not found'}), 404)

    bundle = Bundle.from_doc(doc.id, doc.to_dict(), collection=collection_name)
    if bundle.creator_id != uid:
        app_ctx.logger.warning(f"⚠️ User {uid} tried to modify bundle {bundle_id} owned by {bundle.creator_id}")
        return None, None, (app_ctx.jsonify({'error': 'You do not own this bundle'}), 403)
    return uid, bundle, None


def _validate_updates(updates):
    if 'title' in updates:
        title = str(updates['title'] or '').strip()
        if not title:
            return 'Title cannot be empty'
        if len(title) > MAX_TITLE_LENGTH:
            return f'Title must be at most {MAX_TITLE_LENGTH} characters'
        updates['title'] = title
    if 'description' in updates:
        description = str(updates['description'] or '')
        if len(description) > MAX_DESCRIPTION_LENGTH:
            return f'Description must be at most {MAX_DESCRIPTION_LENGTH} characters'
        updates['description'] = description
    if 'price' in updates:
        price = updates['price']
        if isinstance(price, bool) or not isinstance(price, (int, float)) or price < 0:
            return 'Price must be a non-negative number'
    if 'active' in updates and not isinstance(updates['active'], bool):
        return 'active must be true or false'
    return ''


def _save_updates(app_ctx, bundle, updates):
    updates['updatedAt'] = time.time()
    try:
        bundles_repo.update_doc(app_ctx.db, bundle.id, updates, collection_name=bundle.collection)
        doc, collection_name = bundles_repo.get_doc(app_ctx.db, bundle.id)
    except STORE_ERRORS as e:
        return app_ctx.store_unavailable_response(e)
    updated = Bundle.from_doc(doc.id, doc.to_dict(), collection=collection_name) if doc is not None else bundle
    return app_ctx.jsonify({'success': True, 'bundle': updated.to_dict()})


def list_bundles(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Authentication required'}), 401

    uid = decoded_token['uid']
    try:
        docs = bundles_repo.list_by_creator(app_ctx.db, uid)
    except STORE_ERRORS as e:
        return app_ctx.store_unavailable_response(e)
    bundles = [Bundle.from_doc(doc.id, doc.to_dict()).to_dict() for doc in docs]
    return app_ctx.jsonify({'success': True, 'bundles': bundles, 'total': len(bundles)})


def get_bundle(app_ctx, request, bundle_id):
    _uid, bundle, error = _load_owned_bundle(app_ctx, request, bundle_id)
    if error:
        return error
    return app_ctx.jsonify({'success': True, 'bundle': bundle.to_dict()})


def replace_bundle(app_ctx, request, bundle_id):
    _uid, bundle, error = _load_owned_bundle(app_ctx, request, bundle_id)
    if error:
        return error

    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return app_ctx.jsonify({'error': 'Invalid request body'}), 400
    updates = {key: payload[key] for key in EDITABLE_FIELDS if key in payload}
    if not updates:
        return app_ctx.jsonify({'error': 'No editable fields provided'}), 400
    validation_error = _validate_updates(updates)
    if validation_error:
        return app_ctx.jsonify({'error': validation_error}), 400
    return _save_updates(app_ctx, bundle, updates)


def patch_bundle(app_ctx, request, bundle_id):
    _uid, bundle, error = _load_owned_bundle(app_ctx, request, bundle_id)
    if error:
        return error

    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return app_ctx.jsonify({'error': 'Invalid request body'}), 400
    rejected = sorted(key for key in payload if key in PROTECTED_FIELDS)
    if rejected:
        return app_ctx.jsonify({'error': f"Fields cannot be changed: {', '.join(rejected)}"}), 400
    updates = dict(payload)
    if not updates:
        return app_ctx.jsonify({'error': 'No fields provided'}), 400
    validation_error = _validate_updates(updates)
    if validation_error:
        return app_ctx.jsonify({'error': validation_error}), 400
    return _save_updates(app_ctx, bundle, updates)


def delete_bundle(app_ctx, request, bundle_id):
    uid, bundle, error = _load_owned_bundle(app_ctx, request, bundle_id)
    if error:
        return error

    hard_delete = str(request.args.get('hard', '') or '').strip().lower() in TRUTHY_ARGS
    try:
        if not hard_delete:
            bundles_repo.update_doc(
                app_ctx.db,
                bundle.id,
                {'active': False, 'updatedAt': time.time()},
                collection_name=bundle.collection,
            )
            app_ctx.logger.info(f"🗄️ Bundle {bundle.id} deactivated by {uid}")
            return app_ctx.jsonify({'success': True, 'deleted': False, 'active': False})

        removed_rows = content_repo.delete_bundle_content(app_ctx.db, bundle.id)
        bundles_repo.delete_doc(app_ctx.db, bundle.id, collection_name=bundle.collection)
    except STORE_ERRORS as e:
        return app_ctx.store_unavailable_response(e)

    # Purchase records are kept; buyers of a deleted bundle see no_content.
    app_ctx.logger.info(f"🗑️ Bundle {bundle.id} deleted by {uid} ({removed_rows} content rows)")
    return app_ctx.jsonify({'success': True, 'deleted': True, 'contentRowsDeleted': removed_rows})


def _content_ids_from_body(request):
    payload = request.get_json(silent=True) or {}
    raw_ids = payload.get('contentIds') if isinstance(payload, dict) else None
    if not isinstance(raw_ids, list):
        return None
    ids = []
    for raw_id in raw_ids:
        item_id = str(raw_id or '').strip()
        if item_id and item_id not in ids:
            ids.append(item_id)
    return ids


def add_content(app_ctx, request, bundle_id):
    _uid, bundle, error = _load_owned_bundle(app_ctx, request, bundle_id)
    if error:
        return error

    content_ids = _content_ids_from_body(request)
    if not content_ids:
        return app_ctx.jsonify({'error': 'contentIds must be a non-empty array'}), 400

    batch = content_service.resolve_items(app_ctx.db, content_ids)
    if batch.failed:
        return app_ctx.jsonify({
            'error': 'Some content items could not be found',
            'missing': batch.failed_ids(),
        }), 404

    current = list(bundle.content_item_ids)
    added = [item_id for item_id in content_ids if item_id not in current]
    if not added:
        return app_ctx.jsonify({'success': True, 'added': 0, 'contentItems': current})
    return _write_content_list(app_ctx, bundle, current + added, added=len(added))


def remove_content(app_ctx, request, bundle_id):
    _uid, bundle, error = _load_owned_bundle(app_ctx, request, bundle_id)
    if error:
        return error

    content_ids = _content_ids_from_body(request)
    if not content_ids:
        return app_ctx.jsonify({'error': 'contentIds must be a non-empty array'}), 400

    current = list(bundle.content_item_ids)
    remaining = [item_id for item_id in current if item_id not in content_ids]
    removed = len(current) - len(remaining)
    if not removed:
        return app_ctx.jsonify({'success': True, 'removed': 0, 'contentItems': current})
    return _write_content_list(app_ctx, bundle, remaining, removed=removed)


def _write_content_list(app_ctx, bundle, content_ids, **counts):
    try:
        bundles_repo.update_doc(
            app_ctx.db,
            bundle.id,
            {'contentItems': content_ids, 'updatedAt': time.time()},
            collection_name=bundle.collection,
        )
    except STORE_ERRORS as e:
        return app_ctx.store_unavailable_response(e)
    app_ctx.logger.info(f"📦 Bundle {bundle.id} content list now has {len(content_ids)} items")
    payload = {'success': True, 'contentItems': content_ids}
    payload.update(counts)
    return app_ctx.jsonify(payload)
