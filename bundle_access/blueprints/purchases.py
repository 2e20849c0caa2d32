from flask import Blueprint, request

from bundle_access.services import purchases_api_service

purchases_bp = Blueprint('purchases_api', __name__)


@purchases_bp.route('/api/user/unified-purchases', methods=['GET'])
def unified_purchases():
    from bundle_access import runtime

    return purchases_api_service.get_unified_purchases(runtime, request)


@purchases_bp.route('/api/user/purchases', methods=['GET'])
def legacy_purchases():
    from bundle_access import runtime

    return purchases_api_service.get_legacy_purchases(runtime, request)


@purchases_bp.route('/api/product-box/<bundle_id>/content', methods=['GET'])
def bundle_content(bundle_id):
    from bundle_access import runtime

    return purchases_api_service.get_bundle_content(runtime, request, bundle_id)
