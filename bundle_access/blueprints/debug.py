from flask import Blueprint, request

from bundle_access.services import debug_api_service

debug_bp = Blueprint('debug_api', __name__)


@debug_bp.route('/api/debug/check-product-box-purchase', methods=['GET'])
def check_bundle_purchase():
    from bundle_access import runtime

    return debug_api_service.check_bundle_purchase(runtime, request)
