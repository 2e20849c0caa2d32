from flask import Blueprint, request

from bundle_access.services import purchases_api_service

migration_bp = Blueprint('migration_api', __name__)


@migration_bp.route('/api/migrate-to-unified-purchases', methods=['POST'])
def migrate_all_purchases():
    from bundle_access import runtime

    return purchases_api_service.migrate_all_purchases(runtime, request)


@migration_bp.route('/api/migrate-product-box-purchase', methods=['POST'])
def migrate_bundle_purchase():
    from bundle_access import runtime

    return purchases_api_service.migrate_bundle_purchase(runtime, request)
