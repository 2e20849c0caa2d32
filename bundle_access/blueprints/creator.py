from flask import Blueprint, request

from bundle_access.services import creator_api_service

creator_bp = Blueprint('creator_api', __name__)


@creator_bp.route('/api/creator/bundles', methods=['GET'])
def list_bundles():
    from bundle_access import runtime

    return creator_api_service.list_bundles(runtime, request)


@creator_bp.route('/api/creator/bundles/<bundle_id>', methods=['GET'])
def get_bundle(bundle_id):
    from bundle_access import runtime

    return creator_api_service.get_bundle(runtime, request, bundle_id)


@creator_bp.route('/api/creator/bundles/<bundle_id>', methods=['PUT'])
def replace_bundle(bundle_id):
    from bundle_access import runtime

    return creator_api_service.replace_bundle(runtime, request, bundle_id)


@creator_bp.route('/api/creator/bundles/<bundle_id>', methods=['PATCH'])
def patch_bundle(bundle_id):
    from bundle_access import runtime

    return creator_api_service.patch_bundle(runtime, request, bundle_id)


@creator_bp.route('/api/creator/bundles/<bundle_id>', methods=['DELETE'])
def delete_bundle(bundle_id):
    from bundle_access import runtime

    return creator_api_service.delete_bundle(runtime, request, bundle_id)


@creator_bp.route('/api/creator/bundles/<bundle_id>/add-content', methods=['POST'])
def add_content(bundle_id):
    from bundle_access import runtime

    return creator_api_service.add_content(runtime, request, bundle_id)


@creator_bp.route('/api/creator/bundles/<bundle_id>/remove-content', methods=['POST'])
def remove_content(bundle_id):
    from bundle_access import runtime

    return creator_api_service.remove_content(runtime, request, bundle_id)
