from flask import Blueprint, request

from bundle_access.services import payments_api_service

payments_bp = Blueprint('payments_api', __name__)


@payments_bp.route('/api/create-checkout-session', methods=['POST'])
def create_checkout_session():
    from bundle_access import runtime

    return payments_api_service.create_checkout_session(runtime, request)


@payments_bp.route('/api/purchase/verify-session', methods=['POST'])
def verify_session():
    from bundle_access import runtime

    return payments_api_service.verify_session(runtime, request)


@payments_bp.route('/api/stripe-webhook', methods=['POST'])
def stripe_webhook():
    from bundle_access import runtime

    return payments_api_service.stripe_webhook(runtime, request)
