from bundle_access.services import verification_service

from conftest import FakeStripe, paid_session, seed_bundle


def test_unpaid_session_is_rejected_without_writing(fake_db, fake_stripe):
    fake_stripe.sessions['cs_open'] = paid_session('cs_open', payment_status='unpaid')

    result = verification_service.verify_session(fake_db, fake_stripe, 'cs_open', 'buyer-1')

    assert result.ok is False
    assert result.reason == verification_service.REASON_UNPAID
    assert result.payment_status == 'unpaid'
    assert fake_db.docs == {}


def test_unknown_session_is_session_not_found(fake_db, fake_stripe):
    result = verification_service.verify_session(fake_db, fake_stripe, 'cs_missing', 'buyer-1')

    assert result.reason == verification_service.REASON_SESSION_NOT_FOUND
    assert result.message == 'Payment session not found'


def test_processor_outage_is_network_error(fake_db, fake_stripe):
    fake_stripe.retrieve_error = FakeStripe.StripeError('connection reset')

    result = verification_service.verify_session(fake_db, fake_stripe, 'cs_any', 'buyer-1')

    assert result.reason == verification_service.REASON_NETWORK_ERROR


def test_session_without_bundle_metadata_is_invalid(fake_db, fake_stripe):
    session = paid_session('cs_bad')
    session['metadata'] = {'buyerUid': 'buyer-1'}
    fake_stripe.sessions['cs_bad'] = session

    result = verification_service.verify_session(fake_db, fake_stripe, 'cs_bad', 'buyer-1')

    assert result.reason == verification_service.REASON_INVALID_SESSION
    assert fake_db.docs == {}


def test_session_of_another_buyer_is_forbidden(fake_db, fake_stripe):
    fake_stripe.sessions['cs_other'] = paid_session('cs_other', buyer_uid='someone-else')

    result = verification_service.verify_session(fake_db, fake_stripe, 'cs_other', 'buyer-1')

    assert result.reason == verification_service.REASON_FORBIDDEN
    assert fake_db.docs == {}


def test_paid_session_records_purchase_once(fake_db, fake_stripe):
    seed_bundle(fake_db, 'bundle-1', content_items=[])
    fake_stripe.sessions['cs_paid'] = paid_session('cs_paid', amount_total=1999)

    first = verification_service.verify_session(fake_db, fake_stripe, 'cs_paid', 'buyer-1')
    second = verification_service.verify_session(fake_db, fake_stripe, 'cs_paid', 'buyer-1')

    assert first.ok and second.ok
    assert first.already_processed is False
    assert second.already_processed is True
    assert list(fake_db.list('users/buyer-1/purchases')) == ['cs_paid']
    record = fake_db.get('users/buyer-1/purchases/cs_paid')
    assert record['productBoxId'] == 'bundle-1'
    assert record['status'] == 'completed'
    assert record['amount'] == 19.99
    bundle = fake_db.get('bundles/bundle-1')
    assert bundle['totalSales'] == 1


def test_sales_counter_failure_does_not_fail_verification(fake_db, fake_stripe):
    fake_stripe.sessions['cs_paid'] = paid_session('cs_paid', bundle_id='not-in-bundles')

    result = verification_service.verify_session(fake_db, fake_stripe, 'cs_paid', 'buyer-1')

    assert result.ok is True
    assert result.purchase.bundle_id == 'not-in-bundles'
