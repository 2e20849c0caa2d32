import copy
import itertools
from collections import Counter
from types import SimpleNamespace

import pytest
from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1.transforms import Increment

from bundle_access import create_app, runtime
from bundle_access.config import AppConfig
from bundle_access.repositories import unified_purchases_repo


def _collection_key(path):
    """'users/u1/purchases' -> 'users/purchases'."""
    return '/'.join(path[::2])


class FakeSnapshot:
    def __init__(self, reference, data):
        self.reference = reference
        self.id = reference.id
        self._data = copy.deepcopy(data) if data is not None else None
        self.exists = data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeWatch:
    def __init__(self, doc_ref):
        self.doc_ref = doc_ref
        self.unsubscribed = False

    def unsubscribe(self):
        self.unsubscribed = True


class FakeDocRef:
    def __init__(self, db, path):
        self._db = db
        self.path = tuple(path)
        self.id = self.path[-1]

    @property
    def parent(self):
        return FakeCollection(self._db, self.path[:-1])

    def collection(self, name):
        return FakeCollection(self._db, self.path + (name,))

    def get(self, transaction=None):
        self._db.record_read(self.path[:-1])
        return FakeSnapshot(self, self._db.docs.get(self.path))

    def set(self, data, merge=False):
        self._db.record_write(self.path[:-1])
        if merge and self.path in self._db.docs:
            self._db.docs[self.path] = self._db.apply_updates(self._db.docs[self.path], data)
        else:
            self._db.docs[self.path] = copy.deepcopy(data)

    def create(self, data):
        self._db.record_write(self.path[:-1])
        if self.path in self._db.docs:
            raise google_exceptions.AlreadyExists(f"Document already exists: {'/'.join(self.path)}")
        self._db.docs[self.path] = copy.deepcopy(data)

    def update(self, updates):
        self._db.record_write(self.path[:-1])
        if self.path not in self._db.docs:
            raise google_exceptions.NotFound(f"No document to update: {'/'.join(self.path)}")
        self._db.docs[self.path] = self._db.apply_updates(self._db.docs[self.path], updates)

    def delete(self):
        self._db.record_write(self.path[:-1])
        self._db.docs.pop(self.path, None)

    def on_snapshot(self, callback):
        watch = FakeWatch(self)
        self._db.watches.append(watch)
        callback([FakeSnapshot(self, self._db.docs.get(self.path))], [], None)
        return watch


class FakeTransaction:
    """Applies writes immediately; pair with ``inline_transactional``."""

    def __init__(self, db):
        self._db = db

    def set(self, doc_ref, data, merge=False):
        doc_ref.set(data, merge=merge)


def inline_transactional(fn):
    return fn


class FakeQuery:
    def __init__(self, db, path, filters=(), limit_count=None, group_id=None):
        self._db = db
        self._path = tuple(path)
        self._filters = tuple(filters)
        self._limit = limit_count
        self._group_id = group_id

    def where(self, field_path, op_string, value):
        # Positional only; keyword ``filter=`` raises TypeError like an old SDK.
        return FakeQuery(self._db, self._path, self._filters + ((field_path, op_string, value),), self._limit, self._group_id)

    def limit(self, count):
        return FakeQuery(self._db, self._path, self._filters, count, self._group_id)

    def _matches(self, data):
        for field_path, op_string, value in self._filters:
            if op_string != '==':
                raise NotImplementedError(op_string)
            if data.get(field_path) != value:
                return False
        return True

    def stream(self):
        if self._group_id is not None:
            self._db.record_read(('*', self._group_id))
            paths = [path for path in self._db.docs if len(path) >= 2 and path[-2] == self._group_id]
        else:
            self._db.record_read(self._path)
            paths = [path for path in self._db.docs if path[:-1] == self._path]
        results = []
        for path in sorted(paths):
            data = self._db.docs[path]
            if self._matches(data):
                results.append(FakeSnapshot(FakeDocRef(self._db, path), data))
        if self._limit is not None:
            results = results[:self._limit]
        return iter(results)


class FakeCollection(FakeQuery):
    def __init__(self, db, path):
        super().__init__(db, path)
        self.id = path[-1]

    @property
    def parent(self):
        if len(self._path) < 2:
            return None
        return FakeDocRef(self._db, self._path[:-1])

    def document(self, doc_id):
        return FakeDocRef(self._db, self._path + (doc_id,))


class FakeFirestore:
    """In-memory Firestore double.

    ``reads`` counts get/stream calls per collection key ('bundles',
    'users/purchases', ...). Keys listed in ``failing`` raise ServiceUnavailable.
    """

    def __init__(self):
        self.docs = {}
        self.reads = Counter()
        self.writes = Counter()
        self.failing = set()
        self.watches = []

    def collection(self, name):
        return FakeCollection(self, (name,))

    def collection_group(self, group_id):
        return FakeQuery(self, (), group_id=group_id)

    def transaction(self):
        return FakeTransaction(self)

    def seed(self, path, data):
        self.docs[tuple(path.split('/'))] = copy.deepcopy(data)

    def get(self, path):
        return self.docs.get(tuple(path.split('/')))

    def list(self, collection_path):
        prefix = tuple(collection_path.split('/'))
        return {path[-1]: data for path, data in self.docs.items() if path[:-1] == prefix}

    def record_read(self, collection_path):
        key = _collection_key(collection_path) if collection_path[0] != '*' else f"*/{collection_path[1]}"
        if key in self.failing:
            raise google_exceptions.ServiceUnavailable(f"{key} unavailable")
        self.reads[key] += 1

    def record_write(self, collection_path):
        key = _collection_key(collection_path)
        if key in self.failing:
            raise google_exceptions.ServiceUnavailable(f"{key} unavailable")
        self.writes[key] += 1

    @staticmethod
    def apply_updates(existing, updates):
        merged = copy.deepcopy(existing)
        for key, value in updates.items():
            if isinstance(value, Increment):
                merged[key] = (merged.get(key) or 0) + value.value
            else:
                merged[key] = copy.deepcopy(value)
        return merged


class FakeInvalidRequestError(Exception):
    pass


class FakeStripeError(Exception):
    pass


class FakeSignatureVerificationError(Exception):
    pass


class FakeStripe:
    """Stand-in for the ``stripe`` module as used through ``app_ctx.stripe``."""

    StripeError = FakeStripeError
    InvalidRequestError = type('InvalidRequestError', (FakeStripeError,), {})
    SignatureVerificationError = FakeSignatureVerificationError

    def __init__(self):
        self.sessions = {}
        self.created = []
        self.retrieve_error = None
        self.webhook_event = None
        fake = self
        _ids = itertools.count(1)

        class _Session:
            @staticmethod
            def retrieve(session_id):
                if fake.retrieve_error is not None:
                    raise fake.retrieve_error
                if session_id not in fake.sessions:
                    raise FakeStripe.InvalidRequestError(f"No such checkout.session: {session_id}")
                return fake.sessions[session_id]

            @staticmethod
            def create(**kwargs):
                fake.created.append(kwargs)
                session_id = f"cs_test_{next(_ids)}"
                return SimpleNamespace(id=session_id, url=f"https://checkout.stripe.test/{session_id}")

        class _Webhook:
            @staticmethod
            def construct_event(payload, sig_header, secret):
                if sig_header != 'valid-signature':
                    raise FakeSignatureVerificationError('bad signature')
                return fake.webhook_event

        self.checkout = SimpleNamespace(Session=_Session)
        self.Webhook = _Webhook


def paid_session(session_id='cs_paid', bundle_id='bundle-1', buyer_uid='buyer-1', amount_total=1999, **extra):
    session = {
        'id': session_id,
        'payment_status': 'paid',
        'amount_total': amount_total,
        'currency': 'usd',
        'payment_intent': f"pi_{session_id}",
        'metadata': {
            'bundleId': bundle_id,
            'productBoxId': bundle_id,
            'buyerUid': buyer_uid,
            'creatorUid': 'creator-1',
            'bundleTitle': 'Starter Bundle',
        },
    }
    session.update(extra)
    return session


def seed_upload(db, item_id, url, mime_type='video/mp4', **extra):
    data = {'title': f"Item {item_id}", 'fileUrl': url, 'mimeType': mime_type, 'fileSize': 2048}
    data.update(extra)
    db.seed(f"uploads/{item_id}", data)


def seed_bundle(db, bundle_id='bundle-1', content_items=None, collection='bundles', **extra):
    data = {
        'title': 'Starter Bundle',
        'description': 'Everything to get going',
        'price': 19.99,
        'creatorId': 'creator-1',
        'active': True,
    }
    if content_items is not None:
        data['contentItems'] = list(content_items)
    data.update(extra)
    db.seed(f"{collection}/{bundle_id}", data)


def seed_legacy_purchase(db, uid='buyer-1', purchase_id='cs_legacy', bundle_id='bundle-1', **extra):
    data = {
        'productBoxId': bundle_id,
        'sessionId': purchase_id,
        'status': 'completed',
        'amount': 19.99,
        'type': 'product_box',
    }
    data.update(extra)
    db.seed(f"users/{uid}/purchases/{purchase_id}", data)


@pytest.fixture(autouse=True)
def inline_transactions(monkeypatch):
    monkeypatch.setattr(unified_purchases_repo, 'firestore', SimpleNamespace(transactional=inline_transactional))


@pytest.fixture()
def fake_db():
    return FakeFirestore()


@pytest.fixture()
def fake_stripe():
    return FakeStripe()


@pytest.fixture()
def test_config():
    return AppConfig(
        flask_secret_key='test-secret',
        sentry_dsn='',
        stripe_secret_key='',
        stripe_webhook_secret='whsec_test',
        public_base_url='https://shop.example.com',
        debug_endpoints_enabled=False,
        cors_allowed_origins=frozenset({'https://app.example.com'}),
        rate_limit_firestore_enabled=False,
    )


@pytest.fixture()
def app(monkeypatch, fake_db, fake_stripe, test_config):
    monkeypatch.setattr(runtime, 'config', test_config)
    monkeypatch.setattr(runtime, 'db', fake_db)
    flask_app = create_app(config=test_config)
    flask_app.config['TESTING'] = True
    monkeypatch.setattr(runtime, 'stripe', fake_stripe)
    monkeypatch.setattr(runtime, 'check_rate_limit', lambda **_kwargs: (True, 0))
    return flask_app


@pytest.fixture()
def client(app):
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture()
def login(monkeypatch):
    def _login(uid='buyer-1', email='buyer@example.com'):
        monkeypatch.setattr(
            runtime,
            'verify_firebase_token',
            lambda _request, allow_body_token=False: {'uid': uid, 'email': email},
        )

    return _login
