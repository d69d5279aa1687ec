# conftest.py
"""
테스트 공용 픽스처.

서비스들은 Firestore 클라이언트를 생성자로 주입받으므로, 테스트에서는 실제 Firestore 대신
서비스가 사용하는 API 범위(collection/document/where/order_by/limit/offset/stream,
Increment, batch, transaction, get_all)만 구현한 메모리 저장소를 주입합니다.
"""
import copy
import uuid
from unittest.mock import MagicMock

import pytest
from firebase_admin import firestore
from flask_jwt_extended import create_access_token
from google.api_core.exceptions import Aborted, NotFound

from remixtree import create_app
from remixtree.api.comments.services import CommentService
from remixtree.api.posts.services import PostService


class FakeSnapshot:
    def __init__(self, reference, data):
        self.reference = reference
        self.id = reference.id
        self._data = copy.deepcopy(data)

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeDocumentReference:
    def __init__(self, store, collection_name, doc_id):
        self._store = store
        self._collection = collection_name
        self.id = doc_id

    @property
    def _docs(self):
        return self._store.setdefault(self._collection, {})

    def get(self, transaction=None):
        snapshot = FakeSnapshot(self, self._docs.get(self.id))
        if transaction is not None:
            transaction.record_read(self, snapshot.to_dict())
        return snapshot

    def set(self, data, merge=False):
        if merge and self.id in self._docs:
            self._docs[self.id].update(copy.deepcopy(data))
        else:
            self._docs[self.id] = copy.deepcopy(data)

    def update(self, data):
        if self.id not in self._docs:
            raise NotFound(f"No document to update: {self._collection}/{self.id}")
        doc = self._docs[self.id]
        for key, value in data.items():
            if isinstance(value, firestore.Increment):
                doc[key] = doc.get(key, 0) + value.value
            else:
                doc[key] = copy.deepcopy(value)

    def delete(self):
        self._docs.pop(self.id, None)


class FakeQuery:
    def __init__(self, collection, filters=None, orders=None, limit_count=None, offset_count=0):
        self._collection = collection
        self._filters = filters or []
        self._orders = orders or []
        self._limit = limit_count
        self._offset = offset_count

    def _copy(self, **changes):
        params = dict(filters=list(self._filters), orders=list(self._orders),
                      limit_count=self._limit, offset_count=self._offset)
        params.update(changes)
        return FakeQuery(self._collection, **params)

    def where(self, field, op, value):
        return self._copy(filters=self._filters + [(field, op, value)])

    def order_by(self, field, direction='ASCENDING'):
        return self._copy(orders=self._orders + [(field, direction)])

    def limit(self, count):
        return self._copy(limit_count=count)

    def offset(self, count):
        return self._copy(offset_count=count)

    @staticmethod
    def _matches(data, field, op, value):
        actual = data.get(field)
        if op == '==':
            return actual == value
        if op == 'in':
            return actual in value
        raise NotImplementedError(op)

    def stream(self):
        docs = self._collection._docs
        items = [(doc_id, data) for doc_id, data in docs.items()
                 if all(self._matches(data, f, op, v) for f, op, v in self._filters)]
        for field, direction in reversed(self._orders):
            items.sort(key=lambda item: item[1].get(field), reverse=(direction == firestore.Query.DESCENDING))
        items = items[self._offset:]
        if self._limit is not None:
            items = items[:self._limit]
        for doc_id, _ in items:
            yield self._collection.document(doc_id).get()

    def get(self):
        return list(self.stream())


class FakeCollection(FakeQuery):
    def __init__(self, store, name):
        self._store = store
        self.name = name
        super().__init__(self)

    @property
    def _docs(self):
        return self._store.setdefault(self.name, {})

    def document(self, doc_id=None):
        return FakeDocumentReference(self._store, self.name, doc_id or uuid.uuid4().hex)


class FakeBatch:
    def __init__(self):
        self._ops = []
        self.committed = False

    def set(self, ref, data):
        self._ops.append(lambda: ref.set(data))

    def update(self, ref, data):
        self._ops.append(lambda: ref.update(data))

    def delete(self, ref):
        self._ops.append(ref.delete)

    def commit(self):
        for op in self._ops:
            op()
        self.committed = True


class FakeTransaction(FakeBatch):
    """
    firestore.transactional 데코레이터가 호출하는 Transaction 내부 API(_begin/_commit/_rollback/_clean_up)의
    메모리 구현. 낙관적 동시성 제어: 트랜잭션 안에서 읽은 문서가 커밋 전에 바뀌었으면 Aborted를 던지고,
    데코레이터가 함수 전체를 다시 실행합니다.
    """

    def __init__(self, db, max_attempts=5):
        super().__init__()
        self._db = db
        self._max_attempts = max_attempts
        self._read_only = False
        self._id = None
        self._reads = []

    @property
    def in_progress(self):
        return self._id is not None

    def record_read(self, ref, data):
        self._reads.append((ref, data))

    def _clean_up(self):
        self._ops = []
        self._reads = []
        self._id = None

    def _begin(self, retry_id=None):
        self._id = uuid.uuid4().bytes

    def _rollback(self):
        self._clean_up()

    def _commit(self):
        self._db.run_before_commit_hook()
        for ref, data in self._reads:
            if ref._docs.get(ref.id) != data:
                self._clean_up()
                raise Aborted(f"Document changed during transaction: {ref.id}")
        self.commit()
        self._clean_up()
        return []


class FakeFirestore:
    """서비스가 사용하는 Firestore 클라이언트 API의 메모리 구현"""

    def __init__(self):
        self.store = {}
        self._before_commit_hooks = []

    def collection(self, name):
        return FakeCollection(self.store, name)

    def batch(self):
        return FakeBatch()

    def transaction(self):
        return FakeTransaction(self)

    def before_next_commit(self, hook):
        """다음 트랜잭션 커밋 직전에 hook을 한 번 실행합니다. (읽기와 쓰기 사이에 끼어드는 동시 요청 재현용)"""
        self._before_commit_hooks.append(hook)

    def run_before_commit_hook(self):
        if self._before_commit_hooks:
            self._before_commit_hooks.pop(0)()

    def get_all(self, references):
        for ref in references:
            yield ref.get()

    def docs(self, collection_name):
        return self.store.get(collection_name, {})


@pytest.fixture
def fake_db():
    return FakeFirestore()


@pytest.fixture
def fal_provider():
    provider = MagicMock()
    provider.submit_image_edit.side_effect = (
        lambda prompt, source_image_url, correlation_id: {"job_id": f"fal-{correlation_id}"}
    )
    provider.verify_webhook_token.return_value = True
    return provider


@pytest.fixture
def post_service(fake_db):
    return PostService(db=fake_db)


@pytest.fixture
def comment_service(fake_db, post_service, fal_provider):
    return CommentService(post_service=post_service, fal_service=fal_provider, db=fake_db,
                          generation_timeout_seconds=600)


@pytest.fixture
def post(post_service):
    return post_service.create_post("owner-1", "원본 사진", "https://cdn.example.com/root.png")


@pytest.fixture
def app(fake_db, fal_provider):
    return create_app('testing', db=fake_db, fal_service=fal_provider)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(app):
    def _make(user_id="user-1"):
        with app.app_context():
            token = create_access_token(identity=user_id)
        return {"Authorization": f"Bearer {token}"}
    return _make
