# remixtree/services/test_like_service.py
"""
좋아요 토글 장부 테스트
"""
import pytest

from remixtree.core.exceptions import NotFoundError
from remixtree.services.like_service import LikeLedger


@pytest.fixture
def ledger(fake_db):
    fake_db.collection('posts').document('post-1').set({'post_id': 'post-1', 'likes_count': 5})
    return LikeLedger(fake_db, 'posts', 'post_likes', 'post_id')


def test_toggle_twice_restores_count(ledger, fake_db):
    """likes_count 5 -> 좋아요 -> 6 -> 취소 -> 5"""
    first = ledger.toggle('post-1', 'user-1')
    assert first == {"liked": True, "likes_count": 6}
    assert fake_db.docs('post_likes')['user-1_post-1']['post_id'] == 'post-1'

    second = ledger.toggle('post-1', 'user-1')
    assert second == {"liked": False, "likes_count": 5}
    assert 'user-1_post-1' not in fake_db.docs('post_likes')


def test_one_like_per_user(ledger):
    ledger.toggle('post-1', 'user-1')
    ledger.toggle('post-1', 'user-2')

    assert ledger.has_liked('post-1', 'user-1')
    assert ledger.has_liked('post-1', 'user-2')
    assert ledger.toggle('post-1', 'user-1') == {"liked": False, "likes_count": 6}


def test_toggle_missing_subject(ledger, fake_db):
    with pytest.raises(NotFoundError):
        ledger.toggle('no-such-post', 'user-1')
    assert fake_db.docs('post_likes') == {}


def test_anonymous_user_never_liked(ledger):
    ledger.toggle('post-1', 'user-1')

    assert ledger.has_liked('post-1', None) is False
    assert ledger.liked_ids(None, ['post-1']) == set()


def test_liked_ids_across_chunks(fake_db):
    ledger = LikeLedger(fake_db, 'posts', 'post_likes', 'post_id')
    subject_ids = [f"post-{i}" for i in range(LikeLedger.CHUNK_SIZE + 5)]
    for subject_id in subject_ids:
        fake_db.collection('posts').document(subject_id).set({'post_id': subject_id, 'likes_count': 0})
    liked = {subject_ids[0], subject_ids[-1]}
    for subject_id in liked:
        ledger.toggle(subject_id, 'user-1')

    assert ledger.liked_ids('user-1', subject_ids) == liked


def test_like_refs_for_collects_every_users_like(ledger):
    ledger.toggle('post-1', 'user-1')
    ledger.toggle('post-1', 'user-2')

    refs = ledger.like_refs_for(['post-1'])

    assert sorted(ref.id for ref in refs) == ['user-1_post-1', 'user-2_post-1']
