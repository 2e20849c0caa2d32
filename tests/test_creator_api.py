from conftest import seed_bundle, seed_upload


def test_list_returns_only_own_bundles(client, login, fake_db):
    login('creator-1')
    seed_bundle(fake_db, 'B1')
    seed_bundle(fake_db, 'B2', creatorId='creator-2')

    response = client.get('/api/creator/bundles')

    assert response.status_code == 200
    assert [bundle['id'] for bundle in response.get_json()['bundles']] == ['B1']


def test_get_missing_bundle_is_404(client, login):
    login('creator-1')

    response = client.get('/api/creator/bundles/nope')

    assert response.status_code == 404


def test_non_owner_is_forbidden(client, login, fake_db):
    login('intruder')
    seed_bundle(fake_db, 'B1')

    responses = [
        client.get('/api/creator/bundles/B1'),
        client.put('/api/creator/bundles/B1', json={'title': 'Mine now'}),
        client.delete('/api/creator/bundles/B1'),
        client.post('/api/creator/bundles/B1/add-content', json={'contentIds': ['x']}),
    ]

    assert [response.status_code for response in responses] == [403, 403, 403, 403]
    assert fake_db.get('bundles/B1')['title'] == 'Starter Bundle'


def test_put_only_applies_whitelisted_fields(client, login, fake_db):
    login('creator-1')
    seed_bundle(fake_db, 'B1')

    response = client.put('/api/creator/bundles/B1', json={'title': '  Renamed  ', 'price': 25, 'creatorId': 'someone'})

    assert response.status_code == 200
    stored = fake_db.get('bundles/B1')
    assert stored['title'] == 'Renamed'
    assert stored['price'] == 25
    assert stored['creatorId'] == 'creator-1'
    assert response.get_json()['bundle']['title'] == 'Renamed'


def test_put_rejects_invalid_price(client, login, fake_db):
    login('creator-1')
    seed_bundle(fake_db, 'B1')

    response = client.put('/api/creator/bundles/B1', json={'price': -5})

    assert response.status_code == 400
    assert fake_db.get('bundles/B1')['price'] == 19.99


def test_patch_rejects_protected_fields(client, login, fake_db):
    login('creator-1')
    seed_bundle(fake_db, 'B1')

    rejected = client.patch('/api/creator/bundles/B1', json={'creatorId': 'someone', 'title': 'x'})
    accepted = client.patch('/api/creator/bundles/B1', json={'tags': ['video'], 'title': 'Patched'})

    assert rejected.status_code == 400
    assert accepted.status_code == 200
    stored = fake_db.get('bundles/B1')
    assert stored['tags'] == ['video']
    assert stored['title'] == 'Patched'


def test_delete_deactivates_by_default(client, login, fake_db):
    login('creator-1')
    seed_bundle(fake_db, 'B1')

    response = client.delete('/api/creator/bundles/B1')

    assert response.status_code == 200
    assert response.get_json()['deleted'] is False
    assert fake_db.get('bundles/B1')['active'] is False


def test_hard_delete_removes_bundle_and_content_rows(client, login, fake_db):
    login('creator-1')
    seed_bundle(fake_db, 'B1')
    fake_db.seed('productBoxContent/r1', {'productBoxId': 'B1', 'fileUrl': 'https://cdn.example.com/r1.mp4'})
    fake_db.seed('productBoxContent/r2', {'productBoxId': 'B1', 'fileUrl': 'https://cdn.example.com/r2.mp4'})
    fake_db.seed('productBoxContent/keep', {'productBoxId': 'B2', 'fileUrl': 'https://cdn.example.com/k.mp4'})
    fake_db.seed('users/buyer-1/purchases/cs_1', {'productBoxId': 'B1', 'status': 'completed'})

    response = client.delete('/api/creator/bundles/B1?hard=1')

    assert response.status_code == 200
    assert response.get_json()['contentRowsDeleted'] == 2
    assert fake_db.get('bundles/B1') is None
    assert list(fake_db.list('productBoxContent')) == ['keep']
    assert fake_db.get('users/buyer-1/purchases/cs_1') is not None


def test_add_and_remove_content(client, login, fake_db):
    login('creator-1')
    seed_upload(fake_db, 'c1', 'https://cdn.example.com/c1.mp4')
    seed_upload(fake_db, 'c2', 'https://cdn.example.com/c2.mp4')
    seed_bundle(fake_db, 'B1', content_items=['c1'])

    added = client.post('/api/creator/bundles/B1/add-content', json={'contentIds': ['c1', 'c2']})
    missing = client.post('/api/creator/bundles/B1/add-content', json={'contentIds': ['ghost']})
    removed = client.post('/api/creator/bundles/B1/remove-content', json={'contentIds': ['c1']})

    assert added.status_code == 200
    assert added.get_json()['added'] == 1
    assert missing.status_code == 404
    assert missing.get_json()['missing'] == ['ghost']
    assert removed.get_json()['removed'] == 1
    assert fake_db.get('bundles/B1')['contentItems'] == ['c2']


def test_add_content_requires_id_list(client, login, fake_db):
    login('creator-1')
    seed_bundle(fake_db, 'B1', content_items=[])

    response = client.post('/api/creator/bundles/B1/add-content', json={'contentIds': 'c1'})

    assert response.status_code == 400
