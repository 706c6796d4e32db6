import base64
import io
import json

from portfolio_api.config import Settings
from portfolio_api.errors import MailerError
from portfolio_api.server import create_app


def test_health(client):
    response = client.get('/')
    assert response.status_code == 200
    assert 'running' in response.get_data(as_text=True)


def test_status(client, settings):
    data = client.get('/api/status').get_json()
    assert data['status'] == 'ok'
    assert data['data_dir'] == str(settings.data_dir)


def test_list_starts_empty(client):
    assert client.get('/posts').get_json() == []
    assert client.get('/projects').get_json() == []


def test_create_project_json(client):
    response = client.post('/projects', json={'title': 'Portfolio Site', 'link': 'https://x.io'})

    assert response.status_code == 201
    project = response.get_json()
    assert project['title'] == 'Portfolio Site'
    assert project['link'] == 'https://x.io'
    assert project['media'] is None
    assert client.get('/projects').get_json() == [project]


def test_create_post_requires_content(client, settings):
    response = client.post('/posts', json={'title': 'T'})

    assert response.status_code == 400
    assert response.get_json() == {'success': False, 'error': 'Content required'}
    assert not (settings.data_dir / 'posts.json').exists()


def test_create_post_with_upload(client, settings):
    response = client.post('/posts', data={
        'title': 'With image',
        'content': 'Body',
        'media': (io.BytesIO(b'image-bytes'), 'my photo.png'),
    }, content_type='multipart/form-data')

    assert response.status_code == 201
    post = response.get_json()
    assert post['media'].startswith('/uploads/')
    assert post['media'].endswith('-my_photo.png')

    media = client.get(post['media'])
    assert media.status_code == 200
    assert media.data == b'image-bytes'
    media.close()


def test_create_post_with_inline_image(client, settings):
    payload = 'data:image/png;base64,' + base64.b64encode(b'inline-png').decode('ascii')

    response = client.post('/posts', json={'title': 'T', 'content': 'C', 'media': payload})

    post = response.get_json()
    assert response.status_code == 201
    name = post['media'].rsplit('/', 1)[1]
    assert (settings.upload_dir / name).read_bytes() == b'inline-png'


def test_rejected_upload_is_not_kept(client, settings):
    response = client.post('/posts', data={
        'title': 'No content',
        'media': (io.BytesIO(b'image-bytes'), 'photo.png'),
    }, content_type='multipart/form-data')

    assert response.status_code == 400
    assert list(settings.upload_dir.iterdir()) == []


def test_get_update_delete_post(client):
    post = client.post('/posts', json={'title': 'T', 'content': 'C'}).get_json()

    assert client.get(f"/posts/{post['id']}").get_json() == post

    response = client.put(f"/posts/{post['id']}", json={'content': 'Edited', 'blogLink': 'https://b.io'})
    assert response.status_code == 200
    updated = response.get_json()
    assert updated['content'] == 'Edited'
    assert updated['title'] == 'T'
    assert updated['blogLink'] == 'https://b.io'
    assert 'updatedAt' in updated

    response = client.delete(f"/posts/{post['id']}")
    assert response.status_code == 200
    assert response.get_json()['id'] == post['id']
    assert client.get('/posts').get_json() == []


def test_unknown_ids_are_404(client):
    assert client.get('/posts/1').status_code == 404
    assert client.put('/posts/1', json={'title': 'X'}).status_code == 404
    response = client.delete('/projects/1')
    assert response.status_code == 404
    assert response.get_json()['success'] is False


def test_delete_removes_uploaded_media(client, settings):
    project = client.post('/projects', data={
        'title': 'Gallery',
        'media': (io.BytesIO(b'x'), 'shot.png'),
    }, content_type='multipart/form-data').get_json()
    name = project['media'].rsplit('/', 1)[1]
    assert (settings.upload_dir / name).exists()

    client.delete(f"/projects/{project['id']}")

    assert not (settings.upload_dir / name).exists()


def test_corrupt_backing_file_is_500(client, settings):
    (settings.data_dir / 'posts.json').write_text('oops', encoding='utf-8')

    response = client.get('/posts')

    assert response.status_code == 500
    assert response.get_json()['success'] is False


def test_body_size_limit(tmp_path):
    app = create_app(Settings(data_dir=str(tmp_path / 'data'), max_content_length=100))
    client = app.test_client()

    response = client.post('/posts', data={
        'title': 'T',
        'content': 'C',
        'media': (io.BytesIO(b'x' * 1000), 'big.png'),
    }, content_type='multipart/form-data')

    assert response.status_code == 413


def test_send_requires_all_fields(client):
    response = client.post('/send', json={'name': 'Ann', 'email': 'ann@example.com'})
    assert response.status_code == 400
    assert response.get_json()['error'] == 'All fields are required'


def test_send_relays_message(client, app, monkeypatch):
    sent = []
    monkeypatch.setattr(app.extensions['mailer'], 'send', lambda *args: sent.append(args) or {})

    response = client.post('/send', json={'name': 'Ann', 'email': 'ann@example.com', 'message': 'Hi'})

    assert response.status_code == 200
    assert response.get_json()['message'] == 'Email sent successfully'
    assert sent == [('Ann', 'ann@example.com', 'Hi')]


def test_send_reports_smtp_failure(client, app, monkeypatch):
    def fail(*args):
        raise MailerError('Connection refused')

    monkeypatch.setattr(app.extensions['mailer'], 'send', fail)

    response = client.post('/send', data={'name': 'Ann', 'email': 'ann@example.com', 'message': 'Hi'})

    assert response.status_code == 500
    assert response.get_json()['error'] == 'Connection refused'


def test_records_are_persisted_as_json(client, settings):
    client.post('/projects', json={'title': 'A'})
    client.post('/projects', json={'title': 'B'})

    saved = json.loads((settings.data_dir / 'projects.json').read_text(encoding='utf-8'))
    assert [p['title'] for p in saved] == ['B', 'A']


def test_create_rejects_non_string_json_fields(client, settings):
    response = client.post('/posts', json={'title': 123, 'content': {'x': 1}, 'type': ['a']})

    assert response.status_code == 400
    assert response.get_json() == {'success': False, 'error': 'Title and content and type must be strings'}
    assert not (settings.data_dir / 'posts.json').exists()


def test_same_name_uploads_are_both_kept(client, settings, monkeypatch):
    monkeypatch.setattr('portfolio_api.media.now_millis', lambda: 42)

    first = client.post('/projects', data={
        'title': 'A', 'media': (io.BytesIO(b'AAA'), 'shot.png'),
    }, content_type='multipart/form-data').get_json()
    second = client.post('/projects', data={
        'title': 'B', 'media': (io.BytesIO(b'BBB'), 'shot.png'),
    }, content_type='multipart/form-data').get_json()

    client.delete(f"/projects/{first['id']}")

    media = client.get(second['media'])
    assert media.status_code == 200
    assert media.data == b'BBB'
    media.close()
