"""
Integration Tests for the Full Library Flow
Register, submit, moderate, browse and search through the HTTP API only.
"""
import pytest
from httpx import AsyncClient, Response
from faker import Faker

fake = Faker()

PDF = b"%PDF-1.7\n%\xe2\xe3\xcf\xd3\n1 0 obj\n<<>>\nendobj\n%%EOF\n"


async def register(client: AsyncClient) -> dict:
    response = await client.post('/api/v1/auth/register', json={
        'email': fake.email(),
        'password': 'securePassword123!',
        'name': fake.name(),
    })
    assert response.status_code == 201
    return {'Authorization': f'Bearer {response.json()["access_token"]}'}


async def submit(client: AsyncClient, headers: dict, **fields) -> Response:
    data = {
        'title': 'Operating Systems Notes',
        'description': 'Scheduling and memory',
        'type': 'Notes',
        'category': 'Academic',
        'subject': 'Computer Science',
        'semester': 'Semester 4',
        'tags': 'os, scheduling',
    }
    data.update(fields)
    return await client.post(
        '/api/v1/materials',
        data=data,
        files={'file': ('os-notes.pdf', PDF, 'application/pdf')},
        headers=headers,
    )


class TestMaterialJourney:
    """Test a material from upload to removal"""

    async def test_submit_moderate_browse_search(self, client: AsyncClient, admin_auth_headers, backend):
        reader = await register(client)

        submitted = await submit(client, reader)
        assert submitted.status_code == 201
        material = submitted.json()['material']

        # Pending: only in the moderation queue
        academic = await client.get('/api/v1/catalog/academic')
        queue = await client.get('/api/v1/admin/materials/pending', headers=admin_auth_headers)
        assert academic.json()['items'] == []
        assert [m['id'] for m in queue.json()['items']] == [material['id']]

        approved = await client.post(f'/api/v1/admin/materials/{material["id"]}/approve',
                                     headers=admin_auth_headers)
        assert approved.status_code == 200

        academic = await client.get('/api/v1/catalog/academic',
                                    params={'subject': 'Computer Science', 'semester': 'Semester 4'})
        search = await client.get('/api/v1/catalog/search', params={'q': 'SCHEDULING'})
        viewer = await client.get(f'/api/v1/materials/{material["id"]}', headers=reader)
        assert [m['id'] for m in academic.json()['items']] == [material['id']]
        assert [m['id'] for m in search.json()['items']] == [material['id']]
        assert viewer.json()['status'] == 'published'

        served = await client.get(material['file_url'].replace('http://test', ''))
        assert served.content == PDF

        deleted = await client.delete(f'/api/v1/admin/materials/{material["id"]}', headers=admin_auth_headers)
        assert deleted.status_code == 200

        viewer = await client.get(f'/api/v1/materials/{material["id"]}', headers=reader)
        approve_again = await client.post(f'/api/v1/admin/materials/{material["id"]}/approve',
                                          headers=admin_auth_headers)
        search = await client.get('/api/v1/catalog/search', params={'q': 'scheduling'})
        assert viewer.status_code == 404
        assert approve_again.status_code == 404
        assert search.json()['items'] == []
        assert list((backend.object_store.root / 'materials').rglob('*.pdf')) == []

    async def test_invalid_academic_submission_leaves_nothing(self, client: AsyncClient, admin_auth_headers,
                                                              backend):
        reader = await register(client)

        response = await submit(client, reader, subject='')

        assert response.status_code == 400
        queue = await client.get('/api/v1/admin/materials/pending', headers=admin_auth_headers)
        assert queue.json()['total'] == 0
        assert list(backend.object_store.root.rglob('*.pdf')) == []

    async def test_readers_cannot_moderate(self, client: AsyncClient):
        reader = await register(client)
        submitted = await submit(client, reader, category='General', type='Book', subject='', semester='')
        material_id = submitted.json()['material']['id']

        response = await client.post(f'/api/v1/admin/materials/{material_id}/approve', headers=reader)

        assert response.status_code == 403
        catalog = await client.get('/api/v1/catalog/general')
        assert catalog.json()['total'] == 0


class TestSeededLibrary:
    """Test a freshly seeded library"""

    async def test_seeded_catalog_is_browsable(self, client: AsyncClient, admin_auth_headers):
        await client.post('/api/v1/admin/seed', headers=admin_auth_headers)

        general = await client.get('/api/v1/catalog/general')
        academic = await client.get('/api/v1/catalog/academic')
        search = await client.get('/api/v1/catalog/search', params={'q': 'algorithms'})

        assert general.json()['total'] > 0
        assert all(m['approved'] for m in general.json()['items'])
        assert all(m['subject'] and m['semester'] for m in academic.json()['items'])
        assert any(m['title'] == 'Introduction to Algorithms' for m in search.json()['items'])
