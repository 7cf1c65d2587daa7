from fastapi.testclient import TestClient

from main import app

client = TestClient(app)


def test_service_index_lists_safewords():
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"services": {"safewords": "http://127.0.0.1:20010/docs"}}
