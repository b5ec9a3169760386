SPEAKER = {
    "name": "QSC K12.2",
    "category": "Speakers",
    "brand": "QSC",
    "model": "K12.2",
    "serialNumber": "QSC-0001",
    "purchasePrice": "899.00",
    "conditionStatus": "excellent",
}


def _create(client, headers, **overrides):
    res = client.post("/api/equipment", json={**SPEAKER, **overrides}, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()["data"]


def test_create_requires_manager(client, staff, manager):
    _, user_headers = staff
    res = client.post("/api/equipment", json=SPEAKER, headers=user_headers)
    assert res.status_code == 403
    assert res.json()["error"] == "User role user is not authorized to access this route"

    data = _create(client, manager[1])
    assert data["isAvailable"] is True
    assert data["purchasePrice"] == "899.00"
    assert data["serialNumber"] == "QSC-0001"


def test_serial_number_is_unique(client, manager):
    _, headers = manager
    _create(client, headers)
    res = client.post("/api/equipment", json={**SPEAKER, "name": "Another"}, headers=headers)
    assert res.status_code == 400
    assert res.json()["error"] == "Equipment with this serial number already exists"
    # empty serials are stored as NULL and never collide
    _create(client, headers, serialNumber="")
    _create(client, headers, serialNumber="")


def test_update_cannot_touch_availability(client, manager):
    _, headers = manager
    unit = _create(client, headers)
    res = client.put(
        f"/api/equipment/{unit['id']}",
        json={**SPEAKER, "location": "Shelf B", "isAvailable": False},
        headers=headers,
    )
    assert res.status_code == 200
    assert res.json()["data"]["location"] == "Shelf B"
    assert res.json()["data"]["isAvailable"] is True


def test_filters_and_search(client, manager):
    _, headers = manager
    _create(client, headers)
    _create(client, headers, name="Shure SM58", category="Microphones", brand="Shure", model="SM58",
            serialNumber="SM58-1", conditionStatus="good", description="Dynamic vocal mic")

    res = client.get("/api/equipment", params={"category": "Microphones"}, headers=headers).json()
    assert [e["name"] for e in res["data"]] == ["Shure SM58"]

    res = client.get("/api/equipment", params={"search": "vocal"}, headers=headers).json()
    assert res["totalCount"] == 1

    res = client.get("/api/equipment", params={"condition": "excellent"}, headers=headers).json()
    assert [e["name"] for e in res["data"]] == ["QSC K12.2"]

    res = client.get("/api/equipment", params={"limit": 1, "page": 2}, headers=headers).json()
    assert res["count"] == 1
    assert res["pagination"] == {"page": 2, "limit": 1, "totalPages": 2}


def test_meta_endpoints(client, manager):
    _, headers = manager
    _create(client, headers)
    _create(client, headers, category="Mixers", serialNumber="MX-1", conditionStatus="repair")

    res = client.get("/api/equipment/meta/categories", headers=headers).json()
    assert res["data"] == ["Mixers", "Speakers"]

    stats = client.get("/api/equipment/meta/stats", headers=headers).json()["data"]
    assert stats["total"] == 2
    assert stats["available"] == 2
    assert stats["allocated"] == 0
    assert stats["excellent"] == 1
    assert stats["repair"] == 1


def test_delete_blocked_while_allocated(client, admin, manager):
    _, admin_headers = admin
    _, headers = manager
    unit = _create(client, headers)
    project = client.post(
        "/api/projects",
        json={"name": "Gala", "clientName": "Acme", "startDate": "2026-09-01", "endDate": "2026-09-02"},
        headers=headers,
    ).json()["data"]
    client.post(f"/api/projects/{project['id']}/equipment", json={"equipmentId": unit["id"]}, headers=headers)

    assert client.delete(f"/api/equipment/{unit['id']}", headers=headers).status_code == 403
    res = client.delete(f"/api/equipment/{unit['id']}", headers=admin_headers)
    assert res.status_code == 400
    assert res.json()["error"] == "Cannot delete equipment that is allocated to active projects"

    client.put(f"/api/projects/{project['id']}/equipment/{unit['id']}", headers=headers)
    res = client.delete(f"/api/equipment/{unit['id']}", headers=admin_headers)
    assert res.json() == {"success": True, "message": "Equipment deleted successfully"}
    assert client.get(f"/api/equipment/{unit['id']}", headers=headers).status_code == 404


def test_unknown_id_is_404(client, staff):
    res = client.get("/api/equipment/00000000-0000-0000-0000-000000000000", headers=staff[1])
    assert res.status_code == 404
    assert res.json() == {"success": False, "error": "Equipment not found"}
