PROJECT = {
    "name": "Jazz Night",
    "clientName": "Blue Note Club",
    "startDate": "2026-08-01",
    "endDate": "2026-08-02",
    "location": "Main hall",
}


def _create_project(client, headers, **overrides):
    res = client.post("/api/projects", json={**PROJECT, **overrides}, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()["data"]


def test_end_date_must_follow_start(client, staff):
    res = client.post("/api/projects", json={**PROJECT, "endDate": "2026-08-01"}, headers=staff[1])
    assert res.status_code == 400
    assert res.json() == {"success": False, "error": "End date must be after start date"}


def test_customer_snapshot_fills_client_fields(client, manager):
    _, headers = manager
    customer = client.post(
        "/api/customers",
        json={
            "companyName": "Riverside Church",
            "email": "office@riverside.org",
            "phone": "555-0100",
            "address": "1 River Rd",
            "postalCode": "12345",
        },
        headers=headers,
    ).json()["data"]

    payload = {k: v for k, v in PROJECT.items() if k != "clientName"}
    project = _create_project(client, headers, **payload, customerId=customer["id"])
    assert project["clientName"] == "Riverside Church"
    assert project["clientEmail"] == "office@riverside.org"
    assert project["clientPhone"] == "555-0100"
    assert project["createdByName"] == "Test Manager"


def test_client_name_required_without_customer(client, staff):
    payload = {k: v for k, v in PROJECT.items() if k != "clientName"}
    res = client.post("/api/projects", json=payload, headers=staff[1])
    assert res.status_code == 400


def test_owner_or_manager_may_update(client, make_user):
    _, owner = make_user("user")
    _, other = make_user("user")
    project = _create_project(client, owner)

    res = client.put(f"/api/projects/{project['id']}", json={**PROJECT, "status": "active"}, headers=other)
    assert res.status_code == 403
    assert res.json()["error"] == "Not authorized to modify this project"

    res = client.put(f"/api/projects/{project['id']}", json={**PROJECT, "status": "active"}, headers=owner)
    assert res.json()["data"]["status"] == "active"


def test_allocation_endpoints(client, manager, make_equipment):
    _, headers = manager
    project = _create_project(client, headers)
    unit_id = str(make_equipment())

    res = client.post(f"/api/projects/{project['id']}/equipment", json={"equipmentId": unit_id, "quantity": 2}, headers=headers)
    assert res.status_code == 201, res.text
    assert res.json()["data"]["equipment"]["name"] == "Mackie SRM450"
    assert client.get(f"/api/equipment/{unit_id}", headers=headers).json()["data"]["isAvailable"] is False

    res = client.post(f"/api/projects/{project['id']}/equipment", json={"equipmentId": unit_id}, headers=headers)
    assert res.status_code == 400
    assert res.json()["error"] == "Equipment is already allocated to this project"

    other = _create_project(client, headers, name="Other gig")
    res = client.post(f"/api/projects/{other['id']}/equipment", json={"equipmentId": unit_id}, headers=headers)
    assert res.json()["error"] == "Equipment is not available for allocation"

    res = client.put(f"/api/projects/{project['id']}/equipment/{unit_id}", headers=headers)
    assert res.status_code == 200
    assert res.json()["data"]["returnedDate"] is not None
    assert client.get(f"/api/equipment/{unit_id}", headers=headers).json()["data"]["isAvailable"] is True

    res = client.put(f"/api/projects/{project['id']}/equipment/{unit_id}", headers=headers)
    assert res.status_code == 404

    rows = client.get(f"/api/projects/{project['id']}/equipment", headers=headers).json()["data"]
    assert len(rows) == 1
    detail = client.get(f"/api/projects/{project['id']}", headers=headers).json()["data"]
    assert len(detail["allocations"]) == 1


def test_delete_frees_equipment(client, manager, staff, make_equipment):
    _, headers = manager
    project = _create_project(client, headers)
    unit_id = str(make_equipment())
    client.post(f"/api/projects/{project['id']}/equipment", json={"equipmentId": unit_id}, headers=headers)

    assert client.delete(f"/api/projects/{project['id']}", headers=staff[1]).status_code == 403
    res = client.delete(f"/api/projects/{project['id']}", headers=headers)
    assert res.json() == {"success": True, "message": "Project deleted successfully"}
    assert client.get(f"/api/equipment/{unit_id}", headers=headers).json()["data"]["isAvailable"] is True
    assert client.get(f"/api/projects/{project['id']}", headers=headers).status_code == 404


def test_list_filters(client, staff):
    _, headers = staff
    _create_project(client, headers)
    _create_project(client, headers, name="Wedding", clientName="Smith family", status="active")

    res = client.get("/api/projects", params={"status": "active"}, headers=headers).json()
    assert [p["name"] for p in res["data"]] == ["Wedding"]
    res = client.get("/api/projects", params={"search": "blue note"}, headers=headers).json()
    assert [p["name"] for p in res["data"]] == ["Jazz Night"]
