CUSTOMER = {
    "companyName": "Riverside Church",
    "contactPerson": "Pat Doe",
    "email": "office@riverside.org",
    "phone": "555-0100",
    "address": "1 River Rd",
    "city": "Springfield",
    "postalCode": "12345",
}


def test_customer_lifecycle(client, admin, manager, staff):
    _, headers = manager
    assert client.post("/api/customers", json=CUSTOMER, headers=staff[1]).status_code == 403

    res = client.post("/api/customers", json=CUSTOMER, headers=headers)
    assert res.status_code == 201, res.text
    customer = res.json()["data"]
    assert customer["isActive"] is True

    res = client.post("/api/customers", json={**CUSTOMER, "companyName": "Clone"}, headers=headers)
    assert res.status_code == 400
    assert res.json()["error"] == "Customer with this email already exists"

    res = client.put(f"/api/customers/{customer['id']}", json={**CUSTOMER, "isActive": False}, headers=headers)
    assert res.json()["data"]["isActive"] is False

    assert client.delete(f"/api/customers/{customer['id']}", headers=headers).status_code == 403
    res = client.delete(f"/api/customers/{customer['id']}", headers=admin[1])
    assert res.json()["message"] == "Customer deleted successfully"


def test_required_fields(client, manager):
    res = client.post("/api/customers", json={**CUSTOMER, "postalCode": ""}, headers=manager[1])
    assert res.status_code == 400
    res = client.post("/api/customers", json={**CUSTOMER, "email": "not-an-email"}, headers=manager[1])
    assert res.status_code == 400


def test_active_filter_and_search(client, manager):
    _, headers = manager
    client.post("/api/customers", json=CUSTOMER, headers=headers)
    client.post(
        "/api/customers",
        json={**CUSTOMER, "companyName": "Harbor Hotel", "email": "events@harbor.org", "isActive": False},
        headers=headers,
    )

    res = client.get("/api/customers", params={"active": "true"}, headers=headers).json()
    assert [c["companyName"] for c in res["data"]] == ["Riverside Church"]
    res = client.get("/api/customers", params={"search": "harbor"}, headers=headers).json()
    assert res["totalCount"] == 1
