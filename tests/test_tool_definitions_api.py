TOOLS = [
    {
        "name": "send_email",
        "display_name": "Send Email",
        "description": "Send an email via the mail integration",
        "capability_name": "messaging",
        "input_schema": {"type": "object", "properties": {"to": {"type": "string"}}},
        "action_name": "email.send",
    },
    {
        "name": "create_contact",
        "display_name": "Create Contact",
        "description": "Add a person to the CRM",
        "capability_name": "crm",
        "input_schema": {"type": "object"},
        "action_name": "contact.create",
    },
    {
        "name": "add_note",
        "display_name": "Add Note",
        "description": "Attach a note to a contact",
        "capability_name": "crm",
        "input_schema": {"type": "object"},
        "action_name": "note.create",
    },
]


def seed(client, headers):
    ids = {}
    for tool in TOOLS:
        response = client.post("/api/v1/tool-definitions", json=tool, headers=headers)
        assert response.status_code == 201, response.text
        ids[tool["name"]] = response.json()["id"]
    return ids


def names(response):
    return [t["name"] for t in response.json()]


def test_catalogue_ordering_search_and_filters(client, admin_headers, viewer_headers):
    ids = seed(client, admin_headers)

    everything = client.get("/api/v1/tool-definitions", headers=viewer_headers)
    assert names(everything) == ["add_note", "create_contact", "send_email"]

    assert names(client.get("/api/v1/tool-definitions", params={"q": "CONTACT"}, headers=viewer_headers)) == [
        "add_note",
        "create_contact",
    ]
    assert names(client.get("/api/v1/tool-definitions", params={"capability": "messaging"}, headers=viewer_headers)) == [
        "send_email"
    ]

    toggled = client.post(f"/api/v1/tool-definitions/{ids['add_note']}/toggle", headers=admin_headers)
    assert toggled.json()["is_active"] is False

    assert names(client.get("/api/v1/tool-definitions", params={"active": "false"}, headers=viewer_headers)) == [
        "add_note"
    ]
    assert names(client.get("/api/v1/tool-definitions", params={"active": "true"}, headers=viewer_headers)) == [
        "create_contact",
        "send_email",
    ]


def test_writes_are_admin_only(client, member_headers):
    response = client.post("/api/v1/tool-definitions", json=TOOLS[0], headers=member_headers)
    assert response.status_code == 403


def test_duplicate_name(client, admin_headers):
    seed(client, admin_headers)
    response = client.post("/api/v1/tool-definitions", json=TOOLS[0], headers=admin_headers)
    assert response.status_code == 409


def test_update_and_delete(client, admin_headers):
    ids = seed(client, admin_headers)

    updated = client.patch(
        f"/api/v1/tool-definitions/{ids['send_email']}",
        json={"display_name": "Email someone"},
        headers=admin_headers,
    )
    assert updated.json()["display_name"] == "Email someone"

    assert client.delete(f"/api/v1/tool-definitions/{ids['send_email']}", headers=admin_headers).status_code == 204
    assert client.get(f"/api/v1/tool-definitions/{ids['send_email']}", headers=admin_headers).status_code == 404

    audit = client.get("/api/v1/audit", params={"resource_type": "tool_definition"}, headers=admin_headers).json()
    actions = {entry["action"] for entry in audit["entries"]}
    assert {"tool_definition.created", "tool_definition.updated", "tool_definition.deleted"} <= actions


def test_validate_schema_endpoint(client, viewer_headers):
    def check(text):
        return client.post(
            "/api/v1/tool-definitions/validate-schema", json={"text": text}, headers=viewer_headers
        ).json()

    assert check('{"type": "object"}') == {"valid": True, "error": ""}
    assert check("{oops") == {"valid": False, "error": "Invalid JSON"}
    assert check("[1, 2]") == {"valid": False, "error": "Schema must be a JSON object"}


def test_audit_log_is_admin_only(client, member_headers):
    assert client.get("/api/v1/audit", headers=member_headers).status_code == 403
