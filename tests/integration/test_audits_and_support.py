def test_build_info(client, monkeypatch):
    monkeypatch.setenv("BUILD_SHA", "abc123")
    monkeypatch.setenv("VERSION", "1.2.3")
    monkeypatch.delenv("IMAGE_TAG", raising=False)
    body = client.get("/build-info").json()
    assert body["service_name"] == "lmsbox-service"
    assert body["build_sha"] == "abc123"
    assert body["version"] == "1.2.3"
    assert body["image_tag"] is None


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_features_reflect_environment(client, monkeypatch):
    from lmsbox.utils.feature_flags import refresh_feature_flag_cache

    monkeypatch.setenv("FEATURE_SURVEYS_ENABLED", "false")
    refresh_feature_flag_cache()
    flags = client.get("/features").json()
    assert flags["surveys_enabled"] is False
    assert flags["certificates_enabled"] is True


def test_audit_trail_for_managers(client, auth_headers, org_owner_context):
    _owner, org = org_owner_context
    headers = auth_headers("owner@example.com")
    client.post("/groups/", json={"name": "Audited", "organization_id": str(org.id)}, headers=headers)

    r = client.get(f"/audits/?organization_id={org.id}", headers=headers)
    assert r.status_code == 200
    entries = r.json()
    assert [e["action_type"] for e in entries] == ["group_create"]
    assert entries[0]["metadata"] == {"name": "Audited"}

    filtered = client.get(f"/audits/?organization_id={org.id}&action_type=course_create", headers=headers).json()
    assert filtered == []


def test_audits_require_manager_or_superadmin(client, auth_headers, learner_context, user_factory):
    _learner, org = learner_context
    learner = auth_headers("learner@example.com")
    assert client.get(f"/audits/?organization_id={org.id}", headers=learner).status_code == 403
    assert client.get("/audits/", headers=auth_headers("owner@example.com")).status_code == 403

    user_factory("root@example.com", is_superadmin=True)
    assert client.get("/audits/", headers=auth_headers("root@example.com")).status_code == 200


def test_dev_mode_impersonates_dev_user(client, monkeypatch):
    monkeypatch.setenv("DEV_MODE", "true")
    r = client.get("/users/me")
    assert r.status_code == 200
    assert r.json()["email"] == "dev@localhost"
