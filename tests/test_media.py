import io
import os

from orgcms import create_app
from orgcms.extensions import db
from orgcms.models import AuditLog, Media
from conftest import login

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def _upload(client, filename="Logo Final.png", content=PNG, mimetype="image/png", **form):
    data = {"file": (io.BytesIO(content), filename, mimetype)}
    data.update(form)
    return client.post("/api/media", data=data, content_type="multipart/form-data")


def test_upload_list_delete(app, client, org_with_owner):
    org_id, owner_id = org_with_owner
    login(client, owner_id)

    r = _upload(client, alt="Our logo")
    assert r.status_code == 201
    item = r.get_json()["items"][0]
    assert item["category"] == "image"
    assert item["url"] == f"/uploads/images/{item['filename']}"
    assert item["filename"].startswith("logo-final-") and item["filename"].endswith(".png")
    path = os.path.join(app.config["UPLOAD_FOLDER"], "images", item["filename"])
    assert os.path.exists(path)

    # Served back from the public prefix
    assert client.get(item["url"]).data == PNG

    listed = client.get("/api/media?category=image").get_json()
    assert listed["pagination"]["total"] == 1

    assert client.delete(f"/api/media?id={item['id']}").status_code == 200
    assert not os.path.exists(path)
    assert client.delete(f"/api/media?id={item['id']}").status_code == 404

    with app.app_context():
        assert db.session.query(Media).count() == 0
        actions = [r.action for r in db.session.query(AuditLog).order_by(AuditLog.id)]
        assert actions == ["MEDIA_UPLOAD", "MEDIA_DELETE"]


def test_stored_extension_follows_declared_type(app, client, org_with_owner):
    login(client, org_with_owner[1])
    r = _upload(client, filename="x.html", content=b"<script>alert(1)</script>", mimetype="image/png")
    assert r.status_code == 201
    item = r.get_json()["items"][0]
    assert item["filename"].startswith("x-") and item["filename"].endswith(".png")
    served = client.get(item["url"])
    assert served.status_code == 200
    assert served.mimetype == "image/png"


def test_rejects_unsupported_type(app, client, org_with_owner):
    login(client, org_with_owner[1])
    r = _upload(client, filename="x.exe", content=b"MZ", mimetype="application/x-msdownload")
    assert r.status_code == 400
    assert r.get_json()["error"] == "upload_failed"
    with app.app_context():
        assert db.session.query(AuditLog).count() == 0


def test_rejects_oversized_image(client, org_with_owner):
    login(client, org_with_owner[1])
    big = b"\x00" * (5 * 1024 * 1024 + 1)
    r = _upload(client, filename="big.jpg", content=big, mimetype="image/jpeg")
    assert r.status_code == 400
    assert "5MB" in r.get_json()["details"][0]["message"]


def test_category_restriction(client, org_with_owner):
    login(client, org_with_owner[1])
    r = _upload(client, filename="doc.pdf", content=b"%PDF-1.4", mimetype="application/pdf", category="image")
    assert r.status_code == 400


def test_missing_file_is_400(client, org_with_owner):
    login(client, org_with_owner[1])
    r = client.post("/api/media", data={}, content_type="multipart/form-data")
    assert r.status_code == 400


def test_admin_ip_allowlist(app, client, org_with_owner, monkeypatch):
    login(client, org_with_owner[1])
    monkeypatch.setitem(app.config, "ADMIN_IPS", ["10.0.0.1"])
    r = client.get("/api/media")
    assert (r.status_code, r.get_json()["error"]) == (403, "ip_not_allowed")
    spoofed = client.get("/api/media", headers={"X-Forwarded-For": "10.0.0.1"})
    assert spoofed.status_code == 403
    assert client.get("/api/media", environ_base={"REMOTE_ADDR": "10.0.0.1"}).status_code == 200


def test_admin_ip_allowlist_behind_trusted_proxy(app):
    proxied = create_app({
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "ADMIN_IPS": ["10.9.9.9"],
        "PROXY_FIX_X_FOR": 1,
    })
    c = proxied.test_client()
    assert c.get("/api/admin").status_code == 403
    # One trusted hop: the proxy-appended (last) address is the client
    r = c.get("/api/admin", headers={"X-Forwarded-For": "10.0.0.5, 10.9.9.9"})
    assert r.status_code == 401
    r = c.get("/api/admin", headers={"X-Forwarded-For": "10.9.9.9, 10.0.0.5"})
    assert r.status_code == 403
