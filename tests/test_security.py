"""End-to-end checks of the request security stages."""

from Security.headers_hardening import SECURITY_HEADERS


class TestHeaders:
    def test_security_headers_on_success(self, client):
        response = client.get("/api/users")

        for name, value in SECURITY_HEADERS.items():
            assert response.headers[name] == value
        assert "x-powered-by" not in response.headers
        assert "server" not in response.headers

    def test_security_headers_on_errors(self, client):
        response = client.get("/api/users/999")

        assert response.status_code == 404
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["X-Content-Type-Options"] == "nosniff"

    def test_csp_denies_objects_and_frames(self, client):
        csp = client.get("/health").headers["Content-Security-Policy"]

        assert "default-src 'self'" in csp
        assert "object-src 'none'" in csp
        assert "frame-src 'none'" in csp

    def test_request_id_is_echoed_or_assigned(self, client):
        echoed = client.get("/health", headers={"X-Request-ID": "abc12345-trace"})
        assigned = client.get("/health", headers={"X-Request-ID": "<bad>"})

        assert echoed.headers["x-request-id"] == "abc12345-trace"
        assert assigned.headers["x-request-id"] != "<bad>"

    def test_cors_preflight_for_allowed_origin(self, client):
        response = client.options(
            "/api/users",
            headers={"Origin": "http://localhost:3000", "Access-Control-Request-Method": "POST"},
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"


class TestSizeGuard:
    def test_oversized_declared_body_is_413(self, make_client, valid_user):
        client = make_client(MAX_BODY_BYTES=1024)

        response = client.post("/api/users", json={**valid_user, "address": "a" * 2048})

        assert response.status_code == 413
        assert response.json() == {"error": "Request entity too large", "maxSize": "1KB"}
        assert response.headers["X-Frame-Options"] == "DENY"

    def test_oversized_json_body_is_413(self, client, valid_user):
        response = client.post("/api/users", json={**valid_user, "address": "a" * 20000})

        assert response.status_code == 413
        assert response.json()["maxSize"] == "10KB"


class TestContentSanitizing:
    def test_script_elements_are_removed(self, client, valid_user):
        payload = {**valid_user, "name": "<script>alert('xss')</script>John Doe"}

        response = client.post("/api/users", json=payload)

        assert response.status_code == 201
        assert response.json()["data"]["name"] == "John Doe"

    def test_markup_tags_are_stripped(self, client, valid_user):
        payload = {**valid_user, "name": "<b>John</b> Doe", "city": "<i>Haifa</i>"}

        response = client.post("/api/users", json=payload)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["name"] == "John Doe"
        assert data["city"] == "Haifa"

    def test_script_idiom_without_tags_is_suspicious(self, client, valid_user):
        response = client.post("/api/users", json={**valid_user, "name": "javascript:alert(1)"})

        assert response.status_code == 400
        assert response.json() == {"error": "Suspicious content detected", "field": "name"}


class TestKeySanitizing:
    def test_operator_keys_are_dropped(self, client, valid_user):
        payload = {**valid_user, "$where": "sleep(100)", "profile.admin": True}

        response = client.post("/api/users", json=payload)

        assert response.status_code == 201


class TestInjectionDetector:
    def test_body_injection(self, client, valid_user):
        payload = {**valid_user, "name": "John'; DROP TABLE users; --"}

        response = client.post("/api/users", json=payload)

        assert response.status_code == 400
        assert response.json() == {"error": "Potential SQL injection detected", "field": "name"}

    def test_nested_injection_reports_path(self, client, valid_user):
        payload = {**valid_user, "meta": {"tags": ["fine", "x UNION y"]}}

        response = client.post("/api/users", json=payload)

        assert response.status_code == 400
        assert response.json()["field"] == "meta.tags.1"

    def test_query_injection(self, client):
        response = client.get("/api/users", params={"search": "1 OR 1=1"})

        assert response.status_code == 400
        assert response.json()["field"] == "search"

    def test_path_injection(self, client):
        response = client.get("/api/users/1 OR 1=1")

        assert response.status_code == 400
        assert response.json()["field"] == "user_id"

    def test_injection_is_rejected_before_store_access(self, client, valid_user):
        client.post("/api/users", json={**valid_user, "city": "Tel Aviv; DELETE FROM users"})

        assert client.get("/api/users").json()["count"] == 0


class TestParameterPollution:
    def test_repeated_form_fields_keep_last_value(self, client, valid_user):
        form = {**valid_user, "name": ["Evil Name", "John Doe"]}

        response = client.post("/api/users", data=form)

        assert response.status_code == 201
        assert response.json()["data"]["name"] == "John Doe"
        assert response.json()["data"]["phone"] == "+972501234567"


class TestInternalErrors:
    def test_unexpected_failure_is_generic_500(self, database, settings):
        from fastapi.testclient import TestClient

        from app.main import create_app

        def broken_session():
            raise RuntimeError("connection refused by db-host:5432")

        client = TestClient(create_app(settings, session_factory=broken_session))

        response = client.get("/api/users")

        assert response.status_code == 500
        assert response.json() == {"error": "Internal Server Error", "message": "Something went wrong"}
        assert "db-host" not in response.text
        assert response.headers["X-Content-Type-Options"] == "nosniff"

    def test_deeply_nested_json_is_a_validation_error(self, client):
        response = client.post(
            "/api/users",
            content=b"[" * 3000 + b"]" * 3000,
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Malformed JSON body"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert "Content-Security-Policy" in response.headers

    def test_failing_stage_still_gets_security_headers(self, database, settings):
        from fastapi.testclient import TestClient

        from app.database import SessionLocal
        from app.main import create_app
        from Security.request_pipeline import PipelineStage

        def broken_stage(ctx):
            raise RuntimeError("stage exploded")

        app = create_app(settings, session_factory=SessionLocal)
        app.state.pipeline.stages.insert(2, PipelineStage("broken", broken_stage))
        client = TestClient(app)

        response = client.get("/api/users")

        assert response.status_code == 500
        assert response.json() == {"error": "Internal Server Error", "message": "Something went wrong"}
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
