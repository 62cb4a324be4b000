"""
Tests for the FastAPI application factory and the HTTP envelope.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from apispine.api.app import create_app
from apispine.api.errors import KIND_TO_STATUS, status_for_kind
from apispine.api.settings import ApiSettings
from apispine.framework.builder import RegistryBuilder
from apispine.framework.dispatcher import Dispatcher
from apispine.framework.registry import RegistryHolder

USER = {"Authorization": "user"}
ADMIN = {"Authorization": "admin"}


def _settings(**overrides) -> ApiSettings:
    return ApiSettings(_env_file=None, **overrides)


@pytest.fixture
def client(zoo_registry):
    return TestClient(create_app(zoo_registry, settings=_settings()))


def _broken_registry():
    api = RegistryBuilder()
    api.authenticator(lambda request: "someone")
    api.controller("broken").action("divide")(lambda ctx: 1 / 0)
    return api.build()


class TestCreateApp:
    def test_returns_fastapi_instance(self, zoo_registry):
        assert isinstance(create_app(zoo_registry, settings=_settings()), FastAPI)

    def test_custom_settings(self, zoo_registry):
        app = create_app(zoo_registry, settings=_settings(api_title="Zoo API"))
        assert app.title == "Zoo API"
        assert app.state.settings.api_title == "Zoo API"

    def test_wraps_registry_in_dispatcher(self, zoo_registry):
        app = create_app(zoo_registry, settings=_settings())
        assert isinstance(app.state.dispatcher, Dispatcher)
        assert app.state.dispatcher.registry is zoo_registry

    def test_accepts_dispatcher(self, zoo_registry):
        dispatcher = Dispatcher(zoo_registry)
        assert create_app(dispatcher, settings=_settings()).state.dispatcher is dispatcher

    def test_reload_setting_applied(self, zoo_loader):
        holder = RegistryHolder(loader=zoo_loader)
        app = create_app(holder, settings=_settings(reload_on_each_request=True))
        assert app.state.dispatcher.reload_on_each_request is True

    def test_debug_setting_configures_debug_logging(self, zoo_registry):
        with patch("apispine.api.app.configure_logging") as configure:
            create_app(zoo_registry, settings=_settings(debug=True, log_format="json"))
        configure.assert_called_once_with(level="DEBUG", format="json")

    def test_cors_middleware_present(self, zoo_registry):
        app = create_app(zoo_registry, settings=_settings())
        middleware_classes = [m.cls.__name__ for m in app.user_middleware]
        assert "CORSMiddleware" in middleware_classes
        assert "RequestIDMiddleware" in middleware_classes


class TestSuccess:
    def test_get_with_defaults(self, client):
        response = client.get("/api/v1/users/list", headers=USER)
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "success"
        assert body["data"]["pagination"]["page"] == 1
        assert body["flags"] == {"before_all": True}
        assert isinstance(body["time"], float)

    def test_post_json_body(self, client):
        response = client.post("/api/v1/users/list", json={"page": 4}, headers=USER)
        assert response.json()["data"]["pagination"]["page"] == 4

    def test_get_json_params(self, client):
        response = client.get("/api/v1/users/list", params={"params": '{"page": 2}'}, headers=USER)
        assert response.json()["data"]["pagination"]["page"] == 2

    def test_get_plain_query(self, client):
        response = client.get("/api/v1/users/list", params={"page": "5"}, headers=USER)
        assert response.json()["data"]["pagination"]["page"] == "5"

    def test_empty_post_body(self, client):
        response = client.post("/api/v1/users/list", content=b"", headers=USER)
        assert response.json()["status"] == "success"

    def test_custom_headers_returned(self, client):
        response = client.post("/api/v1/users/create", json={}, headers=ADMIN)
        assert response.headers["X-Created"] == "1"

    def test_request_id_header(self, client):
        response = client.get("/api/v1/users/list", headers={**USER, "X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"

    def test_request_id_generated(self, client):
        response = client.get("/api/v1/users/list", headers=USER)
        assert len(response.headers["X-Request-ID"]) == 32

    def test_options(self, client):
        response = client.options("/api/v1/users/list")
        assert response.status_code == 200
        assert response.text == "OK"

    def test_custom_prefix(self, zoo_registry):
        client = TestClient(create_app(zoo_registry, settings=_settings(api_prefix="/rpc/")))
        assert client.get("/rpc/v1/users/list", headers=USER).json()["status"] == "success"


class TestNegotiationOverHttp:
    @pytest.fixture
    def pets_client(self):
        api = RegistryBuilder()
        api.authenticator(lambda request: "someone")

        animal = api.structure("animal")
        animal.basic("id")
        animal.full("color")

        @api.controller("animals").action("info")
        def info(ctx):
            return ctx.serialize("animal", {"id": 1, "color": "Ginger"}, paramable=True)

        return TestClient(create_app(api.build(), settings=_settings()))

    def test_plain_query_full_false_is_ignored(self, pets_client):
        data = pets_client.get("/api/v1/animals/info", params={"_full": "false"}).json()["data"]
        assert data == {"id": 1}

    def test_plain_query_full_true_is_ignored(self, pets_client):
        data = pets_client.get("/api/v1/animals/info", params={"_full": "true"}).json()["data"]
        assert data == {"id": 1}

    def test_json_params_full(self, pets_client):
        response = pets_client.get("/api/v1/animals/info", params={"params": '{"_full": true}'})
        assert response.json()["data"] == {"id": 1, "color": "Ginger"}

    def test_post_full_false(self, pets_client):
        data = pets_client.post("/api/v1/animals/info", json={"_full": False}).json()["data"]
        assert data == {"id": 1}


class TestErrors:
    def test_access_denied(self, client):
        response = client.get("/api/v1/users/list")
        assert response.status_code == 403
        assert response.json()["status"] == "access-denied"

    def test_parameter_error(self, client):
        response = client.get("/api/v1/users/info", headers=USER)
        assert response.status_code == 400
        body = response.json()
        assert body["status"] == "parameter-error"
        assert body["data"] == {"errors": [{"field": "user", "message": "is required"}]}

    def test_flags_kept_on_request_error(self, client):
        response = client.post("/api/v1/users/create", json={}, headers=USER)
        assert response.json()["flags"] == {"before_all": True, "before_create": True}

    def test_unknown_action(self, client):
        response = client.get("/api/v1/users/explode", headers=USER)
        assert response.status_code == 400
        body = response.json()
        assert body["status"] == "invalid-controller-or-action"
        assert "explode" in body["details"]

    def test_malformed_path(self, client):
        response = client.get("/api/v1/users", headers=USER)
        assert response.json()["status"] == "invalid-controller-or-action"

    def test_invalid_json(self, client):
        response = client.post(
            "/api/v1/users/list",
            content=b"{not json",
            headers={**USER, "Content-Type": "application/json"},
        )
        assert response.status_code == 400
        body = response.json()
        assert body["status"] == "invalid-json"
        assert body["details"]

    def test_json_must_be_object(self, client):
        response = client.post("/api/v1/users/list", json=[1, 2], headers=USER)
        assert response.json()["status"] == "invalid-json"

    def test_internal_error_hidden_in_production(self):
        client = TestClient(create_app(_broken_registry(), settings=_settings(environment="production")))
        response = client.get("/api/v1/broken/divide", headers=USER)
        assert response.status_code == 500
        assert response.json()["status"] == "internal-server-error"
        assert response.json()["data"] == {}

    def test_internal_error_details_in_development(self):
        client = TestClient(create_app(_broken_registry(), settings=_settings(environment="development")))

        data = client.get("/api/v1/broken/divide").json()["data"]
        assert data["error"] == "ZeroDivisionError"
        assert data["message"] == "division by zero"
        assert len(data["backtrace"]) <= 6

    def test_unhandled_adapter_exception(self, zoo_registry):
        class ExplodingDispatcher(Dispatcher):
            def dispatch(self, request):
                raise RuntimeError("adapter bug")

        app = create_app(ExplodingDispatcher(zoo_registry), settings=_settings(environment="development"))
        client = TestClient(app, raise_server_exceptions=False)
        response = client.get("/api/v1/users/list", headers=USER)
        assert response.status_code == 500
        assert response.json() == {
            "status": "internal-server-error",
            "error": "RuntimeError",
            "message": "adapter bug",
        }


class TestStatusMapping:
    @pytest.mark.parametrize(
        "kind,status",
        [
            ("success", 200),
            ("not-found", 404),
            ("access-denied", 403),
            ("validation-error", 422),
            ("parameter-error", 400),
            ("error", 400),
            ("internal-server-error", 500),
        ],
    )
    def test_known_kinds(self, kind, status):
        assert status_for_kind(kind) == status

    def test_unknown_kind_is_500(self):
        assert status_for_kind("mystery") == 500
        assert "mystery" not in KIND_TO_STATUS
