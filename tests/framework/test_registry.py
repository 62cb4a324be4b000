"""Tests for Registry, RegistryHolder, controllers and the definition builders."""

from __future__ import annotations

import threading

import pytest

from apispine.core.errors import ConfigurationError
from apispine.framework.builder import RegistryBuilder
from apispine.framework.controllers import Action, BeforeFilter, Controller, Helper
from apispine.framework.params import ParamDef
from apispine.framework.registry import Registry, RegistryHolder
from apispine.framework.structures import Structure


def _noop(ctx):
    return None


class TestController:
    def test_actions_indexed_by_name(self):
        controller = Controller("users", actions=[Action("list", "users", _noop), Action("info", "users", _noop)])
        assert set(controller.actions) == {"list", "info"}
        assert controller.action("list").name == "list"
        assert controller.action("missing") is None

    def test_duplicate_action_rejected(self):
        with pytest.raises(ConfigurationError, match="twice"):
            Controller("users", actions=[Action("list", "users", _noop), Action("list", "users", _noop)])

    def test_action_must_belong_to_controller(self):
        with pytest.raises(ConfigurationError, match="belongs to"):
            Controller("users", actions=[Action("list", "animals", _noop)])

    def test_before_filters_for(self):
        everywhere = BeforeFilter(_noop)
        create_only = BeforeFilter(_noop, actions=frozenset({"create"}))
        controller = Controller("users", befores=(everywhere, create_only))
        assert controller.before_filters_for("list") == [everywhere]
        assert controller.before_filters_for("create") == [everywhere, create_only]


class TestAction:
    def test_default_params(self):
        action = Action("list", "users", _noop, params=(ParamDef("page", default=1), ParamDef("q")))
        assert action.default_params == {"page": 1}

    def test_return_structure_opts(self):
        action = Action("info", "users", _noop, returns={"type": "user", "structure_opts": {"full": True}})
        assert action.return_structure_opts == {"full": True}
        assert Action("info", "users", _noop, returns={"type": "user"}).return_structure_opts is None
        assert Action("info", "users", _noop).return_structure_opts is None


class TestRegistry:
    def test_lookups(self, zoo_registry):
        assert zoo_registry.has_structure("user")
        assert zoo_registry.structure("animal").name == "animal"
        assert zoo_registry.structure("missing") is None
        assert zoo_registry.controller("users").name == "users"
        assert zoo_registry.action("users", "list").name == "list"
        assert zoo_registry.action("users", "missing") is None
        assert zoo_registry.action("missing", "list") is None

    def test_resolve_structure(self, zoo_registry):
        structure = zoo_registry.structure("user")
        assert zoo_registry.resolve_structure(structure) is structure
        assert zoo_registry.resolve_structure("user") is structure

    def test_resolve_unknown_structure(self, zoo_registry):
        with pytest.raises(ConfigurationError) as exc_info:
            zoo_registry.resolve_structure("missing")
        assert exc_info.value.context.structure == "missing"

    def test_duplicate_structures_rejected(self):
        with pytest.raises(ConfigurationError, match="Duplicate structure"):
            Registry.build(structures=[Structure("user"), Structure("user")])

    def test_duplicate_controllers_rejected(self):
        with pytest.raises(ConfigurationError, match="Duplicate controller"):
            Registry.build(controllers=[Controller("users"), Controller("users")])

    def test_duplicate_helpers_rejected(self):
        with pytest.raises(ConfigurationError, match="Duplicate helper"):
            Registry.build(helpers=[Helper("h", _noop), Helper("h", _noop)])

    def test_helper_scoping(self):
        scoped = Helper("h", _noop, controller="users")
        global_ = Helper("h", _noop)
        registry = Registry.build(helpers=[global_, scoped])
        assert registry.helper("h", "users") is scoped
        assert registry.helper("h", "animals") is global_
        assert registry.helper("h") is global_
        assert registry.helper("missing") is None

    def test_tables_are_read_only(self, zoo_registry):
        with pytest.raises(TypeError):
            zoo_registry.structures["new"] = Structure("new")

    def test_engine_is_cached(self, zoo_registry):
        assert zoo_registry.engine is zoo_registry.engine
        assert zoo_registry.engine.registry is zoo_registry


class TestRegistryHolder:
    def test_requires_registry_or_loader(self):
        with pytest.raises(ConfigurationError):
            RegistryHolder()

    def test_loader_builds_initial_registry(self, zoo_loader):
        holder = RegistryHolder(loader=zoo_loader)
        assert holder.current.has_structure("user")
        assert holder.can_reload

    def test_swap_returns_previous(self, zoo_registry):
        holder = RegistryHolder(zoo_registry)
        replacement = Registry.build()
        assert holder.swap(replacement) is zoo_registry
        assert holder.current is replacement

    def test_reload_replaces_registry(self, zoo_loader):
        holder = RegistryHolder(loader=zoo_loader)
        before = holder.current
        after = holder.reload()
        assert after is holder.current
        assert after is not before

    def test_reload_without_loader(self, zoo_registry):
        holder = RegistryHolder(zoo_registry)
        assert not holder.can_reload
        with pytest.raises(ConfigurationError):
            holder.reload()

    def test_concurrent_reloads_leave_a_complete_registry(self, zoo_loader):
        holder = RegistryHolder(loader=zoo_loader)
        threads = [threading.Thread(target=holder.reload) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert set(holder.current.structures) == {"user", "animal"}
        assert holder.current.action("users", "list") is not None


class TestRegistryBuilder:
    def test_duplicate_structure_builder_rejected(self):
        api = RegistryBuilder()
        api.structure("user")
        with pytest.raises(ConfigurationError):
            api.structure("user")

    def test_controller_builder_reused(self):
        api = RegistryBuilder()
        assert api.controller("users") is api.controller("users")

    def test_description_from_docstring(self):
        api = RegistryBuilder()
        users = api.controller("users")

        @users.action("list")
        def list_users(ctx):
            """Lists all users."""

        assert api.build().action("users", "list").description == "Lists all users."

    def test_authenticator_and_default_access(self):
        api = RegistryBuilder()

        @api.authenticator
        def authenticate(request):
            return "someone"

        @api.default_access
        def everyone(ctx):
            return True

        registry = api.build()
        assert registry.authenticator is authenticate
        assert registry.default_access is everyone

    def test_controller_helpers_are_scoped(self):
        api = RegistryBuilder()
        users = api.controller("users")

        @users.helper()
        def current_page(ctx):
            return 1

        registry = api.build()
        assert registry.helper("current_page", "users").controller == "users"
        assert registry.helper("current_page") is None

    def test_group_scope_restored_after_block(self):
        api = RegistryBuilder()
        user = api.structure("user")
        with user.group("profile"):
            inner = user.basic("name")
        outer = user.basic("id")
        assert inner.group == ("profile",)
        assert outer.group == ()

    def test_condition_scope_restored_after_error(self):
        api = RegistryBuilder()
        user = api.structure("user")
        with pytest.raises(RuntimeError):
            with user.condition(lambda ctx: False):
                raise RuntimeError("boom")
        assert user.basic("id").condition is None
