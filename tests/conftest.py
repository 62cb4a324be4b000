"""
Shared pytest fixtures and configuration for api-spine tests.

This module provides:
- Sample domain objects (User, Animal)
- A sample registry with ``user``/``animal`` structures and a ``users`` controller
- Log-context cleanup for test isolation
"""

import sys
from dataclasses import dataclass, field
from pathlib import Path

import pytest

# Ensure apispine package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from apispine.framework.builder import RegistryBuilder
from apispine.framework.logging import clear_context
from apispine.framework.params import ParamDef
from apispine.framework.request import Request


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)
        if test_path.parts and test_path.parts[0] == "api":
            item.add_marker(pytest.mark.integration)
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Sample domain
# =============================================================================


@dataclass
class User:
    id: int = 0
    username: str = ""
    name: str = ""
    admin: bool = False
    private_code: int | None = None
    animals: list["Animal"] = field(default_factory=list)


@dataclass
class Animal:
    id: int = 0
    name: str = ""
    color: str = ""
    user: User | None = None


@pytest.fixture
def user_with_animals() -> User:
    user = User(id=1, username="adam", private_code=9876)
    user.animals.append(Animal(id=1, name="Fido", color="Ginger", user=user))
    user.animals.append(Animal(id=2, name="Boris", color="Black", user=user))
    return user


@pytest.fixture(autouse=True)
def clean_log_context():
    """Ensure no dispatch context leaks between tests."""
    clear_context()
    yield
    clear_context()


# =============================================================================
# Sample registry
# =============================================================================


def build_zoo_registry():
    """
    ``user`` / ``animal`` structures plus a ``users`` controller.

    ``users/list`` declares ``page`` (default 1), ``users/info`` requires
    ``user``; a before-filter restricted to ``create`` flags its run.
    """
    api = RegistryBuilder()

    user = api.structure("user")
    user.basic("id")
    user.basic("username")
    user.expansion("animals", structure="animal")

    animal = api.structure("animal")
    animal.basic("id")
    animal.basic("name")
    animal.full("color")

    @api.authenticator
    def authenticate(request):
        token = request.header("Authorization")
        if token == "admin":
            return User(id=99, username="root", admin=True)
        if token == "user":
            return User(id=2, username="dave")
        return None

    users = api.controller("users")

    @users.before()
    def mark_all(ctx):
        ctx.set_flag("before_all", True)

    @users.before("create")
    def mark_create(ctx):
        ctx.set_flag("before_create", True)

    @users.action(
        "list",
        description="Lists all users in the application",
        params=[ParamDef("page", "The current page number for pagination.", default=1)],
        access=lambda ctx: isinstance(ctx.identity, User),
    )
    def list_users(ctx):
        return {"records": [], "pagination": {"page": ctx.params["page"], "total": 0}}

    @users.action(
        "info",
        description="Return all information about a given user",
        params=[ParamDef("user", "The ID of the user you wish to view", required=True)],
        access=lambda ctx: isinstance(ctx.identity, User),
    )
    def info(ctx):
        return {"id": ctx.params["user"], "username": "awesomeuser"}

    @users.action("create", access=lambda ctx: ctx.identity.admin)
    def create(ctx):
        ctx.set_header("X-Created", "1")
        return {"created": True}

    return api.build()


@pytest.fixture
def zoo_registry():
    return build_zoo_registry()


@pytest.fixture
def make_request():
    """Factory for dispatcher requests with an optional pre-resolved identity."""

    def factory(controller: str, action: str, params=None, version: int = 1, **kwargs) -> Request:
        return Request(version, controller, action, params, **kwargs)

    return factory


@pytest.fixture
def zoo_loader():
    """Zero-argument loader that builds a fresh zoo registry on every call."""
    return build_zoo_registry
