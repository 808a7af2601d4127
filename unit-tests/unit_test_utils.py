# Shared utility functions for unit tests

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'app'))
from fastapi.testclient import TestClient
import accounts
import schemas
from context import AppContext
from memory_store import MemoryStore
from app import create_app


def make_context(default_timezone="UTC", recurrence_cap=30):
    """A fresh context on the in-memory store"""
    return AppContext(MemoryStore(), default_timezone=default_timezone, recurrence_cap=recurrence_cap)


def make_user(ctx, email="alice@example.com", name="Alice", timezone="UTC"):
    """Register a user the way the app does, return (user, api_key)"""
    return accounts.register(ctx, schemas.UserRegister(email=email, name=name, timezone=timezone))


def make_client(ctx=None):
    """TestClient on an app wired to the given (or a new) memory context"""
    ctx = ctx or make_context()
    return TestClient(create_app(ctx)), ctx


def register(client, email="alice@example.com", name="Alice", timezone="UTC"):
    """Register through the API, return (user_id, api_key)"""
    response = client.post("/users/register", json={"email": email, "name": name, "timezone": timezone})
    assert response.status_code == 201, response.text
    body = response.json()
    return body["user_id"], body["api_key"]


def auth(api_key):
    return {"X-API-Key": api_key}


def default_calendar_id(ctx, user_id):
    return ctx.store.get_default_calendar(user_id).id
