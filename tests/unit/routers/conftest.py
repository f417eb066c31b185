"""Fixtures for router tests: a bare app wired to the test engine."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from magic_actions.core.engine import set_engine
from magic_actions.core.errors import install_error_handlers
from magic_actions.routers import actions, health, jobs, metrics


@pytest.fixture
def app(engine):
    app = FastAPI()
    install_error_handlers(app)
    app.include_router(health.router)
    app.include_router(actions.router)
    app.include_router(jobs.router)
    app.include_router(metrics.router)
    set_engine(engine)
    return app


@pytest.fixture
def client(app):
    return TestClient(app)
