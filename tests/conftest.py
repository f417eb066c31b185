"""Root conftest for test suite.

Auto-skips slow tests and resets process-wide singletons between tests.
Run slow tests explicitly with: pytest -m slow
"""

import pytest


def pytest_collection_modifyitems(config, items):
    """Skip slow tests unless explicitly requested."""
    markexpr = config.getoption("-m", default="")
    explicit_slow = "slow" in markexpr

    skip_slow = pytest.mark.skip(
        reason="slow tests skipped by default. Run with: pytest -m slow"
    )

    for item in items:
        if "slow" in item.keywords and not explicit_slow:
            item.add_marker(skip_slow)


@pytest.fixture(autouse=True)
def _reset_singletons():
    """Reset module-level singletons so tests don't leak state."""
    from magic_actions.core.engine import set_engine
    from magic_actions.jobs.store import reset_job_store
    from magic_actions.services.llm_factory import reset_backend

    yield
    set_engine(None)
    reset_job_store()
    reset_backend()
