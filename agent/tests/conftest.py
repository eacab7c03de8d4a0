import os
import sys
import pytest
from unittest.mock import MagicMock

# Ensure project root and src are importable for tests
ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, ROOT_DIR)
sys.path.insert(0, os.path.join(ROOT_DIR, "src"))

from tools.context import set_context
from test_utils import VENEAR, VOTING


@pytest.fixture(autouse=True)
def contracts_env(monkeypatch):
    """Configure both contract ids; tests that need them missing delenv."""
    monkeypatch.setenv("VOTING_CONTRACT", VOTING)
    monkeypatch.setenv("VENEAR_CONTRACT_ID", VENEAR)
    monkeypatch.delenv("NEAR_RPC_URL", raising=False)


@pytest.fixture
def mock_setup():
    """Provide a mocked env and RPC client, and register them in tools.context."""
    env = MagicMock()
    rpc = MagicMock()
    set_context(env=env, rpc=rpc)
    return (env, rpc)
