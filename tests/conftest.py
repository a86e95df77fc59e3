from __future__ import annotations

import pytest

from taskproof.apps.api import deps
from taskproof.core.evidence import policy as evidence_policy
from taskproof.core.evidence.policy import EvidencePolicy, load_evidence_policy
from taskproof.core.tasks.store import TaskStore


class RecorderNotifier:
    def __init__(self) -> None:
        self.messages: list[dict] = []

    def send(self, title: str, body: str, meta: dict | None = None) -> None:
        self.messages.append({"title": title, "body": body, "meta": meta or {}})


@pytest.fixture(autouse=True)
def isolated_state(tmp_path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("TASKPROOF_STATE_DIR", str(tmp_path))
    monkeypatch.setenv("TASKPROOF_TEST_MODE", "1")
    monkeypatch.setenv("TASKPROOF_LLM_PROVIDER", "off")
    monkeypatch.setenv("TASKPROOF_NOTIFIER", "store")
    monkeypatch.setenv("TASKPROOF_LOG_TO_FILE", "off")
    monkeypatch.setenv("TASKPROOF_DEFAULT_USER_ID", "demo-user")
    for name in (
        "TASKPROOF_EVIDENCE_POLICY_PATH",
        "TASKPROOF_CHECKINS_ENABLED",
        "TASKPROOF_LLM_FOLLOWUPS",
        "TASKPROOF_FOLLOWUP_TIMEOUT_S",
    ):
        monkeypatch.delenv(name, raising=False)
    deps.reset_dependencies()
    evidence_policy.get_evidence_policy.cache_clear()
    yield
    deps.reset_dependencies()
    evidence_policy.get_evidence_policy.cache_clear()


@pytest.fixture
def store(tmp_path) -> TaskStore:
    return TaskStore(state_dir=tmp_path)


@pytest.fixture
def policy() -> EvidencePolicy:
    return load_evidence_policy()


@pytest.fixture
def recorder() -> RecorderNotifier:
    return RecorderNotifier()
