"""Loader for the evidence gate configuration."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

_DEF_PATH = Path(__file__).resolve().parent / "default_policy.yaml"


class EvidencePolicy(BaseModel):
    min_description_chars: int = Field(default=15, ge=1)
    sufficient_description_chars: int = Field(default=75, ge=1)
    generic_phrases: tuple[str, ...] = ()

    @field_validator("generic_phrases", mode="before")
    @classmethod
    def _normalize_phrases(cls, value: object) -> tuple[str, ...]:
        if value is None:
            return ()
        if isinstance(value, str):
            value = [value]
        phrases = [str(item).strip().casefold() for item in value]
        return tuple(phrase for phrase in phrases if phrase)

    @model_validator(mode="after")
    def _thresholds_ordered(self) -> "EvidencePolicy":
        if self.sufficient_description_chars < self.min_description_chars:
            raise ValueError("sufficient_description_chars must be >= min_description_chars")
        return self


def load_evidence_policy(path: str | Path | None = None) -> EvidencePolicy:
    """Load and validate the evidence policy from a YAML file."""
    configured = path or os.getenv("TASKPROOF_EVIDENCE_POLICY_PATH")
    cfg_path = Path(configured).expanduser() if configured else _DEF_PATH
    with cfg_path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return EvidencePolicy.model_validate(data)


@lru_cache(maxsize=1)
def get_evidence_policy() -> EvidencePolicy:
    return load_evidence_policy()
