"""Evidence gate for task completion.

``validate_evidence`` is a pure function of the evidence payload and the
policy: it reads nothing else and writes nothing. Rules run in a fixed order
and the first one that fails decides the rejection:

1. evidence present
2. description non-empty after trimming
3. description at least ``min_description_chars`` long
4. description free of configured low-information phrases (substring match)
5. at least one attachment, or a description of ``sufficient_description_chars``
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .policy import EvidencePolicy
from .schemas import CompletionEvidence


class RejectionReason(str, Enum):
    EVIDENCE_MISSING = "EvidenceMissing"
    DESCRIPTION_EMPTY = "DescriptionEmpty"
    DESCRIPTION_TOO_SHORT = "DescriptionTooShort"
    GENERIC_RESPONSE = "GenericResponse"
    INSUFFICIENT_PROOF = "InsufficientProof"


_GUIDANCE: dict[RejectionReason, str] = {
    RejectionReason.EVIDENCE_MISSING: (
        "Completing a task requires evidence. Describe what you delivered and attach proof."
    ),
    RejectionReason.DESCRIPTION_EMPTY: (
        "Your evidence has no description. Write what exactly was accomplished, not just the attachment."
    ),
    RejectionReason.DESCRIPTION_TOO_SHORT: (
        "That description is too short to prove anything. Say what was delivered, to whom, and the outcome."
    ),
    RejectionReason.GENERIC_RESPONSE: (
        "\"Done\" is not evidence. Replace the generic wording with the specific result you produced."
    ),
    RejectionReason.INSUFFICIENT_PROOF: (
        "Attach proof (screenshot, document, email, call log, file or link) or give a detailed, measurable account of the result."
    ),
}


def guidance_for(reason: RejectionReason) -> str:
    return _GUIDANCE[reason]


@dataclass(frozen=True)
class ValidationResult:
    accepted: bool
    reason: RejectionReason | None = None
    guidance: str | None = None

    @classmethod
    def accept(cls) -> "ValidationResult":
        return cls(accepted=True)

    @classmethod
    def reject(cls, reason: RejectionReason) -> "ValidationResult":
        return cls(accepted=False, reason=reason, guidance=guidance_for(reason))


def find_generic_phrase(text: str, phrases: tuple[str, ...]) -> str | None:
    lowered = text.casefold()
    for phrase in phrases:
        if phrase in lowered:
            return phrase
    return None


def validate_evidence(evidence: CompletionEvidence | None, policy: EvidencePolicy) -> ValidationResult:
    if evidence is None:
        return ValidationResult.reject(RejectionReason.EVIDENCE_MISSING)

    description = evidence.description.strip()
    if not description:
        return ValidationResult.reject(RejectionReason.DESCRIPTION_EMPTY)

    if len(description) < policy.min_description_chars:
        return ValidationResult.reject(RejectionReason.DESCRIPTION_TOO_SHORT)

    if find_generic_phrase(description, policy.generic_phrases) is not None:
        return ValidationResult.reject(RejectionReason.GENERIC_RESPONSE)

    if not evidence.attachments and len(description) < policy.sufficient_description_chars:
        return ValidationResult.reject(RejectionReason.INSUFFICIENT_PROOF)

    return ValidationResult.accept()
