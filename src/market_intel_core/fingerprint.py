"""Deterministic input fingerprints for analysis cache freshness."""

from __future__ import annotations

import hashlib
import json
from typing import Any

from market_intel_core.models.analysis import AnalysisRequest, RequesterProfile


def _clean(value: str | None) -> str | None:
    """Collapse internal whitespace and trim; empty strings become None."""
    if value is None:
        return None
    collapsed = " ".join(value.split())
    return collapsed or None


def _digest(data: dict[str, Any]) -> str:
    """SHA-256 over canonical JSON (sorted keys, no insignificant whitespace)."""
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=True)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def canonical_profile(profile: RequesterProfile) -> dict[str, Any]:
    """The profile subset that affects report content, in canonical form.

    Free-text ``summary`` is excluded; it only colours prompt wording.
    """
    skills = sorted({s.lower() for s in (_clean(skill) for skill in profile.skills) if s})
    return {
        "career_level": profile.career_level,
        "years_of_experience": float(profile.years_of_experience),
        "skills": skills,
        "location": _clean(profile.location),
        "current_salary": profile.current_salary,
        "expected_salary": profile.expected_salary,
        "currency": (profile.currency or "").strip().upper(),
        "work_mode": profile.work_mode,
        "willing_to_relocate": profile.willing_to_relocate,
        "has_resume": profile.has_resume,
    }


def profile_fingerprint(profile: RequesterProfile) -> str:
    """Digest of the canonical profile subset."""
    return _digest(canonical_profile(profile))


def canonical_job(request: AnalysisRequest) -> dict[str, Any]:
    """The job fields that affect report content, in canonical form."""
    return {
        "job_title": _clean(request.job_title),
        "company": _clean(request.company),
        "location": _clean(request.location),
        "job_description": _clean(request.job_description),
        "requirements": _clean(request.requirements),
        "posted_salary": _clean(request.posted_salary),
    }


def compute_input_hash(request: AnalysisRequest) -> str:
    """Order-independent digest of job content plus the profile fingerprint.

    Stable across processes: no salting, no timestamps, canonical JSON only.
    """
    return _digest(
        {
            "job": canonical_job(request),
            "profile": profile_fingerprint(request.profile),
        }
    )
