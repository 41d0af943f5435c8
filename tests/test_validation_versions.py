"""
Tests for Field Validation, Completeness, Version Chains and the Store

Tests covering:
1. Field rules on create and partial update
2. Completeness gate for submit-for-review
3. Version hash chain integrity and tamper detection
4. Store token index and JSON persistence
"""

from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest

from conftest import COMPLETE_DATA
from editorial.submission.repository import InMemorySubmissionStore
from editorial.submission.schema import Submission, generate_id, utc_now
from editorial.submission.tokens import generate_token_value
from editorial.submission.validation import (
    check_completeness,
    has_significant_changes,
    is_valid_email,
    normalize_keywords,
    validate_submission_data,
)
from editorial.submission.versions import SubmissionVersion, verify_version_chain


def _submission(**overrides) -> Submission:
    now = utc_now()
    data = dict(
        id=generate_id(),
        token=generate_token_value(),
        author_name="Maria Silva",
        author_email="autora@example.com",
        title="Ensaio sobre o tempo",
        expires_at=now,
        created_at=now,
        updated_at=now,
    )
    data.update(overrides)
    return Submission(**data)


# =============================================================================
# Field Rules
# =============================================================================


class TestValidateSubmissionData:
    def test_complete_data_is_valid(self):
        result = validate_submission_data(COMPLETE_DATA)
        assert result.valid
        assert result.errors == ()

    def test_missing_required_fields_on_create(self):
        result = validate_submission_data({})
        assert not result.valid
        assert len(result.errors) == 3

    def test_partial_update_checks_only_present_fields(self):
        assert validate_submission_data({"summary": "curto"}, require_all=False).valid
        assert not validate_submission_data({"title": "abc"}, require_all=False).valid

    def test_title_bounds(self):
        too_long = {**COMPLETE_DATA, "title": "t" * 201}
        assert "Título muito longo (máx. 200 caracteres)" in validate_submission_data(too_long).errors
        assert validate_submission_data({**COMPLETE_DATA, "title": "t" * 200}).valid

    def test_length_limits(self):
        data = {**COMPLETE_DATA, "summary": "s" * 501, "content": "c" * 50001}
        assert len(validate_submission_data(data).errors) == 2

    def test_keywords(self):
        assert not validate_submission_data({**COMPLETE_DATA, "keywords": "café"}).valid
        assert not validate_submission_data({**COMPLETE_DATA, "keywords": ["k"] * 11}).valid
        assert validate_submission_data({**COMPLETE_DATA, "keywords": ["k"] * 10}).valid

    def test_unknown_category(self):
        result = validate_submission_data({**COMPLETE_DATA, "category": "Culinária"})
        assert result.errors[0].startswith("Categoria inválida")

    @pytest.mark.parametrize(
        "email, expected",
        [
            ("autora@example.com", True),
            (" autora@example.com ", True),
            ("autora@example", False),
            ("autora example.com", False),
            (None, False),
        ],
    )
    def test_email_format(self, email, expected):
        assert is_valid_email(email) is expected

    def test_normalize_keywords(self):
        assert normalize_keywords([" café ", "", "  ", "tempo"]) == ["café", "tempo"]
        assert normalize_keywords(None) == []


# =============================================================================
# Completeness
# =============================================================================


class TestCompleteness:
    def test_complete(self):
        submission = _submission(
            summary=COMPLETE_DATA["summary"],
            content=COMPLETE_DATA["content"],
            category="Filosofia",
            keywords=["tempo"],
        )
        report = check_completeness(submission)
        assert report.is_complete
        assert report.completeness_percentage == 100

    def test_minimum_lengths(self):
        submission = _submission(
            summary="s" * 49,
            content="c" * 99,
            category="Filosofia",
            keywords=["tempo"],
        )
        report = check_completeness(submission)
        assert report.missing_fields == ("summary", "content")
        assert report.completeness_percentage == 60

    def test_significant_changes(self):
        submission = _submission(content="texto")
        assert has_significant_changes(submission, {"content": "outro"})
        assert not has_significant_changes(submission, {"content": "texto"})
        assert not has_significant_changes(submission, {"keywords": ["novo"]})


# =============================================================================
# Version Chain
# =============================================================================


class TestVersionChain:
    def _chain(self, length: int = 3) -> list[SubmissionVersion]:
        submission = _submission(content="v1")
        versions: list[SubmissionVersion] = []
        for number in range(1, length + 1):
            submission.content = f"conteúdo {number}"
            versions.append(
                SubmissionVersion.create(
                    submission,
                    version_number=number,
                    change_summary=f"v{number}",
                    previous=versions[-1] if versions else None,
                )
            )
        return versions

    def test_chain_links_previous_hash(self):
        versions = self._chain()
        assert versions[0].previous_version_hash is None
        assert versions[1].previous_version_hash == versions[0].version_hash
        assert verify_version_chain(versions) == {"valid": True, "broken_at": None, "error": None}

    def test_tampered_content_is_detected(self):
        versions = self._chain()
        versions[1] = replace(versions[1], content="editado por fora")

        result = verify_version_chain(versions)

        assert not result["valid"]
        assert result["broken_at"] == 2
        assert result["error"] == "Hash mismatch at version 2"

    def test_missing_link_is_detected(self):
        versions = self._chain()
        del versions[1]

        result = verify_version_chain(versions)

        assert result["broken_at"] == 3
        assert result["error"] == "Chain broken at version 3"

    def test_dict_round_trip_keeps_chain_valid(self):
        versions = [SubmissionVersion.from_dict(v.to_dict()) for v in self._chain()]
        assert verify_version_chain(versions)["valid"]


# =============================================================================
# Store
# =============================================================================


class TestInMemoryStore:
    @pytest.mark.asyncio
    async def test_rows_are_copies(self, store):
        submission = await store.insert_submission(_submission())

        fetched = await store.get_submission(submission.id)
        fetched.title = "Alterado"

        assert (await store.get_submission(submission.id)).title == "Ensaio sobre o tempo"

    @pytest.mark.asyncio
    async def test_token_rotation_updates_index(self, store):
        submission = await store.insert_submission(_submission())
        new_token = generate_token_value()

        await store.update_submission(submission.id, token=new_token)

        assert await store.get_submission_by_token(submission.token) is None
        assert (await store.get_submission_by_token(new_token)).id == submission.id

    @pytest.mark.asyncio
    async def test_duplicate_token_rejected(self, store):
        first = await store.insert_submission(_submission())
        with pytest.raises(ValueError):
            await store.insert_submission(_submission(token=first.token))

    @pytest.mark.asyncio
    async def test_unknown_fields_rejected(self, store):
        submission = await store.insert_submission(_submission())
        with pytest.raises(ValueError):
            await store.update_submission(submission.id, author_email="x@y.com")

    @pytest.mark.asyncio
    async def test_persists_to_json(self, tmp_path):
        path = tmp_path / "portal.json"
        store = InMemorySubmissionStore(str(path))
        submission = await store.insert_submission(_submission(keywords=["tempo"]))
        await store.insert_version(
            SubmissionVersion.create(submission, version_number=1, change_summary="Versão inicial")
        )

        reloaded = InMemorySubmissionStore(str(path))

        restored = await reloaded.get_submission_by_token(submission.token)
        assert restored.id == submission.id
        assert restored.keywords == ["tempo"]
        assert restored.expires_at == submission.expires_at
        assert verify_version_chain(await reloaded.list_versions(submission.id))["valid"]

    @pytest.mark.asyncio
    async def test_file_write_runs_in_worker_thread(self, tmp_path, monkeypatch):
        calls = []
        real_to_thread = asyncio.to_thread

        async def recording_to_thread(func, *args, **kwargs):
            calls.append(func.__name__)
            return await real_to_thread(func, *args, **kwargs)

        monkeypatch.setattr(asyncio, "to_thread", recording_to_thread)
        store = InMemorySubmissionStore(str(tmp_path / "portal.json"))

        await store.insert_submission(_submission())

        assert calls == ["_write_file"]
        assert (tmp_path / "portal.json").exists()

    @pytest.mark.asyncio
    async def test_corrupt_file_starts_empty(self, tmp_path):
        path = tmp_path / "portal.json"
        path.write_text("{not json")

        store = InMemorySubmissionStore(str(path))

        assert await store.list_submissions() == []
