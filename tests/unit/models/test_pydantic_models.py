#!/usr/bin/env python3
"""
Unit Tests for Pydantic Models
Tests validation of request/response schemas
"""

import uuid
from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError

from docgov.api.v1.magic_links import MagicLinkCreateRequest, MagicLinkResponse
from docgov.api.v1.permissions import BulkGrantRequest, GrantPermissionRequest
from docgov.db.models import Document, Principal
from docgov.models.auth import GlobalRoleRequest, PrincipalCreateRequest, PrincipalResponse
from docgov.models.common import ErrorResponse, HealthResponse
from docgov.models.document import (
    DocumentMetadata,
    DocumentResponse,
    DocumentUpdateRequest,
    metadata_changes,
)
from docgov.models.magic_link import MagicLink
from docgov.services.document_permissions import BulkGrantResult
from docgov.services.magic_links import RedemptionResult


@pytest.mark.unit
class TestDocumentModels:
    """Test document-related Pydantic models"""

    def test_metadata_defaults(self):
        meta = DocumentMetadata()
        assert meta.title is None
        assert meta.document_type == "policy"
        assert meta.version == "1.0"
        assert meta.tags == []
        assert meta.tenant_ids == []

    def test_metadata_rejects_empty_version(self):
        with pytest.raises(ValidationError):
            DocumentMetadata(version="")

    def test_update_request_only_reports_set_fields(self):
        request = DocumentUpdateRequest.model_validate({"title": "New", "description": None})
        assert metadata_changes(request) == {"title": "New", "description": None}

    def test_update_request_rejects_empty_title(self):
        with pytest.raises(ValidationError):
            DocumentUpdateRequest(title="")

    def test_response_from_db_model(self):
        now = datetime(2024, 1, 1, 12, 0, 0)
        doc = Document(
            id=uuid.uuid4(),
            title="Policy",
            document_type="policy",
            status="draft",
            version="1.0",
            author_id=uuid.uuid4(),
            storage_path=None,
            created_at=now,
            updated_at=now,
        )

        response = DocumentResponse.from_db_model(doc)

        assert response.document_id == str(doc.id)
        assert response.tags == []
        assert response.has_file is False
        assert response.category_id is None


@pytest.mark.unit
class TestSharingModels:

    def test_grant_defaults_to_view_only(self):
        request = GrantPermissionRequest()
        assert request.can_view is True
        assert request.can_download is False

    def test_bulk_grant_needs_documents(self):
        with pytest.raises(ValidationError):
            BulkGrantRequest(document_ids=[], tenant_id=str(uuid.uuid4()))

    @pytest.mark.parametrize("field", ["ttl_days", "max_views"])
    def test_magic_link_limits_must_be_positive(self, field):
        with pytest.raises(ValidationError):
            MagicLinkCreateRequest(document_id=str(uuid.uuid4()), **{field: 0})

    def test_magic_link_response_state(self):
        now = datetime(2024, 1, 1)
        link = MagicLink(
            id=uuid.uuid4(),
            document_id=uuid.uuid4(),
            token="abc123abc123abc123abc123",
            created_by=uuid.uuid4(),
            created_at=now,
            expires_at=now + timedelta(days=1),
            max_views=1,
            view_count=1,
            is_active=True,
            revoked_at=None,
        )

        response = MagicLinkResponse.from_db_model(link, now)

        assert response.state == "exhausted"
        assert response.redeem_path.endswith(link.token)


@pytest.mark.unit
class TestPrincipalModels:

    def test_role_pattern(self):
        assert PrincipalCreateRequest(email="a@example.com").role == "standard"
        with pytest.raises(ValidationError):
            PrincipalCreateRequest(email="a@example.com", role="owner")
        with pytest.raises(ValidationError):
            GlobalRoleRequest(role="admin")

    def test_principal_response(self):
        principal = Principal(
            id=uuid.uuid4(),
            email="a@example.com",
            full_name="A",
            is_active=True,
            created_at=datetime(2024, 1, 1),
        )

        response = PrincipalResponse.from_db_model(principal, "super_admin")

        assert response.global_role == "super_admin"
        assert response.created_at == "2024-01-01T00:00:00"


@pytest.mark.unit
class TestErrorModel:

    def test_error_envelope(self):
        envelope = ErrorResponse.model_validate(
            {"error": {"code": "not_found", "message": "Document not found", "details": None, "timestamp": "t"}}
        )
        assert envelope.error.code == "not_found"

    def test_build_reports_empty_details_as_null(self):
        envelope = ErrorResponse.build("link_unavailable", "This link is no longer available", details={})

        dumped = envelope.model_dump()
        assert dumped["error"]["details"] is None
        assert dumped["error"]["timestamp"]


@pytest.mark.unit
class TestHealthModel:

    @pytest.mark.parametrize(
        "database_ok,storage_ok,expected",
        [
            (True, True, "healthy"),
            (True, False, "degraded"),
            (False, True, "unhealthy"),
            (False, False, "unhealthy"),
        ],
    )
    def test_overall_status(self, database_ok, storage_ok, expected):
        health = HealthResponse.from_checks("1.0.0", database_ok=database_ok, storage_ok=storage_ok)

        assert health.status == expected
        assert health.services["database"] == ("healthy" if database_ok else "unhealthy")
        assert health.services["storage"] == ("healthy" if storage_ok else "unhealthy")


@pytest.mark.unit
class TestServiceResults:

    def test_bulk_grant_result_counts_failures(self):
        ok, missing = uuid.uuid4(), uuid.uuid4()
        result = BulkGrantResult()
        result.granted.append(ok)
        result.failures[missing] = "not_found"

        assert result.failed == 1
        assert result.model_dump() == {"granted": [ok], "failures": {missing: "not_found"}}

    def test_bulk_grant_results_do_not_share_state(self):
        first, second = BulkGrantResult(), BulkGrantResult()
        first.granted.append(uuid.uuid4())

        assert second.granted == []

    def test_redemption_result_without_file(self):
        result = RedemptionResult(
            link_id=uuid.uuid4(),
            document_id=uuid.uuid4(),
            document_title="Policy",
            access_url=None,
            url_expires_in=3600,
            view_count=1,
        )

        assert result.access_url is None
        assert result.max_views is None

    def test_redemption_result_rejects_zero_views(self):
        with pytest.raises(ValidationError):
            RedemptionResult(
                link_id=uuid.uuid4(),
                document_id=uuid.uuid4(),
                document_title="Policy",
                access_url=None,
                url_expires_in=3600,
                view_count=0,
            )
