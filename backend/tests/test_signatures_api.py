"""
Tests for the signature request endpoints.

Covers creation, listing with filters, per-page placement, authenticated
finalize, signed-document download, and the public token flow.
"""

from httpx import AsyncClient

from tests.conftest import PlacementFactory, SignatureRequestFactory


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

class TestCreateSignatureRequest:
    """POST /api/signatures"""

    async def test_create_with_defaults(self, owner_client: AsyncClient, sample_document: dict):
        data = SignatureRequestFactory(document_id=sample_document["id"])
        resp = await owner_client.post("/api/signatures", json=data)
        assert resp.status_code == 201
        body = resp.json()
        assert body["status"] == "pending"
        assert body["document_filename"] == "contract.pdf"
        assert body["public_url"] == f"http://signing.test/sign/{body['token']}"
        assert body["has_signed_document"] is False
        assert body["pages"] == [
            {
                "page": 1,
                "x": 100.0,
                "y": 100.0,
                "signature_text": "",
                "font_size": 16,
                "font_family": "Arial",
                "color": "#1E40AF",
                "is_bold": False,
                "is_underline": False,
            }
        ]

    async def test_create_invalid_email(self, owner_client: AsyncClient, sample_document: dict):
        data = SignatureRequestFactory(document_id=sample_document["id"], signer_email="not-an-email")
        resp = await owner_client.post("/api/signatures", json=data)
        assert resp.status_code == 422

    async def test_create_on_foreign_document(self, outsider_client: AsyncClient, sample_document: dict):
        data = SignatureRequestFactory(document_id=sample_document["id"])
        resp = await outsider_client.post("/api/signatures", json=data)
        assert resp.status_code == 403

    async def test_create_requires_auth(self, client: AsyncClient, sample_document: dict):
        data = SignatureRequestFactory(document_id=sample_document["id"])
        resp = await client.post("/api/signatures", json=data)
        assert resp.status_code in (401, 403)


# ---------------------------------------------------------------------------
# List / detail
# ---------------------------------------------------------------------------

class TestListSignatureRequests:
    """GET /api/signatures/my-requests"""

    async def test_owner_and_signer_both_see_request(
        self, owner_client: AsyncClient, signer_client: AsyncClient, sample_request: dict,
    ):
        for http in (owner_client, signer_client):
            resp = await http.get("/api/signatures/my-requests")
            assert resp.status_code == 200
            body = resp.json()
            assert body["total"] == 1
            assert body["page_size"] == 5
            assert body["items"][0]["id"] == sample_request["id"]

    async def test_outsider_sees_nothing(self, outsider_client: AsyncClient, sample_request: dict):
        resp = await outsider_client.get("/api/signatures/my-requests")
        assert resp.json()["total"] == 0

    async def test_filter_by_status(self, owner_client: AsyncClient, sample_request: dict):
        resp = await owner_client.get("/api/signatures/my-requests", params={"status": "signed"})
        assert resp.json()["total"] == 0
        resp = await owner_client.get("/api/signatures/my-requests", params={"status": "pending"})
        assert resp.json()["total"] == 1

    async def test_search(self, owner_client: AsyncClient, sample_request: dict):
        resp = await owner_client.get("/api/signatures/my-requests", params={"search": "contract"})
        assert resp.json()["total"] == 1
        resp = await owner_client.get("/api/signatures/my-requests", params={"search": "zzz"})
        assert resp.json()["total"] == 0

    async def test_pagination(self, owner_client: AsyncClient, sample_document: dict):
        for _ in range(7):
            data = SignatureRequestFactory(document_id=sample_document["id"])
            await owner_client.post("/api/signatures", json=data)
        resp = await owner_client.get("/api/signatures/my-requests", params={"page": 2})
        body = resp.json()
        assert body["total"] == 7
        assert body["total_pages"] == 2
        assert len(body["items"]) == 2


class TestSignatureRequestDetail:
    """GET /api/signatures/{id}"""

    async def test_signer_can_view(self, signer_client: AsyncClient, sample_request: dict):
        resp = await signer_client.get(f"/api/signatures/{sample_request['id']}")
        assert resp.status_code == 200
        assert resp.json()["signer_email"] == "signer@example.com"

    async def test_outsider_is_denied(self, outsider_client: AsyncClient, sample_request: dict):
        resp = await outsider_client.get(f"/api/signatures/{sample_request['id']}")
        assert resp.status_code == 403
        assert resp.json()["detail"]["error"] == "permission_denied"


# ---------------------------------------------------------------------------
# Place
# ---------------------------------------------------------------------------

class TestPlaceSignature:
    """PUT /api/signatures/{id}/pages/{page}"""

    async def test_place_replaces_entry_for_page(self, signer_client: AsyncClient, sample_request: dict):
        url = f"/api/signatures/{sample_request['id']}/pages/2"
        for _ in range(3):
            resp = await signer_client.put(url, json=PlacementFactory())
            assert resp.status_code == 200
        resp = await signer_client.put(url, json={"x": 10, "y": 20, "signature_text": "A", "is_bold": True})
        assert resp.json()["x"] == 10

        resp = await signer_client.get(f"/api/signatures/{sample_request['id']}")
        pages = resp.json()["pages"]
        assert [p["page"] for p in pages] == [1, 2]
        assert pages[1]["signature_text"] == "A"
        assert pages[1]["is_bold"] is True

    async def test_place_maps_screen_pixels(self, owner_client: AsyncClient, sample_request: dict):
        resp = await owner_client.put(
            f"/api/signatures/{sample_request['id']}/pages/1",
            json={"x": 100, "y": 50, "render_width": 1600},
        )
        body = resp.json()
        assert (body["x"], body["y"]) == (50, 25)

    async def test_place_page_99(self, owner_client: AsyncClient, sample_request: dict):
        resp = await owner_client.put(f"/api/signatures/{sample_request['id']}/pages/99", json={"x": 1, "y": 1})
        assert resp.status_code == 422
        detail = resp.json()["detail"]
        assert detail["error"] == "invalid_page"
        assert detail["kind"] == "fix_input"

        resp = await owner_client.get(f"/api/signatures/{sample_request['id']}")
        assert [p["page"] for p in resp.json()["pages"]] == [1]

    async def test_place_zero_render_width(self, owner_client: AsyncClient, sample_request: dict):
        resp = await owner_client.put(
            f"/api/signatures/{sample_request['id']}/pages/1",
            json={"x": 1, "y": 1, "render_width": 0},
        )
        assert resp.status_code == 422
        assert resp.json()["detail"]["error"] == "invalid_render_state"

    async def test_outsider_cannot_place(self, outsider_client: AsyncClient, sample_request: dict):
        resp = await outsider_client.put(f"/api/signatures/{sample_request['id']}/pages/1", json={"x": 1, "y": 1})
        assert resp.status_code == 403


class TestOpenPageAndDrag:
    """GET /api/signatures/{id}/pages/{page} and POST .../pages/{page}/drag"""

    async def test_open_page_defaults_then_stored(self, signer_client: AsyncClient, sample_request: dict):
        url = f"/api/signatures/{sample_request['id']}/pages/2"
        resp = await signer_client.get(url)
        assert resp.status_code == 200
        assert (resp.json()["x"], resp.json()["y"], resp.json()["font_size"]) == (100, 100, 16)

        await signer_client.put(url, json={"x": 30, "y": 40, "signature_text": "A"})
        resp = await signer_client.get(url)
        assert (resp.json()["x"], resp.json()["y"], resp.json()["signature_text"]) == (30, 40, "A")

    async def test_drag_applies_scaled_delta(self, owner_client: AsyncClient, sample_request: dict):
        url = f"/api/signatures/{sample_request['id']}/pages/1/drag"
        resp = await owner_client.post(url, json={"dx": 20, "dy": 10, "render_width": 400})
        assert resp.status_code == 200
        assert (resp.json()["x"], resp.json()["y"]) == (140, 120)

        resp = await owner_client.post(url, json={"dx": 20, "dy": 10, "render_width": 400})
        assert (resp.json()["x"], resp.json()["y"]) == (180, 140)

    async def test_drag_zero_render_width(self, owner_client: AsyncClient, sample_request: dict):
        resp = await owner_client.post(
            f"/api/signatures/{sample_request['id']}/pages/1/drag",
            json={"dx": 1, "dy": 1, "render_width": 0},
        )
        assert resp.status_code == 422
        assert resp.json()["detail"]["error"] == "invalid_render_state"

    async def test_outsider_cannot_open_page(self, outsider_client: AsyncClient, sample_request: dict):
        resp = await outsider_client.get(f"/api/signatures/{sample_request['id']}/pages/1")
        assert resp.status_code == 403


# ---------------------------------------------------------------------------
# Authenticated finalize + download
# ---------------------------------------------------------------------------

class TestFinalize:
    """POST /api/signatures/finalize"""

    async def test_finalize_then_download(self, signer_client: AsyncClient, sample_request: dict, embedder):
        resp = await signer_client.post(
            "/api/signatures/finalize",
            json={"signature_id": sample_request["id"], "signature_text": "Sam Signer", "font_family": "Georgia"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "signed"
        assert body["signed_by"] == "signer@example.com"
        assert len(embedder.calls) == 1

        resp = await signer_client.get(f"/api/signatures/{sample_request['id']}/signed-document")
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "application/pdf"
        assert "signed-contract.pdf" in resp.headers["content-disposition"]
        assert resp.content.startswith(b"%PDF")

    async def test_second_finalize_is_closed(self, owner_client: AsyncClient, sample_request: dict, embedder):
        payload = {"signature_id": sample_request["id"], "signature_text": "Olivia"}
        assert (await owner_client.post("/api/signatures/finalize", json=payload)).status_code == 200
        resp = await owner_client.post("/api/signatures/finalize", json=payload)
        assert resp.status_code == 409
        assert resp.json()["detail"]["kind"] == "closed"
        assert len(embedder.calls) == 1

    async def test_finalize_without_text(self, owner_client: AsyncClient, sample_request: dict):
        resp = await owner_client.post("/api/signatures/finalize", json={"signature_id": sample_request["id"]})
        assert resp.status_code == 412
        assert resp.json()["detail"]["error"] == "precondition_failed"

    async def test_finalize_with_placement(self, owner_client: AsyncClient, sample_request: dict):
        resp = await owner_client.post(
            "/api/signatures/finalize",
            json={"signature_id": sample_request["id"], "signature_text": "Olivia", "page": 3, "x": 5, "y": 5},
        )
        assert resp.status_code == 200
        resp = await owner_client.get(f"/api/signatures/{sample_request['id']}")
        assert [p["page"] for p in resp.json()["pages"]] == [1, 3]

    async def test_outsider_cannot_finalize(self, outsider_client: AsyncClient, sample_request: dict):
        resp = await outsider_client.post(
            "/api/signatures/finalize",
            json={"signature_id": sample_request["id"], "signature_text": "Oscar"},
        )
        assert resp.status_code == 403

    async def test_embed_failure_is_retryable(
        self, owner_client: AsyncClient, sample_request: dict, failing_embedder,
    ):
        from docsign.dependencies import get_embedder
        from docsign.main import app

        app.dependency_overrides[get_embedder] = lambda: failing_embedder
        resp = await owner_client.post(
            "/api/signatures/finalize",
            json={"signature_id": sample_request["id"], "signature_text": "Olivia"},
        )
        assert resp.status_code == 503
        assert resp.json()["detail"]["kind"] == "retry_later"

        resp = await owner_client.get(f"/api/signatures/{sample_request['id']}")
        assert resp.json()["status"] == "pending"

    async def test_finalize_page_outside_document(self, owner_client: AsyncClient, sample_request: dict, embedder):
        resp = await owner_client.post(
            "/api/signatures/finalize",
            json={"signature_id": sample_request["id"], "signature_text": "Olivia", "page": 99},
        )
        assert resp.status_code == 422
        assert resp.json()["detail"]["error"] == "invalid_page"
        assert embedder.calls == []

    async def test_embed_failure_keeps_pages_unchanged(
        self, owner_client: AsyncClient, sample_request: dict, failing_embedder,
    ):
        from docsign.dependencies import get_embedder
        from docsign.main import app

        app.dependency_overrides[get_embedder] = lambda: failing_embedder
        resp = await owner_client.post(
            "/api/signatures/finalize",
            json={"signature_id": sample_request["id"], "signature_text": "Olivia", "page": 3, "x": 10, "y": 20},
        )
        assert resp.status_code == 503

        resp = await owner_client.get(f"/api/signatures/{sample_request['id']}")
        body = resp.json()
        assert body["status"] == "pending"
        assert body["has_signed_document"] is False
        assert [p["page"] for p in body["pages"]] == [1]

    async def test_download_before_signing(self, owner_client: AsyncClient, sample_request: dict):
        resp = await owner_client.get(f"/api/signatures/{sample_request['id']}/signed-document")
        assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Public token flow
# ---------------------------------------------------------------------------

class TestPublicSigning:
    """/api/signatures/details/{token}, /public/{token}, /finalize-public"""

    async def test_details_without_login(self, client: AsyncClient, sample_request: dict):
        resp = await client.get(f"/api/signatures/details/{sample_request['token']}")
        assert resp.status_code == 200
        body = resp.json()
        assert body["id"] == sample_request["id"]
        assert body["status"] == "pending"
        assert body["page_count"] == 5
        assert body["reference_width"] == 800
        assert body["document_filename"] == "contract.pdf"
        assert "owner_id" not in body
        assert "token" not in body

    async def test_unknown_token(self, client: AsyncClient):
        resp = await client.get("/api/signatures/details/does-not-exist")
        assert resp.status_code == 404

    async def test_public_document(self, client: AsyncClient, sample_request: dict):
        resp = await client.get(f"/api/signatures/public/{sample_request['token']}")
        assert resp.status_code == 200
        assert resp.content.startswith(b"%PDF")

    async def test_reject_sign_then_closed(self, client: AsyncClient, sample_request: dict, embedder):
        token = sample_request["token"]
        resp = await client.post(
            "/api/signatures/finalize-public",
            json={"token": token, "action": "reject", "name": "", "reason": "too small"},
        )
        assert resp.status_code == 422
        assert resp.json()["detail"]["error"] == "validation_error"

        resp = await client.post(
            "/api/signatures/finalize-public",
            json={"token": token, "action": "sign", "name": "Jane", "reason": ""},
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "signed"
        assert resp.json()["signed_by"] == "Jane"

        resp = await client.post(
            "/api/signatures/finalize-public",
            json={"token": token, "action": "reject", "name": "Jane", "reason": "oops"},
        )
        assert resp.status_code == 409
        assert resp.json()["detail"]["kind"] == "closed"
        assert len(embedder.calls) == 1

    async def test_reject(self, client: AsyncClient, owner_client: AsyncClient, sample_request: dict):
        resp = await client.post(
            "/api/signatures/finalize-public",
            json={"token": sample_request["token"], "action": "reject", "name": "Jane", "reason": "Wrong date"},
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "rejected"
        assert resp.json()["rejection_reason"] == "Wrong date"

        resp = await owner_client.get(f"/api/signatures/{sample_request['id']}")
        body = resp.json()
        assert body["rejected_by"] == "Jane"
        assert body["has_signed_document"] is False

    async def test_unknown_action(self, client: AsyncClient, sample_request: dict):
        resp = await client.post(
            "/api/signatures/finalize-public",
            json={"token": sample_request["token"], "action": "approve", "name": "Jane"},
        )
        assert resp.status_code == 422

    async def test_email_and_token_paths_share_one_outcome(
        self, client: AsyncClient, signer_client: AsyncClient, sample_request: dict, embedder,
    ):
        resp = await client.post(
            "/api/signatures/finalize-public",
            json={"token": sample_request["token"], "action": "sign", "name": "Sam"},
        )
        assert resp.status_code == 200
        resp = await signer_client.post(
            "/api/signatures/finalize",
            json={"signature_id": sample_request["id"], "signature_text": "Sam"},
        )
        assert resp.status_code == 409
        assert len(embedder.calls) == 1
