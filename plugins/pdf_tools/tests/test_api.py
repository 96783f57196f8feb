import base64
import json
import zipfile
from io import BytesIO

from PyPDF2 import PdfReader, PdfWriter

from app import create_app


def _make_client():
    app = create_app("TestingConfig")
    return app.test_client()


def _dummy_pdf(pages: int = 1) -> bytes:
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=200, height=200)
    buf = BytesIO()
    writer.write(buf)
    return buf.getvalue()


def _page_count(data: bytes) -> int:
    return len(PdfReader(BytesIO(data)).pages)


def _post(client, path: str, data: dict):
    return client.post(path, data=data, content_type="multipart/form-data")


def test_validate_ranges_reports_intervals_and_count():
    client = _make_client()
    response = client.post(
        "/api/pdf_tools/ranges/validate",
        json={"ranges": "1-3, 5, 7-10", "total_pages": 12},
    )
    assert response.status_code == 200
    payload = response.get_json()["data"]
    assert payload["count"] == 3
    assert payload["normalized"] == "1-3, 5, 7-10"
    assert payload["intervals"][1] == {"start": 5, "end": 5, "pages": 1}


def test_validate_ranges_returns_structured_error():
    client = _make_client()
    response = client.post(
        "/api/pdf_tools/ranges/validate?lang=en",
        json={"ranges": "1, 6", "total_pages": 5},
    )
    assert response.status_code == 400
    error = response.get_json()["error"]
    assert error["code"] == "pdf.page_out_of_bounds"
    assert error["details"] == {
        "kind": "page_out_of_bounds",
        "token": " 6",
        "total_pages": 5,
        "position": 1,
    }
    assert error["message"] == "Page 6 does not exist. The PDF has 5 pages."


def test_validate_ranges_uses_configured_spanish_by_default():
    client = _make_client()
    response = _post(client, "/api/pdf_tools/ranges/validate", {"ranges": "3-1", "total_pages": "5"})
    assert response.status_code == 400
    error = response.get_json()["error"]
    assert error["code"] == "pdf.inverted_range"
    assert error["message"].startswith("El inicio del rango")


def test_validate_ranges_rejects_bad_request_payload():
    client = _make_client()
    response = client.post(
        "/api/pdf_tools/ranges/validate", json={"ranges": "1", "total_pages": -3}
    )
    assert response.status_code == 400
    assert response.get_json()["error"]["code"] == "pdf.invalid_range_request"


def test_validate_ranges_rejects_empty_input():
    client = _make_client()
    response = client.post(
        "/api/pdf_tools/ranges/validate", json={"ranges": "  ", "total_pages": 3}
    )
    assert response.status_code == 400
    assert response.get_json()["error"]["code"] == "pdf.empty_input"


def test_merge_endpoint_returns_pdf():
    client = _make_client()
    manifest = [
        {"field": "file-0", "filename": "a.pdf", "pages": "1"},
        {"field": "file-1", "filename": "b.pdf", "pages": "all"},
    ]
    data = {
        "manifest": json.dumps(manifest),
        "output_name": "merged",
        "file-0": (BytesIO(_dummy_pdf(2)), "a.pdf"),
        "file-1": (BytesIO(_dummy_pdf(1)), "b.pdf"),
    }
    response = _post(client, "/api/pdf_tools/merge", data)
    assert response.status_code == 200
    payload = response.get_json()
    assert payload["success"] is True
    data_payload = payload["data"]
    assert data_payload["filename"] == "merged.pdf"
    assert data_payload["total_files"] == 2
    merged_bytes = base64.b64decode(data_payload["pdf_base64"])
    assert merged_bytes.startswith(b"%PDF")
    assert _page_count(merged_bytes) == 2


def test_merge_uses_default_name_when_blank():
    client = _make_client()
    manifest = [{"field": "a"}, {"field": "b"}]
    data = {
        "manifest": json.dumps(manifest),
        "a": (BytesIO(_dummy_pdf()), "a.pdf"),
        "b": (BytesIO(_dummy_pdf()), "b.pdf"),
    }
    response = _post(client, "/api/pdf_tools/merge", data)
    assert response.status_code == 200
    assert response.get_json()["data"]["filename"] == "documento_final.pdf"


def test_merge_rejects_bad_manifest():
    client = _make_client()
    data = {
        "file-0": (BytesIO(_dummy_pdf()), "a.pdf"),
    }
    response = _post(client, "/api/pdf_tools/merge", data)
    assert response.status_code == 400
    assert response.get_json()["success"] is False


def test_merge_requires_two_files():
    client = _make_client()
    data = {
        "manifest": json.dumps([{"field": "file-0"}]),
        "file-0": (BytesIO(_dummy_pdf()), "a.pdf"),
    }
    response = _post(client, "/api/pdf_tools/merge", data)
    assert response.status_code == 400
    assert response.get_json()["error"]["code"] == "pdf.merge_requires_two"


def test_merge_rejects_reserved_output_name():
    client = _make_client()
    data = {
        "manifest": json.dumps([{"field": "a"}, {"field": "b"}]),
        "output_name": "CON",
        "a": (BytesIO(_dummy_pdf()), "a.pdf"),
        "b": (BytesIO(_dummy_pdf()), "b.pdf"),
    }
    response = _post(client, "/api/pdf_tools/merge", data)
    assert response.status_code == 400
    assert response.get_json()["error"]["code"] == "pdf.reserved_output_name"


def test_merge_reports_page_range_errors_by_kind():
    client = _make_client()
    data = {
        "manifest": json.dumps([{"field": "a", "pages": "1-4"}, {"field": "b"}]),
        "a": (BytesIO(_dummy_pdf(2)), "a.pdf"),
        "b": (BytesIO(_dummy_pdf()), "b.pdf"),
    }
    response = _post(client, "/api/pdf_tools/merge", data)
    assert response.status_code == 400
    error = response.get_json()["error"]
    assert error["code"] == "pdf.page_out_of_bounds"
    assert error["details"]["total_pages"] == 2


def test_merge_respects_file_limit():
    client = _make_client()
    manifest = []
    data: dict[str, object] = {"output_name": "merged.pdf"}
    for index in range(21):
        field = f"file-{index}"
        manifest.append(
            {"field": field, "filename": f"doc-{index}.pdf", "pages": "all"}
        )
        data[field] = (BytesIO(_dummy_pdf()), f"doc-{index}.pdf")
    data["manifest"] = json.dumps(manifest)

    response = _post(client, "/api/pdf_tools/merge", data)
    assert response.status_code == 400
    payload = response.get_json()
    assert payload["success"] is False
    assert payload["error"]["code"] == "pdf.invalid_upload"


def test_merge_allows_attachment_download():
    client = _make_client()
    manifest = [{"field": "a"}, {"field": "b"}]
    data = {
        "manifest": json.dumps(manifest),
        "output_name": "both",
        "a": (BytesIO(_dummy_pdf()), "a.pdf"),
        "b": (BytesIO(_dummy_pdf()), "b.pdf"),
    }
    response = _post(client, "/api/pdf_tools/merge?download=1", data)
    assert response.status_code == 200
    disposition = response.headers.get("Content-Disposition", "")
    assert disposition.startswith("attachment;")
    assert "both.pdf" in disposition
    assert response.data.startswith(b"%PDF")


def test_split_without_ranges_returns_every_page():
    client = _make_client()
    data = {
        "file": (BytesIO(_dummy_pdf(2)), "sample.pdf"),
    }
    response = _post(client, "/api/pdf_tools/split", data)
    assert response.status_code == 200
    payload = response.get_json()
    assert payload["success"] is True
    data_payload = payload["data"]
    assert data_payload["page_count"] == 2
    assert data_payload["count"] == 2
    assert [item["name"] for item in data_payload["files"]] == [
        "sample_página 1.pdf",
        "sample_página 2.pdf",
    ]


def test_split_rejects_blank_ranges_field():
    client = _make_client()
    data = {
        "file": (BytesIO(_dummy_pdf(2)), "sample.pdf"),
        "ranges": "   ",
    }
    response = _post(client, "/api/pdf_tools/split", data)
    assert response.status_code == 400
    error = response.get_json()["error"]
    assert error["code"] == "pdf.empty_input"
    assert error["message"] == "Debes especificar al menos un rango o página."


def test_split_with_ranges_produces_one_file_per_interval():
    client = _make_client()
    data = {
        "file": (BytesIO(_dummy_pdf(5)), "sample.pdf"),
        "ranges": "1-3, 5, 2-3",
    }
    response = _post(client, "/api/pdf_tools/split", data)
    assert response.status_code == 200
    payload = response.get_json()["data"]
    assert payload["count"] == 3
    files = payload["files"]
    assert [item["label"] for item in files] == ["páginas 1-3", "página 5", "páginas 2-3"]
    assert [(item["start"], item["end"]) for item in files] == [(1, 3), (5, 5), (2, 3)]
    assert [_page_count(base64.b64decode(item["pdf_base64"])) for item in files] == [3, 1, 2]


def test_split_rejects_out_of_range_ranges():
    client = _make_client()
    data = {
        "file": (BytesIO(_dummy_pdf(2)), "sample.pdf"),
        "ranges": "5-6",
    }
    response = _post(client, "/api/pdf_tools/split", data)
    assert response.status_code == 400
    payload = response.get_json()
    assert payload["success"] is False
    assert payload["error"]["code"] == "pdf.page_out_of_bounds"
    assert payload["error"]["details"]["token"] == "5-6"


def test_split_rejects_malformed_ranges():
    client = _make_client()
    data = {
        "file": (BytesIO(_dummy_pdf(4)), "sample.pdf"),
        "ranges": "2--4",
    }
    response = _post(client, "/api/pdf_tools/split?lang=en", data)
    assert response.status_code == 400
    error = response.get_json()["error"]
    assert error["code"] == "pdf.malformed_token"
    assert error["message"] == 'Invalid range: "2--4". Use a format like "1-3".'


def test_split_download_zip_uses_interval_names():
    client = _make_client()
    data = {
        "file": (BytesIO(_dummy_pdf(3)), "sample.pdf"),
        "ranges": "1, 2-3",
    }
    response = _post(client, "/api/pdf_tools/split?download=1", data)
    assert response.status_code == 200
    assert response.headers.get("Content-Type") == "application/zip"
    assert response.headers.get("Content-Disposition", "").endswith("sample_split.zip")
    with zipfile.ZipFile(BytesIO(response.data), "r") as zf:
        names = zf.namelist()
    assert names == ["sample_página 1.pdf", "sample_páginas 2-3.pdf"]


def test_metadata_endpoint_reports_pages_and_size():
    client = _make_client()
    data = {"file": (BytesIO(_dummy_pdf(3)), "meta.pdf")}
    response = _post(client, "/api/pdf_tools/metadata", data)
    assert response.status_code == 200
    payload = response.get_json()
    assert payload["success"] is True
    assert payload["data"]["pages"] == 3
    assert payload["data"]["size_bytes"] > 0
    assert payload["data"]["size_label"].endswith(("B", "KB"))


def test_metadata_rejects_fake_pdf_signature():
    client = _make_client()
    data = {"file": (BytesIO(b"not really a pdf"), "fake.pdf")}
    response = _post(client, "/api/pdf_tools/metadata", data)
    assert response.status_code == 400
    payload = response.get_json()
    assert payload["success"] is False
    assert "signature" in payload["error"]["message"].lower()


def test_compression_levels_endpoint_lists_presets():
    client = _make_client()
    response = client.get("/api/pdf_tools/compress/levels")
    assert response.status_code == 200
    payload = response.get_json()["data"]
    assert payload["default"] == "medium"
    assert [level["name"] for level in payload["levels"]] == ["low", "medium", "high"]


def test_compress_reports_sizes_and_skips_duplicates():
    client = _make_client()
    first = _dummy_pdf(2)
    data = {
        "level": "high",
        "file": [
            (BytesIO(first), "a.pdf"),
            (BytesIO(_dummy_pdf(1)), "b.pdf"),
            (BytesIO(first), "a.pdf"),
        ],
    }
    response = _post(client, "/api/pdf_tools/compress", data)
    assert response.status_code == 200
    payload = response.get_json()["data"]
    assert payload["level"] == "high"
    assert payload["skipped"] == ["a.pdf"]
    names = [item["name"] for item in payload["files"]]
    assert names == ["a_comprimido.pdf", "b_comprimido.pdf"]
    first_result = payload["files"][0]
    assert first_result["pages"] == 2
    assert first_result["original_size"] == len(first)
    assert isinstance(first_result["reduction_percent"], int)


def test_compress_rejects_unknown_level():
    client = _make_client()
    data = {"level": "extreme", "file": (BytesIO(_dummy_pdf()), "a.pdf")}
    response = _post(client, "/api/pdf_tools/compress", data)
    assert response.status_code == 400
    error = response.get_json()["error"]
    assert error["code"] == "pdf.invalid_compression_level"
    assert error["details"]["allowed"] == ["high", "low", "medium"]


def test_compress_download_single_file_is_a_pdf():
    client = _make_client()
    data = {"file": (BytesIO(_dummy_pdf()), "scan.pdf")}
    response = _post(client, "/api/pdf_tools/compress?download=1", data)
    assert response.status_code == 200
    assert response.headers.get("Content-Type") == "application/pdf"
    assert "scan_comprimido.pdf" in response.headers.get("Content-Disposition", "")


def test_compress_download_many_files_is_a_zip():
    client = _make_client()
    data = {
        "file": [
            (BytesIO(_dummy_pdf()), "one.pdf"),
            (BytesIO(_dummy_pdf(2)), "two.pdf"),
        ]
    }
    response = _post(client, "/api/pdf_tools/compress?download=1", data)
    assert response.status_code == 200
    assert response.headers.get("Content-Disposition", "").endswith("pdfs_comprimidos.zip")
    with zipfile.ZipFile(BytesIO(response.data), "r") as zf:
        assert sorted(zf.namelist()) == ["one_comprimido.pdf", "two_comprimido.pdf"]


def test_compress_requires_a_file():
    client = _make_client()
    response = _post(client, "/api/pdf_tools/compress", {"level": "low"})
    assert response.status_code == 400
    assert response.get_json()["error"]["code"] == "pdf.invalid_upload"


def test_preview_returns_jpeg():
    client = _make_client()
    data = {"file": (BytesIO(_dummy_pdf(2)), "a.pdf")}
    response = _post(client, "/api/pdf_tools/preview", data)
    assert response.status_code == 200
    payload = response.get_json()["data"]
    assert payload["mimetype"] == "image/jpeg"
    assert base64.b64decode(payload["preview_base64"]).startswith(b"\xff\xd8\xff")
