# tests/test_attachments.py
"""
Tests for the document attachment tracker.
Run with: pytest tests/test_attachments.py
"""

import asyncio

from conftest import FakeTransport, wait_until
from workspace.attachments import AttachmentTracker, UploadKeys
from workspace.state import Attachment, StoredDocument
from workspace.transport import ProxyError


def ids(*values):
    iterator = iter(values)
    return lambda: next(iterator)


async def test_attach_success_marks_ready_and_refreshes_documents():
    transport = FakeTransport(documents=[{"id": "doc-notes.pdf", "filename": "notes.pdf", "num_chunks": 4}])
    tracker = AttachmentTracker(transport, id_factory=ids("A"))

    attachment = await tracker.attach("notes.pdf", b"%PDF-1.7", "application/pdf")

    assert attachment == Attachment(client_id="A", filename="notes.pdf", status="ready", document_id="doc-notes.pdf")
    assert transport.list_calls == 1
    assert tracker.documents == (StoredDocument(id="doc-notes.pdf", filename="notes.pdf", num_chunks=4),)


async def test_attachment_is_uploading_until_the_call_resolves(transport):
    gate = asyncio.get_running_loop().create_future()
    transport.upload_gates["a.pdf"] = gate
    tracker = AttachmentTracker(transport, id_factory=ids("A"))

    task = asyncio.create_task(tracker.attach("a.pdf", b"a"))
    await wait_until(lambda: tracker.get("A") is not None)
    assert tracker.get("A").status == "uploading"

    gate.set_result("doc-a")
    await task
    assert tracker.get("A").status == "ready"


async def test_concurrent_uploads_resolve_independently(transport):
    loop = asyncio.get_running_loop()
    gate_a, gate_b = loop.create_future(), loop.create_future()
    transport.upload_gates.update({"a.pdf": gate_a, "b.pdf": gate_b})
    tracker = AttachmentTracker(transport, id_factory=ids("A", "B"))

    task_a = asyncio.create_task(tracker.attach("a.pdf", b"a"))
    task_b = asyncio.create_task(tracker.attach("b.pdf", b"b"))
    await wait_until(lambda: len(tracker.attachments) == 2)

    gate_b.set_result("doc-b")
    await task_b

    assert tracker.get("A").status == "uploading"
    assert tracker.get("A").document_id is None
    assert tracker.get("B").status == "ready"
    assert tracker.get("B").document_id == "doc-b"

    gate_a.set_exception(ProxyError("Upload failed", 500))
    await task_a

    assert tracker.get("A").status == "error"
    assert tracker.get("B").status == "ready"
    assert [attachment.client_id for attachment in tracker.attachments] == ["A", "B"]


async def test_upload_failure_sets_error_message(transport):
    transport.upload_errors["big.pdf"] = ProxyError("quota exceeded", 413)
    tracker = AttachmentTracker(transport, id_factory=ids("A"))

    attachment = await tracker.attach("big.pdf", b"x" * 10)

    assert attachment.status == "error"
    assert attachment.error_message == "quota exceeded"
    assert attachment.document_id is None
    assert tracker.ready_document_ids == []
    assert transport.list_calls == 0


async def test_upload_failure_without_message_uses_fallback(transport):
    transport.upload_errors["empty.txt"] = ProxyError("")
    tracker = AttachmentTracker(transport, id_factory=ids("A"))

    attachment = await tracker.attach("empty.txt", b"")

    assert attachment.error_message == "Upload failed"


async def test_remove_without_document_is_local_only(transport):
    transport.upload_errors["bad.txt"] = ProxyError("unsupported type")
    tracker = AttachmentTracker(transport, id_factory=ids("A"))
    await tracker.attach("bad.txt", b"")

    await tracker.remove("A")

    assert tracker.attachments == ()
    assert transport.deleted == []


async def test_remove_with_document_deletes_and_prunes():
    transport = FakeTransport(documents=[{"id": "doc-a.pdf", "filename": "a.pdf"}])
    tracker = AttachmentTracker(transport, id_factory=ids("A"))
    await tracker.attach("a.pdf", b"a")

    await tracker.remove("A", "doc-a.pdf")

    assert tracker.attachments == ()
    assert tracker.documents == ()
    assert transport.deleted == ["doc-a.pdf"]


async def test_failed_delete_does_not_resurrect_attachment():
    transport = FakeTransport(documents=[{"id": "doc-a.pdf", "filename": "a.pdf"}])
    transport.delete_error = ProxyError("Document delete failed", 500)
    tracker = AttachmentTracker(transport, id_factory=ids("A"))
    await tracker.attach("a.pdf", b"a")

    await tracker.remove("A", "doc-a.pdf")

    assert tracker.attachments == ()
    assert [document.id for document in tracker.documents] == ["doc-a.pdf"]


async def test_delete_document_prunes_documents_and_attachments():
    transport = FakeTransport(documents=[
        {"id": "doc-a.pdf", "filename": "a.pdf"},
        {"id": "other", "filename": "other.pdf"},
    ])
    tracker = AttachmentTracker(transport, id_factory=ids("A"))
    await tracker.attach("a.pdf", b"a")

    assert await tracker.delete_document("doc-a.pdf") is True

    assert tracker.attachments == ()
    assert [document.id for document in tracker.documents] == ["other"]


async def test_delete_document_failure_keeps_state():
    transport = FakeTransport(documents=[{"id": "d1", "filename": "a.pdf"}])
    tracker = AttachmentTracker(transport)
    await tracker.refresh_documents()
    transport.delete_error = ProxyError("Document delete failed", 500)

    assert await tracker.delete_document("d1") is False
    assert [document.id for document in tracker.documents] == ["d1"]


async def test_concurrent_refreshes_do_not_duplicate():
    transport = FakeTransport(documents=[
        {"id": "d1", "filename": "a.pdf", "file_size": 2048},
        {"id": "d2", "filename": "b.pdf"},
    ])
    single = AttachmentTracker(transport)
    await single.refresh_documents()

    tracker = AttachmentTracker(transport)
    await asyncio.gather(tracker.refresh_documents(), tracker.refresh_documents())

    assert tracker.documents == single.documents
    assert len(tracker.documents) == 2
    assert tracker.is_loading_documents is False


async def test_refresh_failure_keeps_cached_documents():
    transport = FakeTransport(documents=[{"id": "d1", "filename": "a.pdf"}])
    tracker = AttachmentTracker(transport)
    await tracker.refresh_documents()

    transport.list_error = ProxyError("Failed to load documents", 500)
    await tracker.refresh_documents()

    assert [document.id for document in tracker.documents] == ["d1"]
    assert tracker.is_loading_documents is False


async def test_ready_document_ids_deduplicates():
    transport = FakeTransport(documents=[{"id": "d1", "filename": "a.pdf"}, {"id": "d2", "filename": "b.pdf"}])
    transport.upload_gates["a.pdf"] = asyncio.get_running_loop().create_future()
    transport.upload_gates["a.pdf"].set_result("d1")
    tracker = AttachmentTracker(transport, id_factory=ids("A"))

    await tracker.attach("a.pdf", b"a")

    assert tracker.ready_document_ids == ["d1", "d2"]


async def test_dispose_ignores_late_upload(transport):
    gate = asyncio.get_running_loop().create_future()
    transport.upload_gates["a.pdf"] = gate
    tracker = AttachmentTracker(transport, id_factory=ids("A"))

    task = asyncio.create_task(tracker.attach("a.pdf", b"a"))
    await wait_until(lambda: tracker.get("A") is not None)
    tracker.dispose()

    gate.set_result("doc-a")
    await task

    assert tracker.get("A").status == "uploading"
    assert tracker.documents == ()


# --- Uploader selection bookkeeping ---

async def test_removed_attachment_can_be_uploaded_again(transport):
    tracker = AttachmentTracker(transport, id_factory=ids("A", "B", "C"))
    keys = UploadKeys()

    for key in keys.new_keys(["file-a", "file-b", "file-a"]):
        attachment = await tracker.attach(key, b"x")
        keys.record(key, attachment.client_id)
    assert keys.new_keys(["file-a", "file-b"]) == []

    await tracker.remove("A", tracker.get("A").document_id)

    assert keys.forget_untracked(tracker) == ["file-a"]
    assert keys.new_keys(["file-a", "file-b"]) == ["file-a"]
    assert "file-b" in keys


async def test_delete_document_forgets_its_upload(transport):
    tracker = AttachmentTracker(transport, id_factory=ids("A"))
    keys = UploadKeys()
    attachment = await tracker.attach("a.pdf", b"a")
    keys.record("file-a", attachment.client_id)

    assert keys.forget_untracked(tracker) == []
    await tracker.delete_document(attachment.document_id)

    assert keys.forget_untracked(tracker) == ["file-a"]
    assert len(keys) == 0


def test_keys_leaving_the_selection_are_forgotten():
    keys = UploadKeys()
    keys.record("file-a", "A")
    keys.record("file-b", "B")

    keys.retain(["file-b"])

    assert keys.new_keys(["file-a", "file-b"]) == ["file-a"]
