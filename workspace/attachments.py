# workspace/attachments.py
"""
Document Attachment Tracker.

Keeps two explicit sets:
- attachments: uploads started from this workspace (optimistic, local only)
- documents:   the backend's stored documents (fetched, replaced wholesale)

Every change is a pure `previous -> new` function applied to the current
tuple, and uploads are matched by client_id, so uploads that resolve in any
order never overwrite one another. Deletes and list refreshes are best effort:
a failure is logged and the last consistent state is kept.
"""

from typing import Callable, Dict, Iterable, List, Optional, Tuple
from uuid import uuid4

from workspace.state import Attachment, StoredDocument
from utils.logger import get_workspace_logger

logger = get_workspace_logger("attachments")

UPLOAD_FAILED = "Upload failed"


def new_client_id() -> str:
    return str(uuid4())


def dedupe(ids: Iterable[str]) -> List[str]:
    seen = set()
    unique = []
    for value in ids:
        if value and value not in seen:
            seen.add(value)
            unique.append(value)
    return unique


class AttachmentTracker:
    """
    Tracks uploads and the stored document list for one workspace.

    `transport` needs awaitable `upload_document`, `delete_document` and
    `list_documents` (see AsyncProxyClient).
    """

    def __init__(
        self,
        transport,
        id_factory: Callable[[], str] = new_client_id,
        on_change: Optional[Callable[[], None]] = None,
    ):
        self.transport = transport
        self.id_factory = id_factory
        self.on_change = on_change

        self.attachments: Tuple[Attachment, ...] = ()
        self.documents: Tuple[StoredDocument, ...] = ()
        self._refreshes_in_flight = 0
        self._disposed = False

    @property
    def alive(self) -> bool:
        return not self._disposed

    @property
    def is_loading_documents(self) -> bool:
        return self._refreshes_in_flight > 0

    @property
    def ready_document_ids(self) -> List[str]:
        """Ready attachments first, then every stored document, each id once."""
        attached = [
            attachment.document_id
            for attachment in self.attachments
            if attachment.status == "ready" and attachment.document_id
        ]
        return dedupe(attached + [document.id for document in self.documents])

    def get(self, client_id: str) -> Optional[Attachment]:
        for attachment in self.attachments:
            if attachment.client_id == client_id:
                return attachment
        return None

    # ============ STATE UPDATES ============

    def _notify(self) -> None:
        if self.alive and self.on_change:
            self.on_change()

    def _update_attachments(self, change: Callable[[Tuple[Attachment, ...]], Iterable[Attachment]]) -> None:
        if not self.alive:
            return
        self.attachments = tuple(change(self.attachments))
        self._notify()

    def _update_documents(self, change: Callable[[Tuple[StoredDocument, ...]], Iterable[StoredDocument]]) -> None:
        if not self.alive:
            return
        self.documents = tuple(change(self.documents))
        self._notify()

    def _patch(self, client_id: str, **changes) -> None:
        self._update_attachments(lambda previous: [
            attachment.model_copy(update=changes) if attachment.client_id == client_id else attachment
            for attachment in previous
        ])

    # ============ OPERATIONS ============

    async def attach(self, filename: str, content: bytes, content_type: Optional[str] = None) -> Optional[Attachment]:
        """
        Upload a file, tracking it optimistically under a fresh client id.

        Returns the attachment in its final state (ready or error).
        """
        client_id = self.id_factory()
        pending = Attachment(client_id=client_id, filename=filename, status="uploading")
        self._update_attachments(lambda previous: [*previous, pending])
        logger.info(f"Uploading {filename} as {client_id}")

        try:
            document_id = await self.transport.upload_document(filename, content, content_type)
        except Exception as e:
            message = str(e).strip() or UPLOAD_FAILED
            logger.warning(f"Upload of {filename} failed: {message}")
            self._patch(client_id, status="error", error_message=message, document_id=None)
            return self.get(client_id)

        self._patch(client_id, status="ready", document_id=document_id, error_message=None)
        if self.alive:
            await self.refresh_documents()
        return self.get(client_id)

    async def remove(self, client_id: str, document_id: Optional[str] = None) -> None:
        """Stop tracking an attachment; also delete its document on the backend when it has one."""
        self._update_attachments(lambda previous: [
            attachment for attachment in previous if attachment.client_id != client_id
        ])

        if not document_id:
            return

        try:
            await self.transport.delete_document(document_id)
        except Exception as e:
            logger.warning(f"Failed to delete document {document_id}: {e}")
            return

        self._update_documents(lambda previous: [
            document for document in previous if document.id != document_id
        ])

    async def delete_document(self, document_id: str) -> bool:
        """Delete a stored document and drop every attachment that points at it."""
        try:
            await self.transport.delete_document(document_id)
        except Exception as e:
            logger.warning(f"Failed to delete document {document_id}: {e}")
            return False

        self._update_documents(lambda previous: [
            document for document in previous if document.id != document_id
        ])
        self._update_attachments(lambda previous: [
            attachment for attachment in previous if attachment.document_id != document_id
        ])
        return True

    async def refresh_documents(self) -> None:
        """Replace the stored document list with the backend's; the last response wins."""
        self._refreshes_in_flight += 1
        self._notify()
        documents = None
        try:
            raw = await self.transport.list_documents()
            documents = [StoredDocument.model_validate(item) for item in raw]
        except Exception as e:
            logger.warning(f"Failed to fetch documents: {e}")
        finally:
            self._refreshes_in_flight -= 1

        if documents is None:
            self._notify()
            return
        self._update_documents(lambda previous: documents)

    def dispose(self) -> None:
        self._disposed = True


class UploadKeys:
    """
    Remembers which uploader selections already became attachments.

    A file picker re-reports its whole selection on every render; only keys
    not seen before are uploaded. Forgetting a key (its attachment was
    removed, or it left the selection) lets the same file be uploaded again.
    """

    def __init__(self):
        self._client_ids: Dict[str, str] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._client_ids

    def __len__(self) -> int:
        return len(self._client_ids)

    def new_keys(self, keys: Iterable[str]) -> List[str]:
        return [key for key in dedupe(keys) if key not in self._client_ids]

    def record(self, key: str, client_id: str) -> None:
        self._client_ids[key] = client_id

    def retain(self, keys: Iterable[str]) -> None:
        """Forget every key that is no longer in the picker's selection."""
        selected = set(keys)
        self._client_ids = {k: v for k, v in self._client_ids.items() if k in selected}

    def forget_untracked(self, tracker: AttachmentTracker) -> List[str]:
        """Forget keys whose attachment the tracker no longer holds; returns them."""
        dropped = [key for key, client_id in self._client_ids.items() if tracker.get(client_id) is None]
        for key in dropped:
            del self._client_ids[key]
        return dropped
