"""
Common test fixtures shared by all modules.

Provides factory functions for:
- Sample documents (PDF, DOCX, plain text)
- Deterministic issuer and worker keys
- A wired in-memory environment (ledger, store, issuer directory,
  issuance orchestrator, verification engine)
"""

import io
import zipfile
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from pypdf import PdfWriter

from core.config.runtime import IssuanceConfig
from core.crypto.signatures import LocalKeyProvider, ProofSigner
from core.ledger.memory import InMemoryLedgerClient
from core.schemas.proof import BatchProof, ProofJson, ProofRecord
from core.storage.records import InMemoryRecordStore, StoreIssuerDirectory
from orchestrator.invalidation import InvalidationService
from orchestrator.issuance import IssuanceOrchestrator, IssuanceRequest, IssueDocument
from orchestrator.verification import VerificationEngine


ISSUER_ID = "acme-university"
ISSUER_KEY = "0x" + "4c" * 32
WORKER_KEY = "0x" + "8f" * 32
OTHER_KEY = "0x" + "1d" * 32

FIXED_NOW = datetime(2026, 1, 27, 21, 35, 0, tzinfo=timezone.utc)


# =============================================================================
# Documents
# =============================================================================

def make_pdf(title: str = "Transcript") -> bytes:
    """One blank page; the title makes otherwise identical PDFs differ."""
    writer = PdfWriter()
    writer.add_blank_page(width=612, height=792)
    writer.add_metadata({"/Title": title})
    buf = io.BytesIO()
    writer.write(buf)
    return buf.getvalue()


CONTENT_TYPES_XML = (
    b'<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
    b'<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
    b'<Default Extension="rels" ContentType="application/vnd.openxmlformats-package.relationships+xml"/>'
    b'<Default Extension="xml" ContentType="application/xml"/>'
    b'<Override PartName="/word/document.xml" '
    b'ContentType="application/vnd.openxmlformats-officedocument.wordprocessingml.document.main+xml"/>'
    b"</Types>"
)

ROOT_RELS_XML = (
    b'<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
    b'<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">'
    b'<Relationship Id="rId1" '
    b'Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/officeDocument" '
    b'Target="word/document.xml"/>'
    b"</Relationships>"
)

DOCUMENT_RELS_XML = (
    b'<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
    b'<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">'
    b"</Relationships>"
)


def make_document_xml(text: str) -> bytes:
    return (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
        '<w:document xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main">'
        f"<w:body><w:p><w:r><w:t>{text}</w:t></w:r></w:p>"
        '<w:sectPr><w:pgSz w:w="12240" w:h="15840"/></w:sectPr>'
        "</w:body></w:document>"
    ).encode("utf-8")


def make_docx(text: str = "Certificate of completion", reverse: bool = False) -> bytes:
    """Minimal word package; ``reverse`` writes the same parts in the opposite order."""
    parts = [
        ("[Content_Types].xml", CONTENT_TYPES_XML),
        ("_rels/.rels", ROOT_RELS_XML),
        ("word/document.xml", make_document_xml(text)),
        ("word/_rels/document.xml.rels", DOCUMENT_RELS_XML),
    ]
    if reverse:
        parts.reverse()
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, content in parts:
            zf.writestr(name, content)
    return buf.getvalue()


def make_text(body: str = "Grade report\nAlice: A\n") -> bytes:
    return body.encode("utf-8")


# =============================================================================
# Environment
# =============================================================================

@dataclass
class Environment:
    """Everything needed to issue and verify in process."""
    ledger: InMemoryLedgerClient
    store: InMemoryRecordStore
    directory: StoreIssuerDirectory
    signer: ProofSigner
    worker: LocalKeyProvider
    orchestrator: IssuanceOrchestrator
    engine: VerificationEngine

    def issue(self, documents: dict[str, bytes], batch: str = "2026-spring", **kwargs):
        return self.orchestrator.issue(IssuanceRequest(
            issuer_id=ISSUER_ID,
            batch=batch,
            documents=[IssueDocument(name=name, data=data) for name, data in documents.items()],
            **kwargs,
        ))

    def invalidation(self) -> InvalidationService:
        return InvalidationService(ledger=self.ledger, signer=self.signer, issuer_id=ISSUER_ID)


def make_environment(
    *,
    config: Optional[IssuanceConfig] = None,
    register_issuer: bool = True,
    worker_authorized: bool = True,
) -> Environment:
    """
    In-memory ledger and store with the issuer registered in the directory
    and the worker allowed to anchor roots.
    """
    worker = LocalKeyProvider(WORKER_KEY)
    signer = ProofSigner(LocalKeyProvider(ISSUER_KEY))
    ledger = InMemoryLedgerClient(
        worker.address(),
        workers=[worker.address()] if worker_authorized else [],
    )
    store = InMemoryRecordStore()
    directory = StoreIssuerDirectory(store)
    if register_issuer:
        directory.register(ISSUER_ID, signer.public_key, name="Acme University", address=signer.address)

    orchestrator = IssuanceOrchestrator(
        ledger=ledger,
        signer=signer,
        store=store,
        config=config or IssuanceConfig(badge_enabled=False),
        clock=lambda: FIXED_NOW,
    )
    engine = VerificationEngine(ledger=ledger, issuers=directory)
    return Environment(
        ledger=ledger,
        store=store,
        directory=directory,
        signer=signer,
        worker=worker,
        orchestrator=orchestrator,
        engine=engine,
    )


# =============================================================================
# Records
# =============================================================================

def make_proof_record(batch: str = "2026-spring", **overrides) -> ProofRecord:
    """A structurally valid (unsigned, unanchored) proof record."""
    root = "0x" + "ab" * 32
    fields = dict(
        id="rec-1",
        issuer_id="acme",
        batch=batch,
        merkle_root=root,
        signature="0x" + "cd" * 65,
        proof_json=ProofJson(
            proofs=[BatchProof(
                merkle_root=root,
                leaves=[root],
                proofs=[[]],
                timestamp="2026-01-27T21:35:00.000Z",
                leaf_algorithm="keccak256",
                node_algorithm="sha256",
            )],
            network="memory",
        ),
        file_paths=["report.pdf"],
        description='Transcript with "quotes" and %%DOCANCHOR-PROOF-START-V1 text',
        created_at="2026-01-27T21:35:00.000Z",
        proof_signature="0x" + "ef" * 65,
    )
    fields.update(overrides)
    return ProofRecord(**fields)
