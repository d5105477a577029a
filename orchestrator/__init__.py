"""
Orchestration: issuance and verification state machines.

Public API:
- IssuanceOrchestrator: hash -> tree -> anchor -> sign -> embed -> persist
- VerificationEngine: gate-by-gate verification of one document or root
- InvalidationService: root/document invalidation and issuer registration
- SOPExecutor / PipelineState: step runner shared by both state machines
- create_*: factories wiring everything from a RuntimeConfig
"""

from orchestrator.sop_executor import (
    FunctionStep,
    PipelineState,
    SOPExecutor,
    SOPStep,
    make_step,
)
from orchestrator.issuance import (
    IssuanceFailure,
    IssuanceOrchestrator,
    IssuanceRequest,
    IssuanceResult,
    IssuanceState,
    IssuanceStep,
    IssueDocument,
    IssuedDocument,
)
from orchestrator.verification import VerificationEngine, VerificationState
from orchestrator.invalidation import InvalidationService
from orchestrator.runtime import (
    create_invalidation_service,
    create_issuance_orchestrator,
    create_issuer_directory,
    create_issuer_signer,
    create_ledger,
    create_store,
    create_verification_engine,
)


__all__ = [
    # SOP executor
    "SOPExecutor",
    "SOPStep",
    "FunctionStep",
    "PipelineState",
    "make_step",
    # Issuance
    "IssuanceOrchestrator",
    "IssuanceRequest",
    "IssuanceResult",
    "IssuanceFailure",
    "IssuanceState",
    "IssuanceStep",
    "IssueDocument",
    "IssuedDocument",
    # Verification
    "VerificationEngine",
    "VerificationState",
    # Invalidation
    "InvalidationService",
    # Factories
    "create_ledger",
    "create_store",
    "create_issuer_directory",
    "create_issuer_signer",
    "create_issuance_orchestrator",
    "create_verification_engine",
    "create_invalidation_service",
]
