"""
Issued document output: file naming and zip bundles.
"""

from orchestrator.artifacts.bundle import (
    PROOF_FILE,
    BundleError,
    bundle_name,
    output_name,
    read_bundle,
    sanitize_filename,
    split_name,
    write_bundle,
    write_issued_files,
)

__all__ = [
    "PROOF_FILE",
    "BundleError",
    "sanitize_filename",
    "split_name",
    "output_name",
    "bundle_name",
    "write_issued_files",
    "write_bundle",
    "read_bundle",
]
