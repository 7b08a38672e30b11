"""Service layer for ingestion, reconstruction and verification."""

from vault.services.ingestion_service import IngestionService
from vault.services.reconstruction_service import ReconstructionService
from vault.services.upload_executor import UploadExecutor, UploadOutcome
from vault.services.verification_service import VerificationReport, VerificationService

__all__ = [
    "IngestionService",
    "ReconstructionService",
    "UploadExecutor",
    "UploadOutcome",
    "VerificationReport",
    "VerificationService",
]
