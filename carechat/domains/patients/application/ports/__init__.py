from .patient_store import ExternalRecordGateway, PatientStore

__all__ = ["ExternalRecordGateway", "PatientStore"]
