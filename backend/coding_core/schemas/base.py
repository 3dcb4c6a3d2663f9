"""Base schemas and enums for the medical coding service."""

from enum import Enum


class CodeSystemKind(str, Enum):
    """Coding standards that can be loaded into the catalog."""

    ICD10 = "ICD10"
    CID10 = "CID10"  # Brazilian Portuguese ICD-10
    CID11 = "CID11"
    CIAP2 = "CIAP2"  # International Classification of Primary Care
    CBHPM = "CBHPM"
    TUSS = "TUSS"
    LOINC = "LOINC"
    SNOMED = "SNOMED"


class SexRestriction(str, Enum):
    """Biological sex a code is restricted to. Absent means unrestricted."""

    MALE = "M"
    FEMALE = "F"


class CrossAsterisk(str, Enum):
    """Dagger/asterisk dual-classification marker."""

    ETIOLOGY = "ETIOLOGY"  # dagger (+): underlying cause
    MANIFESTATION = "MANIFESTATION"  # asterisk (*)


class DiagnosisStatus(str, Enum):
    """Clinical status of a diagnosis. Transitions are not enforced."""

    ACTIVE = "ACTIVE"
    RESOLVED = "RESOLVED"
    CANCELLED = "CANCELLED"
    RULED_OUT = "RULED_OUT"


class DiagnosisCertainty(str, Enum):
    """How certain the clinician is about a diagnosis."""

    CONFIRMED = "CONFIRMED"
    PROVISIONAL = "PROVISIONAL"
    SUSPECTED = "SUSPECTED"
