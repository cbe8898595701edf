"""Catalog intake: supplier and product onboarding forms.

This package implements the form lifecycle behind the catalog admin's
onboarding screens:
- Declarative form schemas with per-field validation rules
- Immutable form state with nested line item collections
- Completion tracking derived from form state
- Device-local draft persistence with schema versioning
- A submission pipeline (validate, send once, reset) with a status machine
- Audit event stream for every edit and status change

Basic usage:
    >>> from catalog_intake import FormState, SUPPLIER_INTAKE_FORM, compute
    >>> state = FormState.initial(SUPPLIER_INTAKE_FORM)
    >>> state = state.set_field("supplierName", "Maison Rose")
    >>> compute(SUPPLIER_INTAKE_FORM, state).completed_required_fields
    2
"""

__version__ = "0.1.0"

# Version info
VERSION = (0, 1, 0)

# Core exports
from catalog_intake.completion import CompletionSnapshot, compute
from catalog_intake.drafts import DraftRecord, DraftStore, FileStorage, MemoryStorage
from catalog_intake.forms import PRODUCT_FORM, SUPPLIER_INTAKE_FORM
from catalog_intake.pipeline import SubmissionAttempt, SubmissionPipeline
from catalog_intake.session import FormSession
from catalog_intake.state import FormState

# Package metadata
__all__ = [
    "__version__",
    "VERSION",
    "CompletionSnapshot",
    "compute",
    "DraftRecord",
    "DraftStore",
    "FileStorage",
    "MemoryStorage",
    "PRODUCT_FORM",
    "SUPPLIER_INTAKE_FORM",
    "SubmissionAttempt",
    "SubmissionPipeline",
    "FormSession",
    "FormState",
]
