"""Orchestration layer over the admissions kernel: the ledger facade, start-up and response mapping."""

from admissions_services.bootstrap import bootstrap
from admissions_services.ledger_facade import AdmissionsLedger
from admissions_services.responses import to_error_response

__all__ = ["AdmissionsLedger", "bootstrap", "to_error_response"]
