"""User-facing error messages by module and error code."""

from __future__ import annotations

MODULE_ERROR_MESSAGES: dict[str, dict[str, str]] = {
    "invoices": {
        "creation_failed": "Failed to create invoice. Please check the provided information and try again.",
        "update_failed": "Failed to update invoice status.",
        "not_found": "The requested invoice could not be found.",
        "duplicate": "An invoice with this number already exists.",
        "invalid_status": "The requested status change is not allowed.",
    },
    "financials": {
        "sync_failed": "Failed to synchronize financial data.",
        "calculation_failed": "Failed to calculate financial metrics.",
        "tax_error": "Error processing tax information.",
    },
    "clients": {
        "creation_failed": "Failed to create client record.",
        "update_failed": "Failed to update client information.",
        "duplicate_email": "A client with this email already exists.",
        "invalid_data": "The client data provided is invalid.",
    },
    "inventory": {
        "stock_update_failed": "Failed to update inventory stock levels.",
        "low_stock": "Low stock levels detected.",
        "out_of_stock": "Item is out of stock.",
        "data_sync_failed": "Failed to synchronize inventory data.",
    },
    "payroll": {
        "run_failed": "Failed to process the payroll run.",
        "sync_failed": "Failed to synchronize payroll with time tracking.",
    },
    "banking": {
        "import_failed": "Failed to import bank transactions.",
        "reconciliation_failed": "Failed to reconcile bank transactions.",
    },
    "integration": {
        "sync_failed": "Failed to synchronize data between modules.",
        "relationship_error": "Error establishing entity relationship.",
        "event_handler_failed": "Failed to process cross-module event.",
        "data_consistency_error": "Data consistency error detected across modules.",
    },
}


def get_error_message(module: str, code: str, default_message: str) -> str:
    """Look up the message for ``module``/``code``; ``default_message`` otherwise."""
    return MODULE_ERROR_MESSAGES.get(module, {}).get(code, default_message)
