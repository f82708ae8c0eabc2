"""Browser-driven end-to-end checks for the ABIS CRM sales-to-payment workflow."""

__version__ = "0.1.0"
