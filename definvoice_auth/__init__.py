# (c) Copyright Datacraft, 2026
"""DefInvoice passkey (WebAuthn) service."""

__version__ = "0.1.0"
