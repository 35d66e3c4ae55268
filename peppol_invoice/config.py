"""
Configuration constants and enums for the Peppol Invoice Service.
"""

import logging
import os
from enum import Enum
from typing import Final

# ============================================================================
# UBL / Peppol Identifiers
# ============================================================================

UBL_INVOICE_NS: Final[str] = "urn:oasis:names:specification:ubl:schema:xsd:Invoice-2"
UBL_CAC_NS: Final[str] = "urn:oasis:names:specification:ubl:schema:xsd:CommonAggregateComponents-2"
UBL_CBC_NS: Final[str] = "urn:oasis:names:specification:ubl:schema:xsd:CommonBasicComponents-2"

NAMESPACES: Final[dict[str, str]] = {
    "ubl": UBL_INVOICE_NS,
    "cac": UBL_CAC_NS,
    "cbc": UBL_CBC_NS,
}

# Peppol BIS Billing 3.0
PEPPOL_CUSTOMIZATION_ID: Final[str] = (
    "urn:cen.eu:en16931:2017#compliant#urn:fdc:peppol.eu:2017:poacc:billing:3.0"
)
PEPPOL_PROFILE_ID: Final[str] = "urn:fdc:peppol.eu:2017:poacc:billing:01:1.0"

# UNCL1001 380 = Commercial invoice
COMMERCIAL_INVOICE_TYPE_CODE: Final[str] = "380"

# UNCL4461 30 = Credit transfer
CREDIT_TRANSFER_PAYMENT_MEANS: Final[str] = "30"

DEFAULT_UNIT_CODE: Final[str] = "EA"
DEFAULT_TAX_CATEGORY: Final[str] = "S"

# ============================================================================
# Rule Categories
# ============================================================================

class RuleCategory(str, Enum):
    """Categories for standards validation rules."""
    STRUCTURE = "structure"
    PARTY = "party"
    CODE_LIST = "code_list"
    INVOICE_LINE = "invoice_line"
    MONETARY = "monetary"
    PAYMENT = "payment"


class Severity(str, Enum):
    """Severity of a rule finding. Warnings never make an invoice invalid."""
    ERROR = "error"
    WARNING = "warning"


# ============================================================================
# API Configuration
# ============================================================================

API_HOST: Final[str] = os.getenv("API_HOST", "0.0.0.0")
API_PORT: Final[int] = int(os.getenv("API_PORT", "8000"))
DEFAULT_PAGE_SIZE: Final[int] = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
MAX_PAGE_SIZE: Final[int] = int(os.getenv("MAX_PAGE_SIZE", "100"))

# ============================================================================
# Logging Configuration
# ============================================================================

LOG_LEVEL: Final[str] = os.getenv("LOG_LEVEL", "INFO")

def setup_logging() -> logging.Logger:
    """Configure and return the application logger."""
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    return logging.getLogger("peppol_invoice")


logger = setup_logging()
