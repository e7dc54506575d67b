"""Centralized configuration for the Tredgate loan service layer.

This module contains the storage keys, business rule thresholds and display
formats shared by the services, the engine facade and the reports.
"""

# =============================================================================
# STORAGE
# =============================================================================

# Key holding the JSON array of loan applications
LOANS_STORAGE_KEY = "tredgate_loans"

# Key holding the JSON array of audit log entries (oldest first)
AUDIT_LOG_STORAGE_KEY = "tredgate_audit_log"

# Default SQLite journal file for SqliteStorage
DEFAULT_DB_PATH = "tredgate.db"

# =============================================================================
# AUDIT LOG
# =============================================================================

# Maximum number of audit log entries retained (FIFO eviction beyond this)
MAX_AUDIT_ENTRIES = 500

# =============================================================================
# BUSINESS RULES
# =============================================================================

# Auto-decide approves when amount <= this AND term <= AUTO_APPROVE_MAX_TERM
AUTO_APPROVE_MAX_AMOUNT = 100000

# Maximum term in months for auto-approval (inclusive)
AUTO_APPROVE_MAX_TERM = 60

# =============================================================================
# DISPLAY FORMATS
# =============================================================================

# Currency symbol used by display and audit detail formatting
CURRENCY_SYMBOL = "$"

# Decimal places for percentages, e.g. 0.125 -> "12.5%"
PERCENT_DECIMALS = 1

# =============================================================================
# LOGGING
# =============================================================================

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"
