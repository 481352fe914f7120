"""CLI status code constants following standard Unix exit codes."""

# Standard exit codes (following sysexits.h)
EX_OK = 0              # Success
EX_GENERAL = 1         # General error
EX_USAGE = 64          # Command line usage error
EX_DATAERR = 65        # Data format error
EX_TEMPFAIL = 75       # Temp failure; user is invited to retry
EX_CONFIG = 78         # Configuration error

# GCP-specific error codes (using range 80-99)
EX_GCP_PERMISSION = 81 # GCP permission denied
EX_GCP_NOT_FOUND = 82  # GCP resource not found
EX_GCP_QUOTA = 83      # GCP quota exceeded
EX_GCP_API = 84        # GCP API error
EX_BIGQUERY = 85       # BigQuery error
EX_CONFLICT = 86       # Run already in progress for target
