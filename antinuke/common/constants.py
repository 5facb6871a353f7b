# Seconds to wait after an event before reading the audit log
GRACE_DELAY = 1.0
# Audit entries older than this (ms) are unrelated to the event being handled
STALE_AFTER = 10_000
# Tracker timestamps older than this (ms) are dropped by the sweep
RETENTION = 3_600_000
# Minutes between tracker sweeps
SWEEP_INTERVAL = 10
# Max action records kept per guild
HISTORY_LIMIT = 100
# Audit entry ids remembered when consuming entries
CONSUMED_LIMIT = 500
# Recent webhook_create entries scanned to find the one behind a webhooks update
WEBHOOK_SCAN_LIMIT = 10
