"""Semantic event constants for structured logging.

All log events should use these constants rather than magic strings to ensure
consistency and enable reliable querying and analysis.
"""

# Trace lifecycle
TRACE_SEALED = "trace_sealed"
TRACE_DROPPED = "trace_dropped"
TRACE_EVICTED = "trace_evicted"
SPAN_CAP_REACHED = "span_cap_reached"
SPAN_ENDED_AFTER_SEAL = "span_ended_after_seal"

# Client span reconciliation
CLIENT_SPANS_MERGED = "client_spans_merged"
CLIENT_SPANS_IGNORED = "client_spans_ignored"
CLIENT_SPAN_REJECTED = "client_span_rejected"
CLIENT_MESSAGE_REJECTED = "client_message_rejected"

# Event bus
SUBSCRIBER_FAILED = "subscriber_failed"

# Reporter / CLI
TRACE_FILE_LOADED = "trace_file_loaded"
