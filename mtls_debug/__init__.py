"""mTLS client certificate diagnostics."""
