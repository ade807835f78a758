"""HTTP middleware: request ids, timing and RFC 7807 error mapping."""
