"""Pydantic response envelopes and domain schemas of the REST API."""
