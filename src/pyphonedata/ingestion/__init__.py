"""Ingestion layer.

Turns raw upstream inputs (timezone text, per-language prefix files,
metadata XML) into deduplicated prefix maps ready for the codec.
"""
