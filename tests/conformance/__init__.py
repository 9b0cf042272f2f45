"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the registry.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. atomicity.py - All-or-nothing invocation semantics
2. idempotency.py - Resubmission handling
3. determinism.py - Reproducible state across replicas and replay
4. key_codec.py - Unambiguous composite keys
5. records.py - Lossless, canonical record storage

These tests use hypothesis for property-based testing.
"""
