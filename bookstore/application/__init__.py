"""Application layer: DTOs shared by repositories and their callers.

No dependency on the ORM; cached payloads are encoded from these types.
"""
