"""
Backend package for the knock service.

This package provides the knock session registry, its Firestore / FCM / Redis
collaborators, and a FastAPI application exposing them, so the protocol can
run as a long-running service as well as behind Firebase Functions.
"""
