"""
Event registration backend.

A FastAPI service that records individual and team sign-ups in a document
collection, attaches uploaded profile photos to them and lists them for the
admin portal.
"""
