"""
Serving — FastAPI application exposing sessions, uploads and chat.

The core (sessions, ingestion, chat) never imports FastAPI; this package
maps its operations and errors onto HTTP.
"""
