"""Pydantic schemas for gateway payloads and derived client state."""
