"""Database layer: declarative base, session, enums and ORM models."""
