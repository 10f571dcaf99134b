"""Domain enums, Pydantic schemas and ORM tables."""
