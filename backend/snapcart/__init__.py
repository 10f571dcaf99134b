"""Top-level application package for the SnapCart receipt API.

SnapCart turns a photograph of a retail receipt into structured,
queryable expense data. The package contains the database models,
Pydantic schemas, the extraction pipeline services (OCR providers,
the coordinator that degrades to a deterministic fallback, the text
parser and the ingestion workflow), read-only spending analytics and
the FastAPI routers exposing them.

To run the API locally you can execute:

```bash
uvicorn snapcart.api.main:app --reload
```

The default configuration uses a local SQLite database stored in
``snapcart.db`` and keeps uploaded images on the filesystem. Override
configuration values with environment variables or a ``.env`` file at
the project root.
"""

__all__: list[str] = []
