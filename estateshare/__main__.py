"""Serve the API with ``python -m estateshare``."""

from estateshare.main import app  # pragma: no cover

if __name__ == "__main__":  # pragma: no cover
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
