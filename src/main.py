"""FastAPI application entry point."""

from src.application import create_app

app = create_app()

__all__ = ["app"]


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("src.main:app", host="0.0.0.0", port=8000, reload=True)
