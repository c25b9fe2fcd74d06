"""
FastAPI Todo API package.

The application factory lives in ``src.api.main`` (``create_app``); the
module-level ``app`` there is what uvicorn serves.
"""
