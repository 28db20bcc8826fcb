"""
HTTP layer for audio-jobs.

    - schemas.py: Wire models shared by the client and the dev server
    - devserver.py: In-memory generation backend
    - routes.py: Dev server endpoints
    - dependencies.py: FastAPI dependency providers
"""
