"""Proof Parity Checker - FastAPI Application.

Validates that several DAS endpoints serve the same, valid Merkle inclusion
proofs for every leaf of a compressed Merkle tree, and streams progress to
the client while it runs.
"""

from fastapi import FastAPI

from .api.routes import router

# Create FastAPI app
app = FastAPI(
    title="Proof Parity Checker",
    description="Compare Merkle inclusion proofs across endpoints",
    version="1.0.0"
)

# Include API routes
app.include_router(router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
