from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.constants import SYSTEM_VERSION
from dashboard.routers import ledger, sync

app = FastAPI(
    title="Crypto Ledger API",
    description="Read access to the synchronised ledger and a trigger for sync runs.",
    version=SYSTEM_VERSION,
)

# CORS (Allow local frontend development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"], # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include Routers
app.include_router(ledger.router)
app.include_router(sync.router)

@app.get("/")
def root():
    return {"status": "ok", "message": "Ledger API is running"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
