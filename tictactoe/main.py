import logging

from fastapi import FastAPI

from tictactoe.api.routes import router

# Read-only spectator API over the ledger; players use the CLI.
app = FastAPI(title="ledger-tictactoe", version="0.1.0")
app.include_router(router)
# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "ledger-tictactoe", "version": "0.1.0"}
