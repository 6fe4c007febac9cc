# Run from project root: uvicorn govverify.main:app --reload

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from govverify.agent.llm import OpenAIChatModel
from govverify.agent.orchestrator import Agent
from govverify.api.routes import router
from govverify.core.config import BRAND_NAME, SESSION_SWEEP_INTERVAL_SECONDS
from govverify.core.database import Database
from govverify.core.errors import ServiceUnavailableError
from govverify.services.gateway import GatewayClient
from govverify.services.retrieval_service import RetrievalClient

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    db = Database()
    await asyncio.to_thread(db.init_db)
    app.state.db = db

    gateway = GatewayClient()
    try:
        llm = OpenAIChatModel()
    except ServiceUnavailableError as e:
        logger.error("[main:lifespan] agent disabled: %s", e)
        app.state.agent = None
        yield
        return

    agent = Agent(llm=llm, db=db, retrieval=RetrievalClient(), send_message=gateway.send_message)
    app.state.agent = agent
    sweeper = asyncio.create_task(agent.sessions.run_sweeper(SESSION_SWEEP_INTERVAL_SECONDS))
    logger.info("[main:lifespan] %s agent ready db=%s", BRAND_NAME, db.path)
    try:
        yield
    finally:
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass
        logger.info("[main:lifespan] shutdown active_conversations=%d", agent.active_conversations())


app = FastAPI(title=f"{BRAND_NAME} Verification Agent", lifespan=lifespan)
app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("govverify.main:app", host="0.0.0.0", port=8000)
