from fastapi import FastAPI
from contextlib import asynccontextmanager
from wordmimic.api.routes import router
from wordmimic.services import LearningSession

@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.session = LearningSession()
    yield

app = FastAPI(title="Word Mimic", lifespan=lifespan)
app.include_router(router)

@app.get("/")
def home():
    return {"ok": True, "app": "Word Mimic"}
