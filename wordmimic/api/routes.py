from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Header, Request
from wordmimic.analytics.chain import to_shape
from wordmimic.api.schemas import ChainOut, ImitateOut, LearnIn, LearnOut, ProgressOut, StatsOut
from wordmimic.config import settings
from wordmimic.core.validation import is_valid_count, is_valid_length_range
from wordmimic.errors import NotLearnedError
from wordmimic.services import LearningSession

router = APIRouter()


def _auth(api_key_header: str | None = Header(default=None, alias="X-API-Key")):
    if settings.api_key and api_key_header != settings.api_key:
        raise HTTPException(status_code=401, detail="Invalid API key")

def get_learning_session(request: Request) -> LearningSession:
    return request.app.state.session

@router.post('/learn', response_model=LearnOut)
async def learn(data: LearnIn, session: LearningSession = Depends(get_learning_session), ok=Depends(_auth)):
    try:
        out = await session.learn(data.text)
    except ValueError as e:
        raise HTTPException(400, detail=str(e))
    return {
        'example_count': out.example_count,
        'match_count': out.match_count,
        'contexts': len(out.chain),
        'busy_duration_ms': out.busy_duration_ms,
        'wall_clock_duration_ms': out.wall_clock_duration_ms,
    }

@router.get('/progress', response_model=ProgressOut)
async def progress(session: LearningSession = Depends(get_learning_session)):
    return asdict(session.progress)

@router.get('/imitate', response_model=ImitateOut)
async def imitate(count: int = settings.imitation_count,
                  min_len: int = settings.word_length_min,
                  max_len: int = settings.word_length_max,
                  session: LearningSession = Depends(get_learning_session)):
    if not is_valid_count(count):
        raise HTTPException(400, detail="count must be 1..1000")
    if not is_valid_length_range(min_len, max_len):
        raise HTTPException(400, detail="need 0 <= min_len <= max_len")
    try:
        return {'items': session.imitate(count, min_len, max_len)}
    except NotLearnedError as e:
        raise HTTPException(409, detail=str(e))

@router.get('/chain', response_model=ChainOut)
async def chain(session: LearningSession = Depends(get_learning_session)):
    if session.chain is None:
        raise HTTPException(409, detail=str(NotLearnedError()))
    return {'chain': to_shape(session.chain)}

@router.get('/stats', response_model=StatsOut)
async def stats(session: LearningSession = Depends(get_learning_session)):
    try:
        return session.stats()
    except NotLearnedError as e:
        raise HTTPException(409, detail=str(e))
