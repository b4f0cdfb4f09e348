# insights router — natural language questions about the entry history

import logging
from fastapi import APIRouter, Depends

from mindvault.dependencies import get_pipeline
from mindvault.models.analysis import HistoryAnswer, HistoryQuery
from mindvault.services.journal_pipeline import JournalPipeline

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/insights", tags=["insights"])


@router.post("/query", response_model=HistoryAnswer)
async def query_history(
    body: HistoryQuery,
    pipeline: JournalPipeline = Depends(get_pipeline),
):
    """answer a question using every stored entry plus the profile.

    never fails on the analysis side: an empty history gets guidance and a
    failed call gets an apology in the answer field.
    """
    history = await pipeline.store.get_entries()
    answer = await pipeline.query_history(history, body.query)
    return HistoryAnswer(answer=answer)
