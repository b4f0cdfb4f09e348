# gemini analysis client — audio extraction with a json response schema
# and a langchain chain for longitudinal history questions

import json
import logging
from typing import Any, Optional

import google.genai as genai
from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate
from langchain_google_genai import ChatGoogleGenerativeAI
from pydantic import ValidationError

from mindvault.config import settings
from mindvault.exceptions import AnalysisError
from mindvault.models.analysis import AudioClip, ExtractionContext
from mindvault.models.journal import MASLOW_LEVELS, SENTIMENTS, ProcessedMetadata
from mindvault.services.analysis import AnalysisClient

logger = logging.getLogger(__name__)

EXTRACTION_PROMPT = """You are a clinical psychologist analysing a spoken journal entry
recorded at {location} on {timestamp}.

LANGUAGE:
- The speaker may switch between languages mid-sentence.
- transcript: write it down exactly as spoken, in the script of each language. Never translate it.
- every other field: write in English.

ANALYSIS:
1. Affect (Russell circumplex): valence from -1.0 (very unpleasant) to 1.0 (very pleasant),
   arousal from 0.0 (sleepy) to 1.0 (highly activated).
2. Cognitive distortions (Beck, CBT): name each distortion present, e.g. Catastrophizing,
   All-or-Nothing, Personalization, Filtering. Empty list if none.
3. Motivation (Maslow): the single primary need driving this entry.
4. Core memories: up to 3 lasting facts about the speaker.

Also give a short summary, a sentiment label, topical tags and the key events mentioned."""

# json schema handed to gemini, mirrors ProcessedMetadata
EXTRACTION_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "transcript": {"type": "STRING"},
        "summary": {"type": "STRING"},
        "sentiment": {"type": "STRING", "enum": list(SENTIMENTS)},
        "tags": {"type": "ARRAY", "items": {"type": "STRING"}},
        "keyEvents": {"type": "ARRAY", "items": {"type": "STRING"}},
        "extractedFacts": {"type": "ARRAY", "items": {"type": "STRING"}},
        "psychometrics": {
            "type": "OBJECT",
            "properties": {
                "valence": {"type": "NUMBER", "description": "-1.0 to 1.0"},
                "arousal": {"type": "NUMBER", "description": "0.0 to 1.0"},
                "cbtDistortions": {"type": "ARRAY", "items": {"type": "STRING"}},
                "maslowLevel": {"type": "STRING", "enum": list(MASLOW_LEVELS)},
            },
            "required": ["valence", "arousal", "cbtDistortions", "maslowLevel"],
        },
    },
    "required": [
        "transcript", "summary", "sentiment", "tags",
        "keyEvents", "extractedFacts", "psychometrics",
    ],
}

QUERY_PROMPT = ChatPromptTemplate.from_messages([
    ("system", """You are a lead psychologist reviewing a client's voice journal over time.

The history below is in English. Reply in the language the question is asked in.

When relevant:
- describe the valence/arousal trajectory (drifting toward anxious high arousal or flat low arousal?)
- point out recurring cognitive distortions
- note whether lower Maslow needs keep crowding out growth
- relate the patterns to where the entries were recorded

Be warm but analytically rigorous. Cite dates when you refer to specific entries."""),
    ("human", """CORE PROFILE:
{profile}

HISTORY:
{history}

QUESTION: {query}"""),
])


def parse_extraction(payload: Optional[str]) -> ProcessedMetadata:
    """validate a raw extraction payload, raising AnalysisError on anything unusable"""
    if not payload or not payload.strip():
        raise AnalysisError("No response from the analysis service")
    try:
        return ProcessedMetadata.model_validate_json(payload)
    except ValidationError as e:
        raise AnalysisError(f"Analysis response failed validation: {e.error_count()} error(s)") from e


class GeminiAnalysisClient(AnalysisClient):
    """AnalysisClient backed by gemini"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        query_model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.GEMINI_API_KEY
        self.model = model or settings.GEMINI_MODEL
        self.query_model = query_model or settings.GEMINI_QUERY_MODEL
        self.timeout = timeout if timeout is not None else settings.GEMINI_TIMEOUT
        self._client: Optional[genai.Client] = None
        self._query_chain = None

    def _get_client(self) -> genai.Client:
        if self._client is None:
            if not self.api_key:
                raise AnalysisError("GEMINI_API_KEY is not set. Provide it via .env or constructor.")
            self._client = genai.Client(
                api_key=self.api_key,
                http_options=genai.types.HttpOptions(timeout=int(self.timeout * 1000)),
            )
        return self._client

    def _get_query_chain(self):
        if self._query_chain is None:
            llm = ChatGoogleGenerativeAI(
                model=self.query_model,
                google_api_key=self.api_key,
                temperature=0.4,
                max_output_tokens=4096,
                timeout=self.timeout,
            )
            self._query_chain = QUERY_PROMPT | llm | StrOutputParser()
        return self._query_chain

    async def extract(self, clip: AudioClip, context: ExtractionContext) -> ProcessedMetadata:
        client = self._get_client()
        prompt = EXTRACTION_PROMPT.format(location=context.location, timestamp=context.timestamp)

        logger.info(f"Extracting {len(clip)} bytes of {clip.base_mime_type} with {self.model}")
        try:
            response = await client.aio.models.generate_content(
                model=self.model,
                contents=[
                    genai.types.Part.from_bytes(data=clip.data, mime_type=clip.base_mime_type),
                    prompt,
                ],
                config=genai.types.GenerateContentConfig(
                    response_mime_type="application/json",
                    response_schema=EXTRACTION_SCHEMA,
                    temperature=0.2,
                ),
            )
        except Exception as e:
            logger.error(f"Extraction call failed: {e}")
            raise AnalysisError(f"Failed to process audio with Gemini: {e}") from e

        metadata = parse_extraction(response.text)
        logger.info(
            f"Extraction done: sentiment={metadata.sentiment}, "
            f"{len(metadata.extracted_facts)} fact(s)"
        )
        return metadata

    async def query(
        self,
        history_projection: list[dict[str, Any]],
        profile_facts: list[str],
        query: str,
    ) -> str:
        chain = self._get_query_chain()
        try:
            answer = await chain.ainvoke({
                "profile": json.dumps(profile_facts, ensure_ascii=False, indent=2),
                "history": json.dumps(history_projection, ensure_ascii=False, indent=2),
                "query": query,
            })
        except Exception as e:
            logger.error(f"History query failed: {e}")
            raise AnalysisError(f"History query failed: {e}") from e

        if not answer or not answer.strip():
            raise AnalysisError("Empty answer from the analysis service")
        return answer
