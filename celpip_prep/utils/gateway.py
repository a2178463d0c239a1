"""
Service contract used by the delivery engine and by API clients.

Every operation degrades instead of raising: failures are logged and come
back as None / False / [] so a broken network or provider never halts a
test in progress.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, List, Optional

import httpx
from fastapi.concurrency import run_in_threadpool
from loguru import logger
from pydantic import ValidationError
from sqlalchemy.orm import Session

from celpip_prep.schemas.attempt import Attempt, WritingEvaluation
from celpip_prep.schemas.practice_set import PracticeSet
from celpip_prep.schemas.user import UserOut
from celpip_prep.utils import attempt_store, set_store
from celpip_prep.utils.ai_client import SpeechSynthesizer, WritingEvaluator
from celpip_prep.utils.auth import authenticate, register


def published_sets(sets: Iterable[PracticeSet]) -> List[PracticeSet]:
    """What a candidate may pick from."""
    return [s for s in sets if s.is_published]


class Gateway(ABC):
    @abstractmethod
    async def login(self, email: str, password: str) -> Optional[UserOut]: ...

    @abstractmethod
    async def signup(self, email: str, password: str, name: str) -> Optional[UserOut]: ...

    @abstractmethod
    async def get_sets(self) -> List[PracticeSet]: ...

    @abstractmethod
    async def save_set(self, practice_set: PracticeSet) -> bool: ...

    @abstractmethod
    async def delete_set(self, set_id: str) -> None: ...

    @abstractmethod
    async def save_attempt(self, attempt: Attempt) -> None: ...

    @abstractmethod
    async def get_attempts(self, user_id: str) -> List[Attempt]: ...

    @abstractmethod
    async def evaluate_writing(self, prompt: str, response: str) -> Optional[WritingEvaluation]: ...

    @abstractmethod
    async def generate_speech(self, script: str) -> Optional[dict]: ...


class HttpGateway(Gateway):
    """Talks to the JSON API (``/api``) of a running server."""

    def __init__(self, base_url: str, client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/")
        self._client = client

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        url = f"{self.base_url}/api{path}"
        if self._client is not None:
            return await self._client.request(method, url, **kwargs)
        async with httpx.AsyncClient() as client:
            return await client.request(method, url, **kwargs)

    async def login(self, email: str, password: str) -> Optional[UserOut]:
        try:
            res = await self._request("POST", "/login", json={"email": email, "password": password})
            if res.status_code != 200:
                return None
            return UserOut.model_validate(res.json())
        except (httpx.HTTPError, ValidationError, ValueError) as e:
            logger.error("Login failed: {}", e)
            return None

    async def signup(self, email: str, password: str, name: str) -> Optional[UserOut]:
        try:
            res = await self._request("POST", "/signup", json={"email": email, "password": password, "name": name})
            if res.status_code != 200:
                return None
            return UserOut.model_validate(res.json())
        except (httpx.HTTPError, ValidationError, ValueError) as e:
            logger.error("Signup failed: {}", e)
            return None

    async def get_sets(self) -> List[PracticeSet]:
        try:
            res = await self._request("GET", "/sets")
            res.raise_for_status()
            return [PracticeSet.model_validate(s) for s in res.json()]
        except (httpx.HTTPError, ValidationError, ValueError) as e:
            logger.error("Fetching sets failed: {}", e)
            return []

    async def save_set(self, practice_set: PracticeSet) -> bool:
        try:
            res = await self._request("POST", "/sets", json=practice_set.model_dump(mode="json", by_alias=True))
            return res.status_code == 200
        except httpx.HTTPError as e:
            logger.error("Save set failed: {}", e)
            return False

    async def delete_set(self, set_id: str) -> None:
        try:
            await self._request("DELETE", f"/sets/{set_id}")
        except httpx.HTTPError as e:
            logger.error("Delete set failed: {}", e)

    async def save_attempt(self, attempt: Attempt) -> None:
        try:
            res = await self._request("POST", "/attempts", json=attempt.model_dump(mode="json", by_alias=True))
            if res.status_code != 200:
                logger.error("Save attempt {} rejected: {} {}", attempt.id, res.status_code, res.text[:200])
        except httpx.HTTPError as e:
            logger.error("Save attempt failed: {}", e)

    async def get_attempts(self, user_id: str) -> List[Attempt]:
        try:
            res = await self._request("GET", f"/attempts/{user_id}")
            if res.status_code != 200:
                return []
            return [Attempt.model_validate(a) for a in res.json()]
        except (httpx.HTTPError, ValidationError, ValueError) as e:
            logger.error("Fetching attempts failed: {}", e)
            return []

    async def evaluate_writing(self, prompt: str, response: str) -> Optional[WritingEvaluation]:
        try:
            res = await self._request(
                "POST", "/evaluate-writing", json={"questionText": prompt, "userResponse": response}
            )
            if res.status_code != 200:
                return None
            return WritingEvaluation.model_validate(res.json())
        except (httpx.HTTPError, ValidationError, ValueError) as e:
            logger.error("Evaluation failed: {}", e)
            return None

    async def generate_speech(self, script: str) -> Optional[dict]:
        try:
            res = await self._request("POST", "/generate-speech", json={"text": script})
            if res.status_code != 200:
                return None
            return res.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("TTS failed: {}", e)
            return None


class LocalGateway(Gateway):
    """Same contract, served in-process from the database and the AI client."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        evaluator: Optional[WritingEvaluator] = None,
        synthesizer: Optional[SpeechSynthesizer] = None,
    ):
        self.session_factory = session_factory
        self.evaluator = evaluator
        self.synthesizer = synthesizer

    def _in_session(self, fn: Callable[[Session], Any]) -> Any:
        db = self.session_factory()
        try:
            return fn(db)
        finally:
            db.close()

    async def _run(self, fn: Callable[[Session], Any]) -> Any:
        """Database work goes to the thread pool so running timers keep ticking."""
        return await run_in_threadpool(self._in_session, fn)

    async def login(self, email: str, password: str) -> Optional[UserOut]:
        user = await self._run(lambda db: authenticate(db, email, password))
        return UserOut.model_validate(user) if user else None

    async def signup(self, email: str, password: str, name: str) -> Optional[UserOut]:
        user = await self._run(lambda db: register(db, email, password, name))
        return UserOut.model_validate(user) if user else None

    async def get_sets(self) -> List[PracticeSet]:
        return await self._run(set_store.list_sets)

    async def save_set(self, practice_set: PracticeSet) -> bool:
        try:
            await self._run(lambda db: set_store.save_set(db, practice_set))
            return True
        except Exception as e:
            logger.exception("Save set {} failed: {}", practice_set.id, e)
            return False

    async def delete_set(self, set_id: str) -> None:
        try:
            await self._run(lambda db: set_store.delete_set(db, set_id))
        except Exception as e:
            logger.exception("Delete set {} failed: {}", set_id, e)

    async def save_attempt(self, attempt: Attempt) -> None:
        try:
            await self._run(lambda db: attempt_store.save_attempt(db, attempt))
        except Exception as e:
            logger.exception("Save attempt {} failed: {}", attempt.id, e)

    async def get_attempts(self, user_id: str) -> List[Attempt]:
        return await self._run(lambda db: attempt_store.list_attempts(db, user_id))

    async def evaluate_writing(self, prompt: str, response: str) -> Optional[WritingEvaluation]:
        if self.evaluator is None or not self.evaluator.available:
            logger.warning("Writing evaluation unavailable: no provider configured")
            return None
        try:
            return await self.evaluator.evaluate(prompt, response)
        except Exception as e:
            logger.exception("Writing evaluation failed: {}", e)
            return None

    async def generate_speech(self, script: str) -> Optional[dict]:
        if self.synthesizer is None or not self.synthesizer.available:
            return None
        try:
            return {"audioData": await self.synthesizer.synthesize(script)}
        except Exception as e:
            logger.exception("Speech generation failed: {}", e)
            return None
