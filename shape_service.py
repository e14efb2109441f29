"""
Client for the remote text -> point cloud generator (Gemini generateContent).

Success returns a flat [x1, y1, z1, x2, ...] list ready to be used as the
Custom shape. Every failure is a ShapeServiceError subclass; nothing is
retried here.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import os

import aiohttp

from params import DEFAULT

logger = logging.getLogger(__name__)

API_KEY_ENV = ("GEMINI_API_KEY", "API_KEY")

SYSTEM_INSTRUCTION = """
You are a 3D Geometry Generator.
Your task is to generate a cloud of 3D points (x, y, z) that form the shape of the object described by the user.
The coordinates should be normalized roughly between -4 and 4.
Generate exactly {n} points that outline the key features of the shape effectively.
The response must be a flat array of numbers [x1, y1, z1, x2, y2, z2, ...].
"""


class ShapeServiceError(Exception):
    """Base class for shape generation failures."""


class MissingCredentialError(ShapeServiceError):
    pass


class ServiceRequestError(ShapeServiceError):
    def __init__(self, message, status=None):
        super().__init__(message)
        self.status = status


class MalformedResponseError(ShapeServiceError):
    pass


class EmptyResponseError(ShapeServiceError):
    pass


def _api_key_from_env():
    for name in API_KEY_ENV:
        value = os.environ.get(name)
        if value:
            return value
    return None


def build_request(prompt: str, n_points: int) -> dict:
    return {
        "systemInstruction": {"parts": [{"text": SYSTEM_INSTRUCTION.format(n=n_points)}]},
        "contents": [{"role": "user", "parts": [{"text": f"Generate a 3D point cloud for: {prompt}"}]}],
        "generationConfig": {
            "responseMimeType": "application/json",
            "responseSchema": {
                "type": "OBJECT",
                "properties": {
                    "points": {
                        "type": "ARRAY",
                        "items": {"type": "NUMBER"},
                        "description": (
                            f"A flat array of x, y, z coordinates. "
                            f"Length should be {n_points * 3} ({n_points} points * 3 dimensions)."
                        ),
                    }
                },
            },
        },
    }


def extract_text(body) -> str:
    """Pull the model's JSON text out of a generateContent response body."""
    try:
        parts = body["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError) as e:
        raise MalformedResponseError("No data returned from the generator") from e
    text = "".join(p.get("text", "") for p in parts if isinstance(p, dict))
    if not text.strip():
        raise MalformedResponseError("No data returned from the generator")
    return text


def parse_points(text: str) -> list:
    """Validate the model payload ``{"points": [...]}`` into whole xyz triples."""
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise MalformedResponseError(f"Generator returned invalid JSON: {e}") from e

    points = data.get("points") if isinstance(data, dict) else None
    if not isinstance(points, list):
        raise MalformedResponseError("Invalid format returned by generator: 'points' is not an array")

    out = []
    for v in points:
        if isinstance(v, bool) or not isinstance(v, (int, float)) or not math.isfinite(v):
            raise MalformedResponseError(f"Non-numeric coordinate in generator output: {v!r}")
        out.append(float(v))

    whole = len(out) - len(out) % 3
    if whole == 0:
        raise EmptyResponseError("Generator returned no complete points")
    if whole != len(out):
        logger.warning("Dropping %d trailing coordinate(s) that do not form a point", len(out) - whole)
    return out[:whole]


class ShapeServiceClient:
    def __init__(self, api_key=None, model=None, base_url=None, timeout=None, n_points=None, params=DEFAULT):
        self.api_key = api_key
        self.model = model or params.gen_model
        self.base_url = (base_url or params.gen_base_url).rstrip("/")
        self.timeout = float(timeout if timeout is not None else params.gen_timeout)
        self.n_points = int(n_points or params.gen_points)

    def _key(self):
        key = self.api_key or _api_key_from_env()
        if not key:
            raise MissingCredentialError(
                "API key is missing. Set GEMINI_API_KEY (or API_KEY) in the environment."
            )
        return key

    async def generate_points(self, prompt: str, session: aiohttp.ClientSession | None = None) -> list:
        key = self._key()
        url = f"{self.base_url}/models/{self.model}:generateContent"
        payload = build_request(prompt, self.n_points)
        headers = {"x-goog-api-key": key, "Content-Type": "application/json"}

        logger.info("Requesting point cloud for %r from %s", prompt, self.model)

        own = session is None
        if own:
            session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))
        try:
            async with session.post(url, json=payload, headers=headers) as resp:
                if resp.status >= 400:
                    detail = await resp.text()
                    raise ServiceRequestError(
                        f"Generator request failed with HTTP {resp.status}: {detail[:200]}",
                        status=resp.status,
                    )
                try:
                    body = await resp.json(content_type=None)
                except (aiohttp.ContentTypeError, ValueError) as e:
                    raise MalformedResponseError("Generator response is not JSON") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ServiceRequestError(f"Generator request failed: {e}") from e
        finally:
            if own:
                await session.close()

        points = parse_points(extract_text(body))
        logger.info("Generator returned %d points", len(points) // 3)
        return points
