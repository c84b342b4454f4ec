"""Static airline reference maps used to name carriers from route lookups."""

from __future__ import annotations

import asyncio
import csv
import io
import logging

import httpx

from app.config import settings

logger = logging.getLogger("nearsky.ingestors.airlines")


def parse_three_letter_csv(text: str) -> dict[str, str]:
    """Parse the ICAO airline list (company in column 0, ICAO code in column 3)."""

    mapping: dict[str, str] = {}
    for row in csv.reader(io.StringIO(text)):
        if len(row) < 4:
            continue
        company = row[0].strip()
        code = row[3].strip().upper()
        if company and code:
            mapping[code] = company
    return mapping


def parse_two_letter_json(payload: object) -> dict[str, str]:
    if not isinstance(payload, dict):
        return {}
    return {
        str(code).strip().upper(): str(name).strip()
        for code, name in payload.items()
        if code and name
    }


class AirlineDirectory:
    """Resolve carrier codes to airline names.

    Lookups prefer the three-letter ICAO map and fall back to the two-letter
    map. Both maps start empty and are filled by :meth:`load`; until then, or
    if loading fails, the code itself is used as the name.
    """

    def __init__(
        self,
        three_letter: dict[str, str] | None = None,
        two_letter: dict[str, str] | None = None,
    ) -> None:
        self.three_letter: dict[str, str] = dict(three_letter or {})
        self.two_letter: dict[str, str] = dict(two_letter or {})

    def name_for(self, code: str) -> str:
        code = code.strip().upper()
        return self.three_letter.get(code) or self.two_letter.get(code) or code

    def describe(self, code: str) -> str:
        """Return ``"Full Name (CODE)"`` for a carrier code."""

        code = code.strip().upper()
        return f"{self.name_for(code)} ({code})"

    async def load(
        self,
        http_client: httpx.AsyncClient,
        *,
        json_url: str | None = None,
        csv_url: str | None = None,
    ) -> None:
        """Fetch both maps; failures are logged and leave the map empty."""

        await asyncio.gather(
            self._load_two_letter(http_client, json_url or settings.airlines_json_url),
            self._load_three_letter(http_client, csv_url or settings.airlines_csv_url),
        )

    async def _load_two_letter(self, http_client: httpx.AsyncClient, url: str) -> None:
        try:
            response = await http_client.get(url)
            response.raise_for_status()
            self.two_letter = parse_two_letter_json(response.json())
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Airline map load failed: %s", exc)
            return
        logger.info("Airline map loaded entries=%s", len(self.two_letter))

    async def _load_three_letter(self, http_client: httpx.AsyncClient, url: str) -> None:
        try:
            response = await http_client.get(url)
            response.raise_for_status()
            self.three_letter = parse_three_letter_csv(response.text)
        except httpx.HTTPError as exc:
            logger.warning("Three-letter airline map load failed: %s", exc)
            return
        logger.info("Three-letter airline map loaded entries=%s", len(self.three_letter))


__all__ = ["AirlineDirectory", "parse_three_letter_csv", "parse_two_letter_json"]
