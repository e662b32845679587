"""Token minting and scan submission endpoints."""

from __future__ import annotations

import json
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from qr_presence.core import payload as payload_codec
from qr_presence.core.clock import now_ms
from qr_presence.core.errors import InvalidRequest
from qr_presence.core.settings import settings
from qr_presence.schemas.qr import QrTokenOut, ScanAck, ScanSubmission
from qr_presence.services.attend_log import IngestionLog, get_ingestion_log
from qr_presence.services.cipher import TokenCipher, get_server_cipher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/qr", tags=["qr"])

IngestionLogDep = Annotated[IngestionLog, Depends(get_ingestion_log)]
ServerCipherDep = Annotated[TokenCipher, Depends(get_server_cipher)]


def client_address(request: Request) -> str | None:
    """Return the first ``X-Forwarded-For`` hop, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else None


async def parse_submission(request: Request) -> ScanSubmission:
    """Validate the raw request body into a ScanSubmission.

    Raises:
        InvalidRequest: If the body is not a JSON object with both fields.
    """
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as err:
        raise InvalidRequest("request body is not valid JSON") from err
    if not isinstance(body, dict):
        raise InvalidRequest("request body must be a JSON object")
    try:
        return ScanSubmission.model_validate(body)
    except ValidationError as err:
        raise InvalidRequest("cipher and studentId are required") from err


@router.get("", response_model=QrTokenOut)
async def mint_server_token(cipher: ServerCipherDep) -> QrTokenOut | JSONResponse:
    """Mint a token sealed with the server-held key."""
    try:
        payload = payload_codec.encode(settings.payload_version, now_ms(), settings.room_code)
        token = cipher.encrypt(payload)
    except (ValueError, OSError) as exc:
        logger.error("GET /api/qr failed: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "internal_error"},
        )
    return QrTokenOut(cipher=token)


@router.post("", response_model=ScanAck)
async def submit_scan(
    submission: Annotated[ScanSubmission, Depends(parse_submission)],
    request: Request,
    log: IngestionLogDep,
) -> ScanAck:
    """Record a scanned token with the server receipt time.

    The token is not decrypted here; freshness is judged by the issuer.
    """
    receipt = log.record(submission.student_id, submission.cipher, client_address(request))
    return ScanAck(
        student_id=receipt.participant_id,
        server_recv_ts=receipt.receipt_time,
        cipher=submission.cipher,
    )
