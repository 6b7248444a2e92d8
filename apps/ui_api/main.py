from __future__ import annotations
from fastapi import FastAPI, Response, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
import asyncio, contextlib, json, logging

from attempts.registry import AttemptRegistry
from core.events import ERROR, event_dump
from worker.channel import QueueChannel
from worker.timer_worker import TimerWorker

log = logging.getLogger(__name__)

app = FastAPI(title="Exam Timer API")
registry = AttemptRegistry()


class AttemptIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    test_id: str = Field(alias="testId", min_length=1)
    duration_seconds: int = Field(alias="durationSeconds", gt=0)


def _not_found(test_id: str) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": "not found", "testId": test_id})


@app.get("/health")
def health():
    return {"status": "ok"}

@app.post("/attempts", status_code=201)
def begin_attempt(body: AttemptIn):
    clock = registry.begin(body.test_id, body.duration_seconds)
    return {
        "testId": clock.test_id,
        "durationSeconds": clock.duration_seconds,
        "startTime": clock.started_ms,
        "endTime": clock.ends_ms,
    }

@app.get("/attempts/{test_id}/sync")
def sync_attempt(test_id: str):
    try:
        return registry.sync_payload(test_id)
    except KeyError:
        return _not_found(test_id)

@app.delete("/attempts/{test_id}", status_code=204)
def end_attempt(test_id: str):
    try:
        registry.end(test_id)
    except KeyError:
        return _not_found(test_id)
    return Response(status_code=204)


async def _pump(ws: WebSocket, channel: QueueChannel) -> None:
    try:
        while True:
            event = await channel.get()
            await ws.send_json(event_dump(event))
    except WebSocketDisconnect:
        return

@app.websocket("/ws/timer")
async def ws_timer(ws: WebSocket):
    await ws.accept()
    channel = QueueChannel()
    worker = TimerWorker(channel.post)
    sender = asyncio.create_task(_pump(ws, channel))
    try:
        while True:
            text = await ws.receive_text()
            try:
                message = json.loads(text)
            except json.JSONDecodeError:
                worker.post_message(ERROR, {"message": "Message is not valid JSON"})
                continue
            if not isinstance(message, dict):
                worker.post_message(ERROR, {"message": "Message must be a JSON object"})
                continue
            worker.handle(message)
    except WebSocketDisconnect:
        log.debug("timer websocket disconnected")
    finally:
        worker.close()
        sender.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sender
