#!/usr/bin/env python3
"""On-demand news endpoint: runs the aggregation pipeline per request."""

from __future__ import annotations

import os
from pathlib import Path

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from scripts.update_news import (
    MyMemoryTranslator,
    NoStoriesError,
    StoryEnricher,
    build_writer,
    create_session,
    default_registry,
    load_snapshot,
    run_pipeline,
    utc_now,
)

app = FastAPI(title="AI Pulse News API")

REGISTRY = default_registry()


def data_path() -> Path:
    return Path(os.getenv("NEWS_DATA_PATH", "data/news.json"))


@app.get("/api/update-news")
def update_news():
    session = create_session()
    enricher = StoryEnricher(translator=MyMemoryTranslator(session), writer=build_writer())
    ai_tools = load_snapshot(data_path())["aiTools"]
    try:
        snapshot, _ = run_pipeline(session, REGISTRY, utc_now(), enricher, ai_tools=ai_tools)
    except NoStoriesError:
        return JSONResponse({"error": "No stories found"}, status_code=500)
    return snapshot


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=os.getenv("HOST", "127.0.0.1"), port=int(os.getenv("PORT", "8000")))
