"""
Request dependencies.

The pipeline is built once at startup (see api.main) and stored on app.state.
"""

from fastapi import BackgroundTasks, HTTPException, Request

from services.pipeline import LeadPipeline


def get_pipeline(request: Request) -> LeadPipeline:
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Lead pipeline is not initialised")
    return pipeline


def schedule_outbox_drain(pipeline: LeadPipeline, background_tasks: BackgroundTasks) -> bool:
    """
    Deliver in-process events after the response is sent.

    Only stores with an outbox (the in-memory store) need this; with Supabase
    the database webhook delivers events instead.
    """

    if not hasattr(pipeline.store, "pop_events"):
        return False
    background_tasks.add_task(pipeline.dispatcher.run_until_idle, pipeline.store)
    return True
