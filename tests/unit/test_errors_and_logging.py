"""Unit tests for the error catalogue and log correlation context."""

import pytest
from utils.errors import (
    PipelineError,
    QuotaExceeded,
    RateLimited,
    RenderTimeout,
    UpstreamError,
    user_message_for,
)
from utils.logging import (
    add_pipeline_context,
    clear_pipeline_context,
    set_pipeline_context,
    set_stage,
)


@pytest.mark.unit
@pytest.mark.parametrize(
    "error_class, status",
    [(RateLimited, 429), (QuotaExceeded, 402), (RenderTimeout, 504), (UpstreamError, 502)],
)
def test_error_kinds_map_to_http_status(error_class, status):
    error = error_class("raw upstream body")

    assert error.http_status == status
    assert error.detail == "raw upstream body"
    assert "raw upstream body" not in error.user_message()
    assert error.to_dict() == {"error": error.user_message()}


@pytest.mark.unit
def test_user_message_hides_unknown_errors():
    assert user_message_for(KeyError("secret")) == PipelineError.default_message
    assert user_message_for(RateLimited()) == "Rate limit exceeded. Please try again later."
    assert user_message_for(PipelineError(user_message="Custom")) == "Custom"


@pytest.mark.unit
def test_upstream_error_keeps_status_code():
    error = UpstreamError("503 from render API", status_code=503)

    assert error.status_code == 503
    assert error.kind == "upstream_error"


class TestPipelineContext:
    @pytest.mark.unit
    def test_processor_adds_project_and_stage(self):
        set_pipeline_context("project-1")
        set_stage("polling")
        try:
            event = add_pipeline_context(None, "info", {"event": "Polling render"})
        finally:
            clear_pipeline_context()

        assert event == {"event": "Polling render", "project_id": "project-1", "stage": "polling"}

    @pytest.mark.unit
    def test_processor_leaves_events_alone_outside_a_run(self):
        clear_pipeline_context()

        assert add_pipeline_context(None, "info", {"event": "startup"}) == {"event": "startup"}
