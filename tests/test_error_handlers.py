import json

import pytest
from starlette.requests import Request

from app.utils.error_handlers import handle_service_error


def make_request(path="/api/v1/notifications"):
    return Request(
        {
            "type": "http",
            "method": "GET",
            "path": path,
            "headers": [],
            "query_string": b"",
        }
    )


def body_of(response):
    return json.loads(response.body)


class TestHandleServiceError:
    """ValueError codes raised by services mapped to HTTP responses."""

    @pytest.mark.parametrize(
        "error, status_code, error_code",
        [
            ("NOTIFICATION_NOT_FOUND", 404, "NOTIFICATION_NOT_FOUND"),
            ("DAYS_OF_WEEK_REQUIRED", 400, "DAYS_OF_WEEK_REQUIRED"),
        ],
    )
    def test_known_codes(self, error, status_code, error_code):
        response = handle_service_error(make_request(), ValueError(error))

        assert response.status_code == status_code
        assert body_of(response)["meta"]["error_code"] == error_code

    def test_details_appended_to_message(self):
        response = handle_service_error(
            make_request(), ValueError("NOTIFICATION_NOT_FOUND: rec-42")
        )

        assert body_of(response)["message"] == "Reminder not found: rec-42"

    @pytest.mark.parametrize(
        "error", ["INVALID_TIME_OF_DAY", "PUSH_NOT_CONFIGURED", "Invalid time of day: 9"]
    )
    def test_unmapped_errors_are_invalid_requests(self, error):
        response = handle_service_error(make_request(), ValueError(error))
        body = body_of(response)

        assert response.status_code == 400
        assert body["meta"]["error_code"] == "INVALID_REQUEST"
        assert body["message"] == error
